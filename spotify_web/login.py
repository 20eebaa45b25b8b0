import logging
import urllib.parse
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional

from .client import SpotifyClient
from .errors import LoginError
from .permissions import SpotifyPermission, scope_string
from .token import TokenInfo

logger = logging.getLogger(__name__)

SPOTIFY_ACCOUNTS_BASE_URL = "https://accounts.spotify.com"

# Sent as state= on /authorize and expected back on the redirect.
DEFAULT_OAUTH_STATE = "34fFs29kd09"

LoginCallback = Callable[[bool, Optional[LoginError]], None]


class LoginState(Enum):
    IDLE = "idle"
    AWAITING_REDIRECT = "awaiting_redirect"
    TOKEN_EXTRACTED = "token_extracted"
    ERROR_EXTRACTED = "error_extracted"


def _redirect_target(redirect_uri: str) -> str:
    """A bare scheme ("myapp") becomes "myapp://"; full URIs pass through."""

    redirect_uri = str(redirect_uri or "").strip()
    if not redirect_uri:
        raise ValueError("Missing redirect_uri")
    if "://" in redirect_uri:
        return redirect_uri
    return f"{redirect_uri}://"


def _redirect_scheme(redirect_uri: str) -> str:
    return _redirect_target(redirect_uri).split("://", 1)[0].lower()


def build_authorize_url(
    client_id: str,
    redirect_uri: str,
    permissions: Iterable[SpotifyPermission],
    *,
    state: str = DEFAULT_OAUTH_STATE,
    accounts_base_url: str = SPOTIFY_ACCOUNTS_BASE_URL,
) -> str:
    """Build the implicit grant (response_type=token) authorize URL."""

    client_id = str(client_id or "").strip()
    if not client_id:
        raise ValueError("Missing client_id")

    params: Dict[str, str] = {
        "client_id": client_id,
        "response_type": "token",
        "redirect_uri": _redirect_target(redirect_uri),
        "state": state,
        "scope": scope_string(permissions),
    }
    query = urllib.parse.urlencode(params, safe=":/", quote_via=urllib.parse.quote)
    return f"{accounts_base_url.rstrip('/')}/authorize/?{query}"


def extract_token_from_redirect_url(redirect_url: str) -> Dict[str, str]:
    """Parse the implicit grant redirect and return its parameters.

    The token arrives in the fragment (#access_token=...), which URL parsing
    does not treat as a query, so every '#' is rewritten to '?' first.
    Returns e.g. {"access_token": ..., "token_type": ..., "expires_in": ...,
    "state": ...} or {"error": ..., "state": ...}; missing keys are omitted.
    """

    rewritten = str(redirect_url or "").strip().replace("#", "?")
    if "?" not in rewritten:
        return {}

    # A redirect carrying both ?query and #fragment now has two '?'.
    query = rewritten.split("?", 1)[1].replace("?", "&")
    qs = urllib.parse.parse_qs(query, keep_blank_values=False)
    return {k: str(v[0]) for k, v in qs.items() if v}


class SpotifyLogin:
    """Drives the implicit grant login for one SpotifyClient.

    IDLE -> AWAITING_REDIRECT on login(); then TOKEN_EXTRACTED or
    ERROR_EXTRACTED once handle_redirect() sees access_token or error. There is
    no timeout: an abandoned login stays in AWAITING_REDIRECT.
    """

    def __init__(
        self,
        client: SpotifyClient,
        *,
        config: Optional[Dict[str, Any]] = None,
        open_url: Optional[Callable[[str], Any]] = None,
    ):
        self.client = client
        self.config = config or {}
        self.accounts_base_url = str(self.config.get("spotify_accounts_base_url") or SPOTIFY_ACCOUNTS_BASE_URL)
        self.oauth_state = str(self.config.get("spotify_oauth_state") or DEFAULT_OAUTH_STATE)
        self.open_url = open_url

        self.state = LoginState.IDLE
        self.error: Optional[LoginError] = None
        self._redirect_scheme: Optional[str] = None
        self._callback: Optional[LoginCallback] = None

    def login(
        self,
        client_key: str,
        redirect_uri: str,
        permissions: Iterable[SpotifyPermission],
        callback: Optional[LoginCallback] = None,
    ) -> str:
        """Start a login and return the authorize URL the user must visit."""

        auth_url = build_authorize_url(
            client_key,
            redirect_uri,
            permissions,
            state=self.oauth_state,
            accounts_base_url=self.accounts_base_url,
        )

        self._redirect_scheme = _redirect_scheme(redirect_uri)
        self._callback = callback
        self.error = None
        self.state = LoginState.AWAITING_REDIRECT
        logger.debug("Awaiting Spotify redirect on scheme %s://", self._redirect_scheme)

        if self.open_url is not None:
            self.open_url(auth_url)

        return auth_url

    def is_redirect(self, url: str) -> bool:
        if not self._redirect_scheme:
            return False
        scheme = urllib.parse.urlsplit(str(url or "").strip()).scheme
        return scheme.lower() == self._redirect_scheme

    def handle_redirect(self, url: str) -> bool:
        """Consume the redirect URL. Returns True once the login has finished."""

        if self.state is not LoginState.AWAITING_REDIRECT:
            logger.warning("Ignoring Spotify redirect while %s", self.state.value)
            return False

        if not self.is_redirect(url):
            logger.warning("Ignoring URL that does not use the %s:// redirect scheme", self._redirect_scheme)
            return False

        params = extract_token_from_redirect_url(url)

        returned_state = params.get("state")
        if returned_state is not None and returned_state != self.oauth_state:
            self._finish_with_error(LoginError("state_mismatch"))
            return True

        if params.get("access_token"):
            self.client.set_token(TokenInfo.from_redirect_params(params))
            self.state = LoginState.TOKEN_EXTRACTED
            logger.info("Spotify login succeeded")
            self._fire(True, None)
            return True

        if params.get("error"):
            self._finish_with_error(LoginError(params["error"]))
            return True

        logger.debug("Spotify redirect carried neither access_token nor error: %s", url)
        return False

    def _finish_with_error(self, error: LoginError) -> None:
        self.error = error
        self.state = LoginState.ERROR_EXTRACTED
        logger.warning("Spotify login failed: %s", error.reason)
        self._fire(False, error)

    def _fire(self, success: bool, error: Optional[LoginError]) -> None:
        callback, self._callback = self._callback, None
        if callback is not None:
            callback(success, error)
