import asyncio
import functools
import logging
import urllib.parse
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

import httpx

from .errors import AuthenticationError, InvalidTrackError, NotSignedInError, SpotifyError, TransportError
from .models import SpotifyPlaylist, SpotifyTrack, SpotifyUser, decode_list
from .token import TokenInfo

logger = logging.getLogger(__name__)


SPOTIFY_API_BASE_URL = "https://api.spotify.com/v1"
DEFAULT_PLAYLIST_PAGE_LIMIT = 50

Callback = Callable[[Any, Optional[SpotifyError]], None]


def completion(failure_value: Any = None):
    """Give a client coroutine an optional ``callback(result, error)`` keyword.

    With a callback, exactly one of callback(result, None) or
    callback(failure_value, error) is invoked and the coroutine returns instead
    of raising. Without one, SpotifyError propagates to the awaiting caller.

    Only SpotifyError reaches the callback. Bad arguments and transport
    failures are mapped to SpotifyError subclasses before they get here;
    anything else is a bug and propagates.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, *args, callback: Optional[Callback] = None, **kwargs):
            if callback is None:
                return await func(self, *args, **kwargs)
            try:
                result = await func(self, *args, **kwargs)
            except SpotifyError as e:
                callback(failure_value, e)
                return failure_value
            callback(result, None)
            return result

        return wrapper

    return decorator


def build_track_uris(tracks: Iterable[SpotifyTrack]) -> List[str]:
    """Return ["spotify:track:<id>", ...], rejecting tracks without an id."""

    uris: List[str] = []
    for idx, track in enumerate(tracks or []):
        uri = track.spotify_uri if isinstance(track, SpotifyTrack) else None
        if not uri:
            raise InvalidTrackError(f"Track at position {idx} has no id: {track!r}")
        uris.append(uri)
    return uris


class SpotifyClient:
    """Async Spotify Web API client for the signed-in user.

    Holds the access token handed over by the login flow and caches the
    signed-in user after the first /me call. The cache is never invalidated
    on its own; call clear_current_user() to force a refetch.

    Every call is attempted exactly once. There is no retry, rate limiting or
    token refresh here.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        token: Union[str, TokenInfo, None] = None,
    ):
        self.config = config or {}
        self.base_url = str(self.config.get("spotify_api_base_url") or SPOTIFY_API_BASE_URL).rstrip("/")
        self.playlist_page_limit = int(self.config.get("spotify_playlist_page_limit", DEFAULT_PLAYLIST_PAGE_LIMIT))

        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=float(self.config.get("spotify_timeout", 30.0)))

        self._token: Optional[TokenInfo] = None
        self._current_user: Optional[SpotifyUser] = None
        # Serializes writes to _current_user and makes /me single-flight.
        self._user_lock = asyncio.Lock()

        if token is not None:
            self.set_token(token)

    # -----------------
    # Token / session state
    # -----------------

    def set_token(self, token: Union[str, TokenInfo]) -> None:
        if isinstance(token, str):
            token = TokenInfo(access_token=token)
        if not token.access_token:
            raise ValueError("Refusing to store an empty access token")
        self._token = token
        logger.debug("Spotify access token set (expires_at=%s)", token.expires_at)

    @property
    def token(self) -> Optional[TokenInfo]:
        return self._token

    @property
    def access_token(self) -> Optional[str]:
        return self._token.access_token if self._token else None

    @property
    def current_user(self) -> Optional[SpotifyUser]:
        return self._current_user

    @property
    def is_signed_in(self) -> bool:
        return self._current_user is not None

    def clear_current_user(self) -> None:
        self._current_user = None

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    async def __aenter__(self) -> "SpotifyClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # -----------------
    # HTTP helpers
    # -----------------

    def _auth_headers(self) -> Dict[str, str]:
        if self._token is None:
            raise AuthenticationError()
        if self._token.is_expired(skew_seconds=0):
            # Implicit grant tokens cannot be refreshed; the API will answer 401.
            logger.warning("Spotify access token expired at %s; sign in again", self._token.expires_at)
        return {
            "Authorization": self._token.authorization_header,
            "Accept": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        headers = self._auth_headers()
        url = f"{self.base_url}{path}"
        if params:
            params = {k: str(v) for k, v in params.items() if v is not None}

        logger.debug("Spotify %s %s params=%s", method.upper(), path, params)
        try:
            resp = await self._http.request(method.upper(), url, params=params, json=json_body, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"Spotify API request failed: {e}") from e

        if not resp.is_success:
            body = resp.text
            logger.warning("Spotify API %s %s failed (HTTP %s): %s", method.upper(), path, resp.status_code, body)
            raise TransportError(
                f"Spotify API error {resp.status_code}: {body}",
                status_code=resp.status_code,
                body=body,
            )

        return resp

    async def _request_json(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        """Make a request and return the JSON object body.

        Empty, non-JSON and non-object bodies all come back as {} so the
        lenient model decoders produce empty records rather than errors.
        """

        resp = await self._request(method, path, **kwargs)
        if not resp.content:
            return {}

        try:
            payload = resp.json()
        except ValueError:
            logger.debug("Spotify response for %s %s was not JSON: %r", method, path, resp.text[:200])
            return {}

        return payload if isinstance(payload, dict) else {}

    def _signed_in_user_id(self) -> str:
        user = self._current_user
        if user is None or not user.id:
            raise NotSignedInError()
        return urllib.parse.quote(user.id, safe="")

    # -----------------
    # Endpoints
    # -----------------

    @completion()
    async def fetch_current_user(self) -> SpotifyUser:
        """Return the signed-in user, hitting /me only on the first call."""

        async with self._user_lock:
            if self._current_user is not None:
                return self._current_user

            payload = await self._request_json("GET", "/me")
            self._current_user = SpotifyUser.from_json(payload)
            logger.info("Signed in to Spotify as %s", self._current_user.display_name or self._current_user.id)
            return self._current_user

    @completion()
    async def fetch_tracks(self, ids: Iterable[str]) -> List[SpotifyTrack]:
        """Fetch full track objects for up to 100 ids.

        The 100-id limit is the caller's business; the API reports a violation
        as an HTTP error.
        """

        ids = [str(i) for i in ids or []]
        payload = await self._request_json("GET", "/tracks", params={"ids": ",".join(ids)})
        return decode_list(SpotifyTrack.from_json, payload.get("tracks"))

    @completion()
    async def fetch_playlists(self, user: Optional[SpotifyUser] = None) -> List[SpotifyPlaylist]:
        """First page of playlists for the signed-in user.

        Playlists are always listed for the signed-in user's id; ``user`` is
        accepted but not used to build the path.
        """

        user_id = self._signed_in_user_id()
        if user is not None and user.id and user.id != self._current_user.id:
            logger.debug("fetch_playlists(user=%s) lists playlists for signed-in user %s", user.id, self._current_user.id)

        payload = await self._request_json(
            "GET",
            f"/users/{user_id}/playlists",
            params={"limit": self.playlist_page_limit, "offset": 0},
        )
        return decode_list(SpotifyPlaylist.from_json, payload.get("items"))

    @completion()
    async def fetch_all_playlists(self, *, max_playlists: Optional[int] = None) -> List[SpotifyPlaylist]:
        """Every playlist of the signed-in user, following offset paging."""

        user_id = self._signed_in_user_id()
        limit = self.playlist_page_limit
        offset = 0
        out: List[SpotifyPlaylist] = []

        while True:
            page = await self._request_json(
                "GET",
                f"/users/{user_id}/playlists",
                params={"limit": limit, "offset": offset},
            )
            items = page.get("items")
            items = items if isinstance(items, list) else []
            out.extend(decode_list(SpotifyPlaylist.from_json, items))

            if max_playlists is not None and len(out) >= int(max_playlists):
                return out[: int(max_playlists)]

            total = page.get("total")
            if not isinstance(total, int):
                break

            offset += len(items)
            if not items or offset >= total:
                break

        return out

    @completion()
    async def create_playlist(self, name: str, is_public: bool = False) -> SpotifyPlaylist:
        user_id = self._signed_in_user_id()
        payload = await self._request_json(
            "POST",
            f"/users/{user_id}/playlists",
            json_body={"name": name, "public": bool(is_public)},
        )
        return SpotifyPlaylist.from_json(payload)

    @completion(failure_value=False)
    async def replace_tracks(self, tracks: Iterable[SpotifyTrack], playlist: SpotifyPlaylist) -> bool:
        """Overwrite the playlist's contents with ``tracks`` (in order)."""

        user_id = self._signed_in_user_id()
        if not isinstance(playlist, SpotifyPlaylist) or not playlist.id:
            raise InvalidTrackError(f"Playlist has no id: {playlist!r}")
        uris = build_track_uris(tracks)

        await self._request(
            "PUT",
            f"/users/{user_id}/playlists/{urllib.parse.quote(playlist.id, safe='')}/tracks",
            json_body={"uris": uris},
        )
        return True
