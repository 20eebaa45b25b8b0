import time
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class TokenInfo:
    """Access token delivered by the implicit grant redirect.

    Held in memory only. The implicit grant has no refresh_token, so once it
    expires the user has to log in again.
    """

    access_token: str
    token_type: str = "Bearer"
    expires_at: Optional[float] = None
    scope: Optional[str] = None
    state: Optional[str] = None

    @staticmethod
    def from_redirect_params(params: Dict[str, Any], *, now: Optional[float] = None) -> "TokenInfo":
        """Convert the redirect fragment parameters into TokenInfo.

        Spotify returns:
        - access_token
        - token_type ("Bearer")
        - expires_in (seconds, as a string in the fragment)
        - state (echo of the value sent to /authorize)
        """

        now_ts = float(time.time() if now is None else now)

        expires_at = None
        try:
            if params.get("expires_in") not in (None, ""):
                expires_at = now_ts + float(params["expires_in"])
        except (TypeError, ValueError):
            expires_at = None

        return TokenInfo(
            access_token=str(params.get("access_token", "")),
            token_type=str(params.get("token_type") or "Bearer"),
            expires_at=expires_at,
            scope=params.get("scope"),
            state=params.get("state"),
        )

    @property
    def authorization_header(self) -> str:
        # Spotify sends token_type=Bearer in lowercase on some flows.
        token_type = "Bearer" if self.token_type.lower() == "bearer" else self.token_type
        return f"{token_type} {self.access_token}"

    def is_expired(self, *, skew_seconds: int = 60, now: Optional[float] = None) -> bool:
        if self.expires_at is None:
            return False
        now_ts = time.time() if now is None else now
        return now_ts >= float(self.expires_at) - float(skew_seconds)
