from typing import Optional


class SpotifyError(Exception):
    """Base class for every failure the client reports."""


class NotSignedInError(SpotifyError):
    """An operation needs the signed-in user, but none has been fetched yet."""

    def __init__(self, message: str = "No user signed in"):
        super().__init__(message)


class AuthenticationError(SpotifyError):
    """No access token is available to authorize the request."""

    def __init__(self, message: str = "No Spotify access token. Run the login flow first."):
        super().__init__(message)


class TransportError(SpotifyError):
    """Network failure or non-2xx response from the Web API."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class InvalidTrackError(SpotifyError):
    """A track or playlist passed to a write operation has no id."""


class LoginError(SpotifyError):
    """The authorization server redirected back with error=<reason>."""

    def __init__(self, reason: str):
        super().__init__(f"Spotify login failed: {reason}")
        self.reason = reason
