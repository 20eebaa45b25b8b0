"""Spotify Web API wrapper (implicit grant login + async REST client).

The client is constructed and passed around explicitly; there is no shared
instance. Tokens live in memory only.
"""

from .client import SpotifyClient
from .errors import (
    AuthenticationError,
    InvalidTrackError,
    LoginError,
    NotSignedInError,
    SpotifyError,
    TransportError,
)
from .login import LoginState, SpotifyLogin
from .models import SpotifyAlbum, SpotifyArtist, SpotifyImage, SpotifyPlaylist, SpotifyTrack, SpotifyUser
from .permissions import SpotifyPermission
from .token import TokenInfo

__all__ = [
    "SpotifyClient",
    "SpotifyLogin",
    "LoginState",
    "SpotifyPermission",
    "TokenInfo",
    "SpotifyImage",
    "SpotifyUser",
    "SpotifyArtist",
    "SpotifyAlbum",
    "SpotifyTrack",
    "SpotifyPlaylist",
    "SpotifyError",
    "NotSignedInError",
    "AuthenticationError",
    "TransportError",
    "InvalidTrackError",
    "LoginError",
]
