from enum import Enum
from typing import Iterable, List


class SpotifyPermission(str, Enum):
    """OAuth scopes understood by accounts.spotify.com."""

    # Playlists
    PLAYLIST_READ_PRIVATE = "playlist-read-private"
    PLAYLIST_MODIFY_PRIVATE = "playlist-modify-private"
    PLAYLIST_MODIFY_PUBLIC = "playlist-modify-public"

    # Playback
    STREAM = "streaming"

    # Follow / library
    USER_FOLLOW_MODIFY = "user-follow-modify"
    USER_FOLLOW_READ = "user-follow-read"
    USER_LIBRARY_READ = "user-library-read"
    USER_LIBRARY_MODIFY = "user-library-modify"

    # Profile
    USER_READ_PRIVATE = "user-read-private"
    USER_READ_BIRTHDATE = "user-read-birthdate"
    USER_READ_EMAIL = "user-read-email"


def parse_permissions(values: Iterable[str]) -> List[SpotifyPermission]:
    """Map raw scope strings (e.g. from config.json) to SpotifyPermission.

    Raises ValueError on an unknown scope.
    """

    out: List[SpotifyPermission] = []
    for v in values or []:
        v = str(v).strip()
        if v:
            out.append(SpotifyPermission(v))
    return out


def scope_string(permissions: Iterable[SpotifyPermission]) -> str:
    """Space-join scope values, dropping duplicates but keeping order."""

    seen = set()
    values = []
    for p in permissions or []:
        value = SpotifyPermission(p).value
        if value in seen:
            continue
        seen.add(value)
        values.append(value)
    return " ".join(values)
