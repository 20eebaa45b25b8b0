from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar


T = TypeVar("T")


def _str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    return value if isinstance(value, str) else None


def _int(data: Dict[str, Any], key: str) -> Optional[int]:
    value = data.get(key)
    # bool is an int subclass; JSON true/false is never a dimension.
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _as_dict(data: Any) -> Dict[str, Any]:
    return data if isinstance(data, dict) else {}


def _seq(data: Dict[str, Any], key: str, decode: Callable[[Any], T]) -> Optional[Tuple[T, ...]]:
    """Decode a nested array.

    Missing key (or a non-list value) gives None; an empty list gives ().
    """
    items = data.get(key)
    if not isinstance(items, list):
        return None
    return tuple(decode(item) for item in items)


def decode_list(decode: Callable[[Any], T], items: Any) -> List[T]:
    """Decode every element of a JSON array; anything else decodes to []."""

    if not isinstance(items, list):
        return []
    return [decode(item) for item in items]


@dataclass(frozen=True)
class SpotifyImage:
    """Album or profile artwork."""

    height: Optional[int] = None
    width: Optional[int] = None
    url: Optional[str] = None

    @staticmethod
    def from_json(data: Any) -> "SpotifyImage":
        data = _as_dict(data)
        return SpotifyImage(
            height=_int(data, "height"),
            width=_int(data, "width"),
            url=_str(data, "url"),
        )


@dataclass(frozen=True)
class SpotifyUser:
    country: Optional[str] = None
    display_name: Optional[str] = None
    email: Optional[str] = None
    id: Optional[str] = None
    product: Optional[str] = None
    images: Optional[Tuple[SpotifyImage, ...]] = None

    @staticmethod
    def from_json(data: Any) -> "SpotifyUser":
        """Decode a /v1/me (or public user) object.

        Never raises: absent or mistyped keys leave the field as None.
        """

        data = _as_dict(data)
        return SpotifyUser(
            country=_str(data, "country"),
            display_name=_str(data, "display_name"),
            email=_str(data, "email"),
            id=_str(data, "id"),
            product=_str(data, "product"),
            images=_seq(data, "images", SpotifyImage.from_json),
        )

    @property
    def avatar_url(self) -> Optional[str]:
        if not self.images:
            return None
        return self.images[0].url


@dataclass(frozen=True)
class SpotifyArtist:
    id: Optional[str] = None
    name: Optional[str] = None
    uri: Optional[str] = None

    @staticmethod
    def from_json(data: Any) -> "SpotifyArtist":
        data = _as_dict(data)
        return SpotifyArtist(
            id=_str(data, "id"),
            name=_str(data, "name"),
            uri=_str(data, "uri"),
        )


@dataclass(frozen=True)
class SpotifyAlbum:
    id: Optional[str] = None
    name: Optional[str] = None
    uri: Optional[str] = None
    images: Optional[Tuple[SpotifyImage, ...]] = None

    @staticmethod
    def from_json(data: Any) -> "SpotifyAlbum":
        data = _as_dict(data)
        return SpotifyAlbum(
            id=_str(data, "id"),
            name=_str(data, "name"),
            uri=_str(data, "uri"),
            images=_seq(data, "images", SpotifyImage.from_json),
        )


@dataclass(frozen=True)
class SpotifyTrack:
    id: Optional[str] = None
    name: Optional[str] = None
    preview_url: Optional[str] = None
    uri: Optional[str] = None
    album: Optional[SpotifyAlbum] = None
    artists: Optional[Tuple[SpotifyArtist, ...]] = None

    @staticmethod
    def from_json(data: Any) -> "SpotifyTrack":
        """Decode a full track object.

        The album is always decoded, so a track without an "album" key still
        carries an (empty) SpotifyAlbum.
        """

        data = _as_dict(data)
        return SpotifyTrack(
            id=_str(data, "id"),
            name=_str(data, "name"),
            preview_url=_str(data, "preview_url"),
            uri=_str(data, "uri"),
            album=SpotifyAlbum.from_json(data.get("album")),
            artists=_seq(data, "artists", SpotifyArtist.from_json),
        )

    @property
    def spotify_uri(self) -> Optional[str]:
        """The track URI the playlist endpoints expect, built from the id."""
        if not self.id:
            return None
        return f"spotify:track:{self.id}"


@dataclass(frozen=True)
class SpotifyPlaylist:
    id: Optional[str] = None
    uri: Optional[str] = None
    name: Optional[str] = None

    @staticmethod
    def from_json(data: Any) -> "SpotifyPlaylist":
        data = _as_dict(data)
        return SpotifyPlaylist(
            id=_str(data, "id"),
            uri=_str(data, "uri"),
            name=_str(data, "name"),
        )
