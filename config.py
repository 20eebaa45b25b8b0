import json
import os
from typing import Any, Dict

from spotify_web.permissions import SpotifyPermission

CONFIG_PATH = "config.json"

# Default configuration values
DEFAULT_CONFIG = {
    # Spotify app (implicit grant)
    # NOTE: spotify_client_id must be set before signing in.
    "spotify_client_id": "",
    "spotify_redirect_uri": "spotifywebwrapper",
    "spotify_scopes": [
        "user-library-read",
        "user-read-private",
        "playlist-read-private",
        "playlist-modify-public",
        "playlist-modify-private",
    ],
    "spotify_oauth_state": "34fFs29kd09",

    # Web API
    "spotify_api_base_url": "https://api.spotify.com/v1",
    "spotify_accounts_base_url": "https://accounts.spotify.com",
    "spotify_timeout": 30.0,
    "spotify_playlist_page_limit": 50,

    # Front end
    "open_browser": True,
    "log_level": "INFO",
}

# Validation rules for config fields
CONFIG_SCHEMA = {
    "spotify_client_id": {"type": str, "required": False},
    "spotify_redirect_uri": {"type": str, "required": True},
    "spotify_scopes": {"type": list, "required": False, "element_type": str},
    "spotify_oauth_state": {"type": str, "required": False},

    "spotify_api_base_url": {"type": str, "required": False},
    "spotify_accounts_base_url": {"type": str, "required": False},
    "spotify_timeout": {"type": (int, float), "required": False, "min": 1, "max": 300},
    "spotify_playlist_page_limit": {"type": int, "required": False, "min": 1, "max": 50},

    "open_browser": {"type": bool, "required": False},
    "log_level": {"type": str, "required": False, "choices": ["DEBUG", "INFO", "WARNING", "ERROR"]},
}


def load_config(path: str = CONFIG_PATH, *, allow_missing: bool = False) -> Dict[str, Any]:
    """Load configuration from file, applying defaults for missing fields."""
    if not os.path.exists(path):
        if allow_missing:
            return dict(DEFAULT_CONFIG)
        raise FileNotFoundError(f"Config file {path} not found.")

    with open(path, "r", encoding="utf-8") as f:
        config = json.load(f)

    # Apply defaults for missing fields
    for key, value in DEFAULT_CONFIG.items():
        if key not in config:
            config[key] = value

    return config


def save_config(config: Dict[str, Any], path: str = CONFIG_PATH) -> bool:
    """Save configuration to file."""
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        return True
    except Exception as e:
        raise IOError(f"Failed to save config: {e}")


def validate_config(config: Dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate configuration against schema.
    Returns (is_valid, list_of_errors).
    """
    errors = []

    for key, rules in CONFIG_SCHEMA.items():
        # Check required fields
        if rules.get("required", False) and key not in config:
            errors.append(f"Missing required field: {key}")
            continue

        if key not in config:
            continue

        value = config[key]

        # Type check (bool is an int, but never a valid number here)
        expected_type = rules.get("type")
        if expected_type and (
            not isinstance(value, expected_type) or (isinstance(value, bool) and bool not in _as_tuple(expected_type))
        ):
            type_names = expected_type.__name__ if not isinstance(expected_type, tuple) else "/".join(t.__name__ for t in expected_type)
            errors.append(f"Field '{key}' must be {type_names}, got {type(value).__name__}")
            continue

        # List element type check (when schema uses: {"type": list, "element_type": ...})
        if isinstance(value, list) and "element_type" in rules:
            elem_type = rules["element_type"]
            bad_elems = [v for v in value if not isinstance(v, elem_type)]
            if bad_elems:
                errors.append(
                    f"Field '{key}' must be a list of {elem_type.__name__}, got invalid elements: {bad_elems}"
                )
                continue

        # Choices check
        if "choices" in rules and value not in rules["choices"]:
            errors.append(f"Field '{key}' must be one of {rules['choices']}, got '{value}'")

        # Range check for numeric values
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if "min" in rules and value < rules["min"]:
                errors.append(f"Field '{key}' must be >= {rules['min']}, got {value}")
            if "max" in rules and value > rules["max"]:
                errors.append(f"Field '{key}' must be <= {rules['max']}, got {value}")

    # Scopes must be ones the authorization server knows.
    known = {p.value for p in SpotifyPermission}
    unknown = [s for s in config.get("spotify_scopes") or [] if isinstance(s, str) and s not in known]
    if unknown:
        errors.append(f"Unknown spotify_scopes: {unknown}")

    return len(errors) == 0, errors


def _as_tuple(t):
    return t if isinstance(t, tuple) else (t,)


def check_spotify_credentials(config: Dict[str, Any]) -> Dict[str, Any]:
    """Check that the fields the login flow needs are present."""

    config = config or {}
    client_id = str(config.get("spotify_client_id", "")).strip()
    redirect_uri = str(config.get("spotify_redirect_uri", "")).strip()

    if not client_id:
        message = "spotify_client_id is not set in config.json. Create an app at https://developer.spotify.com/dashboard."
    elif not redirect_uri:
        message = "Missing spotify_redirect_uri in config.json."
    else:
        message = "Spotify credentials look OK."

    return {
        "ok": bool(client_id and redirect_uri),
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "scopes": list(config.get("spotify_scopes") or []),
        "message": message,
    }
