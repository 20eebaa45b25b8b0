import asyncio
import json

from config import load_config, validate_config
from menus.sign_in_menu import sign_in_menu
from spotify_web import SpotifyClient
from utils.logger import setup_logging, log_error, log_warning


async def run(config: dict) -> None:
    async with SpotifyClient(config) as client:
        await sign_in_menu(config, client)


if __name__ == "__main__":
    try:
        config = load_config(allow_missing=True)
    except json.JSONDecodeError as e:
        setup_logging()
        log_error(f"Config file contains invalid JSON: {e}")
        exit(1)
    except Exception as e:
        setup_logging()
        log_error(f"Error loading config: {e}")
        exit(1)

    setup_logging(config.get("log_level", "INFO"))

    is_valid, errors = validate_config(config)
    if not is_valid:
        for err in errors:
            log_warning(err)

    asyncio.run(run(config))
