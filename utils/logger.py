import logging

LOGGER_NAME = "spotify_web_wrapper"

_logger = logging.getLogger(LOGGER_NAME)


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure root logging for the interactive front end.

    Library modules (spotify_web.*) log through their own module loggers and
    inherit this configuration.
    """
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return _logger


def log_info(message: str) -> None:
    _logger.info(message)


def log_success(message: str) -> None:
    _logger.info(f"✓ {message}")


def log_warning(message: str) -> None:
    _logger.warning(message)


def log_error(message: str) -> None:
    _logger.error(message)
