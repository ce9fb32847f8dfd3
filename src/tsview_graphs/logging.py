from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
LOG_LEVEL_ENV = "TSVIEW_LOG_LEVEL"
# Per-request chatter from the backend client.
HTTP_LOGGERS = ("httpx", "httpcore")


def configure_logging(level: str | None = None) -> str:
    """Configure root logging and return the level in effect.

    ``level`` wins over ``TSVIEW_LOG_LEVEL``, which wins over INFO. HTTP client
    loggers stay at WARNING unless DEBUG is requested.
    """
    resolved = (level or os.getenv(LOG_LEVEL_ENV) or "INFO").upper()
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    http_level = logging.DEBUG if resolved == "DEBUG" else logging.WARNING
    for name in HTTP_LOGGERS:
        logging.getLogger(name).setLevel(http_level)
    return resolved
