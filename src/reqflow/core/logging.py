"""Process-wide logging configuration for the API and CLI."""
from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# httpx logs every outbound request at INFO; dispatch logs its own outcome.
CHATTY_LOGGERS = ("httpx", "httpcore")


def setup_logging(level: str | int = "INFO") -> None:
    if isinstance(level, str):
        level = level.upper()
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    app_logger = logging.getLogger("reqflow")
    app_logger.setLevel(level)
    quiet = app_logger.getEffectiveLevel() > logging.DEBUG
    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING if quiet else logging.DEBUG)
