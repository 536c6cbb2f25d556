"""Root logger setup and log-safe formatting of ids and user input."""

import logging
import os
import sys
from functools import cache

_CONTROL_ESCAPES = str.maketrans({"\n": "\\n", "\r": "\\r", "\t": "\\t", "\x00": ""})


def _setup() -> None:
    root = logging.getLogger()
    if root.handlers:
        return

    level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)
    fmt = "%(levelname)s - %(name)s - %(message)s"
    if os.environ.get("COMMERCE_ENV") != "production":
        fmt = "%(asctime)s - " + fmt

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt))
    root.addHandler(handler)
    root.setLevel(level)

    # One INFO line per request otherwise
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


_setup()


@cache
def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def sanitize_string_for_logging(value: str | None, max_length: int = 50) -> str:
    """Escape control characters (CWE-117) and cut to ``max_length``."""
    if not value:
        return "N/A"
    safe = str(value).translate(_CONTROL_ESCAPES)
    return safe if len(safe) <= max_length else safe[:max_length] + "..."


def sanitize_id_for_logging(id_value: str | None) -> str:
    """Ids are logged by their first 8 characters only."""
    if not id_value:
        return "N/A"
    return str(id_value).translate(_CONTROL_ESCAPES)[:8]
