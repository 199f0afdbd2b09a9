"""Application configuration read from the environment (and a local .env file)."""

import logging
import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _log_level_env(name: str, default: str) -> str:
    raw = os.environ.get(name, "").strip().upper()
    # getLevelName returns an int only for registered level names
    if raw and isinstance(logging.getLevelName(raw), int):
        return raw
    return default


def is_test_mode() -> bool:
    """Test mode swaps the database for an in-memory store."""
    return os.environ.get("TEST_MODE", "0") == "1"


def database_url() -> Optional[str]:
    return os.environ.get("DB_URL") or None


GOOGLE_BOOKS_API_KEY = os.environ.get("GOOGLE_BOOKS_API_KEY")

# Seconds to wait for the metadata search before falling back
LOOKUP_TIMEOUT = _float_env("LOOKUP_TIMEOUT", 5.0)

# Per-candidate cover probe timeout (seconds) and minimum accepted edge in pixels
COVER_PROBE_TIMEOUT = _float_env("COVER_PROBE_TIMEOUT", 3.0)
COVER_MIN_DIMENSION = _int_env("COVER_MIN_DIMENSION", 10)

COVER_SERVICE_URL = os.environ.get(
    "COVER_SERVICE_URL", "https://covers.openlibrary.org/b"
).rstrip("/")

DEFAULT_BOOK_TITLE = os.environ.get("DEFAULT_BOOK_TITLE", "Catch-22")
DEFAULT_BOOK_AUTHOR = os.environ.get("DEFAULT_BOOK_AUTHOR", "Joseph Heller")

LOG_LEVEL = _log_level_env("LOG_LEVEL", "INFO")
