"""Reading and replacing the single "current book" record."""

import logging
from typing import Any, Mapping, Optional, Tuple

from book_club.errors import StorageUnavailable, ValidationError
from book_club.models import BookRecord

logger = logging.getLogger("book_club")

CURRENT_BOOK_KEY = "current_book"


def _clean(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()


def validate_book_payload(payload: Optional[Mapping[str, Any]]) -> Tuple[str, str]:
    """Return trimmed (title, author) or raise ValidationError."""
    if not isinstance(payload, Mapping):
        payload = {}
    title = _clean(payload.get("title"))
    author = _clean(payload.get("author"))
    if not title or not author:
        raise ValidationError("Title and author are required")
    return title, author


def load_current_book(storage) -> Optional[BookRecord]:
    """Read the persisted selection, or None if nothing has been stored yet."""
    if storage is None:
        raise StorageUnavailable("Storage not available")

    raw = storage.get(CURRENT_BOOK_KEY)
    if not raw:
        return None
    try:
        return BookRecord.from_json(raw)
    except (ValueError, KeyError, TypeError) as e:
        logger.error(f"Ignoring unreadable {CURRENT_BOOK_KEY} value: {e}")
        return None


def save_current_book(storage, payload: Optional[Mapping[str, Any]]) -> BookRecord:
    """Validate, stamp and overwrite the current book.

    Invalid input raises ValidationError before storage is consulted.
    """
    title, author = validate_book_payload(payload)
    if storage is None:
        logger.error("Book update rejected: no storage backend configured")
        raise StorageUnavailable("Storage not available")

    record = BookRecord.create(title, author)
    storage.put(CURRENT_BOOK_KEY, record.to_json())
    logger.info(f"Current book set to '{record.title}' by {record.author}")
    return record
