"""Key-value stores holding the club's current book.

Both backends expose the same two calls, `get(key)` and `put(key, value)`,
with string values. Writes overwrite unconditionally.
"""

import logging
from typing import Dict, Optional

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.sql import func

logger = logging.getLogger("book_club.storage")

db = SQLAlchemy()

# Dialects with INSERT ... ON CONFLICT DO UPDATE; others fall back to merge()
_UPSERTS = {"sqlite": sqlite_insert, "postgresql": postgresql_insert}


class KeyValue(db.Model):  # type: ignore
    __tablename__ = "key_value"

    key = db.Column(db.String(120), primary_key=True)
    value = db.Column(db.Text, nullable=False)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class SQLAlchemyStorage:
    """Store backed by the application database (DB_URL)."""

    def get(self, key: str) -> Optional[str]:
        row = db.session.get(KeyValue, key)
        return row.value if row else None

    def put(self, key: str, value: str) -> None:
        # Single-statement upsert, so the last writer wins even on the first write.
        upsert = _UPSERTS.get(db.session.get_bind().dialect.name)
        try:
            if upsert is None:
                db.session.merge(KeyValue(key=key, value=value))
            else:
                stmt = upsert(KeyValue).values(key=key, value=value)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[KeyValue.key],
                    set_={"value": stmt.excluded.value, "updated_at": func.now()},
                )
                db.session.execute(stmt)
            db.session.commit()
        except Exception:
            db.session.rollback()
            logger.error(f"Failed to write key {key}")
            raise


class MockStorage:
    """In-memory store used in test mode."""

    def __init__(self):
        self.values: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def put(self, key: str, value: str) -> None:
        self.values[key] = value

    def clear(self) -> None:
        self.values.clear()
