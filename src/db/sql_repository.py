"""Implementation of KeyValueStore using SQLAlchemy"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from src.core.exceptions import StoreError, TransientStoreError
from src.core.shared_types import Clock, epoch_ms
from src.db.schema import DBEntry

logger = logging.getLogger(__name__)


class SQLKeyValueStore:
    """Data stored as rows of (key, value, expiry) / methods implemented using SQLAlchemy"""

    def __init__(self, db_session: Session, clock: Clock = epoch_ms) -> None:
        self.db = db_session
        self.clock = clock

    def get(self, key: str) -> str | None:
        """Get the value stored under key, if it exists and has not expired."""
        with self._translate_errors():
            entry = self._fetch_entry(key)
            if entry is None:
                return None
            if self._is_expired(entry):
                # Lazily drop the row, readers must never see it again.
                self.db.delete(entry)
                self.db.commit()
                return None
            return entry.value

    def put(self, key: str, value: str, ttl_sec: Optional[int] = None) -> None:
        """Store value under key, overwriting whatever was there."""
        now = self.clock()
        expires_at = now + ttl_sec * 1000 if ttl_sec is not None else None
        with self._translate_errors():
            self.db.merge(
                DBEntry(key=key, value=value, expires_at_ms=expires_at, updated_at_ms=now)
            )
            self.db.commit()

    def delete(self, key: str) -> None:
        """Remove key. Removing a missing key is not an error."""
        with self._translate_errors():
            self.db.execute(delete(DBEntry).where(DBEntry.key == key))
            self.db.commit()

    def purge_expired(self) -> int:
        """Physically remove every expired row. Returns the number of removed rows."""
        with self._translate_errors():
            result = self.db.execute(
                delete(DBEntry).where(
                    DBEntry.expires_at_ms.is_not(None),
                    DBEntry.expires_at_ms <= self.clock(),
                )
            )
            self.db.commit()
        removed = result.rowcount or 0
        if removed:
            logger.info(f"Purged {removed} expired store entries")
        return removed

    # -- Internal helpers --
    def _fetch_entry(self, key: str) -> DBEntry | None:
        query = select(DBEntry).where(DBEntry.key == key)
        return self.db.scalar(query)

    def _is_expired(self, entry: DBEntry) -> bool:
        return entry.expires_at_ms is not None and entry.expires_at_ms <= self.clock()

    @contextmanager
    def _translate_errors(self) -> Iterator[None]:
        """Roll back the session and re-raise SQLAlchemy errors as store errors."""
        try:
            yield
        except OperationalError as exc:
            # Locked / busy / unreachable database: worth another attempt.
            self.db.rollback()
            raise TransientStoreError(f"Store temporarily unavailable: {exc}") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreError(f"Store failure: {exc}") from exc
