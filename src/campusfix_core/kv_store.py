"""Key-value persistence used as the sole durable state.

Every component receives a ``KeyValueStore`` explicitly; nothing in the
core holds a process-wide store. Values are JSON-compatible structures.

Each key carries a version number so counters can be updated with an
optimistic compare-and-set instead of a blind read-modify-write:

    update_with_retry(store, "issue:123", bump_upvotes)

re-reads and retries when another writer got there first.
"""
import abc
import logging
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .models import KVEntry

logger = logging.getLogger("campusfix-core.kv_store")


class StoreError(Exception):
    """Opaque failure reported by the persistence layer."""


class StoreConflictError(StoreError):
    """Raised when optimistic retries are exhausted for a key."""

    def __init__(self, key: str, attempts: int):
        super().__init__(f"Concurrent update conflict on '{key}' after {attempts} attempts")
        self.key = key
        self.attempts = attempts


class KeyValueStore(abc.ABC):
    """Storage capability consumed by the domain engine."""

    @abc.abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the value stored under ``key`` or None."""

    @abc.abstractmethod
    def get_versioned(self, key: str) -> tuple[Optional[Any], int]:
        """Return ``(value, version)``; a missing key is ``(None, 0)``."""

    @abc.abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Unconditionally write ``value`` under ``key``."""

    @abc.abstractmethod
    def compare_and_set(self, key: str, value: Any, expected_version: int) -> bool:
        """Write only if the stored version equals ``expected_version``.

        ``expected_version == 0`` means the key must not exist yet.
        Returns False on a version conflict.
        """

    @abc.abstractmethod
    def delete(self, key: str) -> bool:
        """Remove ``key``; returns whether anything was deleted."""

    @abc.abstractmethod
    def scan_by_prefix(self, prefix: str) -> list[tuple[str, Any]]:
        """Return every ``(key, value)`` whose key starts with ``prefix``."""


class SqlKeyValueStore(KeyValueStore):
    """KeyValueStore backed by the ``kv_entries`` table.

    Every call runs in its own short session, matching the one-unit-of-work
    per operation model of the service.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _session(self) -> Session:
        return self._session_factory()

    def get(self, key: str) -> Optional[Any]:
        value, _ = self.get_versioned(key)
        return value

    def get_versioned(self, key: str) -> tuple[Optional[Any], int]:
        try:
            with self._session() as db:
                entry = db.query(KVEntry).filter(KVEntry.key == key).first()
                if entry is None:
                    return None, 0
                return entry.value, entry.version
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read '{key}': {e}") from e

    def set(self, key: str, value: Any) -> None:
        try:
            with self._session() as db:
                entry = db.query(KVEntry).filter(KVEntry.key == key).first()
                if entry is None:
                    db.add(KVEntry(key=key, value=value, version=1))
                else:
                    entry.value = value
                    entry.version = entry.version + 1
                    entry.updated_at = datetime.utcnow()
                db.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to write '{key}': {e}") from e

    def compare_and_set(self, key: str, value: Any, expected_version: int) -> bool:
        try:
            with self._session() as db:
                if expected_version == 0:
                    db.add(KVEntry(key=key, value=value, version=1))
                    try:
                        db.commit()
                    except IntegrityError:
                        db.rollback()
                        return False
                    return True

                updated = (
                    db.query(KVEntry)
                    .filter(KVEntry.key == key, KVEntry.version == expected_version)
                    .update(
                        {
                            KVEntry.value: value,
                            KVEntry.version: KVEntry.version + 1,
                            KVEntry.updated_at: datetime.utcnow(),
                        },
                        synchronize_session=False,
                    )
                )
                db.commit()
                return updated == 1
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to write '{key}': {e}") from e

    def delete(self, key: str) -> bool:
        try:
            with self._session() as db:
                deleted = db.query(KVEntry).filter(KVEntry.key == key).delete(synchronize_session=False)
                db.commit()
                return deleted > 0
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to delete '{key}': {e}") from e

    def scan_by_prefix(self, prefix: str) -> list[tuple[str, Any]]:
        try:
            with self._session() as db:
                entries = (
                    db.query(KVEntry)
                    .filter(KVEntry.key.startswith(prefix, autoescape=True))
                    .order_by(KVEntry.key)
                    .all()
                )
                # SQLite LIKE is case-insensitive
                return [(entry.key, entry.value) for entry in entries if entry.key.startswith(prefix)]
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to scan '{prefix}': {e}") from e


def update_with_retry(
    store: KeyValueStore,
    key: str,
    mutate: Callable[[Optional[Any]], Optional[Any]],
    max_retries: int = 5,
) -> Optional[Any]:
    """
    Apply ``mutate`` to the value under ``key`` with optimistic concurrency.

    ``mutate`` receives the current value (None when absent) and returns the
    new value. Returning None skips the write and hands back the current
    value unchanged. Exceptions raised by ``mutate`` propagate untouched.

    Args:
        store: Key-value store
        key: Key to update
        mutate: Pure function from current value to new value
        max_retries: Extra attempts after the first conflict

    Returns:
        The value that was written (or the current value when skipped)

    Raises:
        StoreConflictError: If every attempt lost the race
    """
    attempts = max_retries + 1
    for attempt in range(1, attempts + 1):
        current, version = store.get_versioned(key)
        new_value = mutate(current)
        if new_value is None:
            return current
        if store.compare_and_set(key, new_value, version):
            return new_value
        logger.warning(f"Version conflict on {key} (attempt {attempt}/{attempts}), retrying")

    raise StoreConflictError(key, attempts)
