"""
Session Store Service

Persists completed session summaries, one collection per dance form, on top
of a small string key/value storage backend with a byte quota.

Two backends are provided:
- MemoryStorage: process memory, for tests and throwaway servers
- SqlStorage: a single key/value table through SQLAlchemy Core
  (SQLite by default, any SQLAlchemy URL works)
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, List, Optional

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, delete, insert, select
from sqlalchemy.exc import SQLAlchemyError

from .. import config
from ..domain.session import SessionSummary
from ..domain.errors import NotFound, PersistenceFailure, StepCoachError

# Configure logging
logger = logging.getLogger(__name__)


def collection_key(dance_id: str) -> str:
    """Storage key holding every summary recorded for one dance form."""
    return f"{config.COLLECTION_PREFIX}{dance_id}"


# =============================================================================
# Storage Backends
# =============================================================================

class StorageBackend(ABC):
    """
    String key/value storage with a total size quota.

    Size is measured as UTF-8 bytes of every key plus every value.
    """

    def __init__(self, quota_bytes: int = config.STORAGE_QUOTA_BYTES):
        self.quota_bytes = quota_bytes

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove_item(self, key: str) -> None:
        ...

    @abstractmethod
    def keys(self) -> list[str]:
        ...

    def close(self) -> None:
        """Release backend resources."""

    def _check_quota(self, items: dict[str, str]) -> None:
        used = sum(len(k.encode("utf-8")) + len(v.encode("utf-8")) for k, v in items.items())
        if used > self.quota_bytes:
            raise PersistenceFailure(
                f"Storage quota exceeded ({used} > {self.quota_bytes} bytes)"
            )


class MemoryStorage(StorageBackend):
    """Keeps everything in a dict."""

    def __init__(self, quota_bytes: int = config.STORAGE_QUOTA_BYTES):
        super().__init__(quota_bytes)
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        updated = {**self._items, key: value}
        self._check_quota(updated)
        self._items = updated

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


metadata = MetaData()

# One row per storage key; values are JSON documents
storage_items_table = Table(
    'storage_items',
    metadata,
    Column('key', String(255), primary_key=True),
    Column('value', Text, nullable=False),
)


class SqlStorage(StorageBackend):
    """
    Keeps everything in the ``storage_items`` table.

    The table is created on first use. Each write runs in its own
    transaction, and the quota is checked before that transaction commits,
    so a rejected write leaves the previous rows intact.

    Usage:
        storage = SqlStorage("sqlite:///stepcoach.db")
        store = SessionStore(storage)
    """

    def __init__(self, url: str = config.DATABASE_URL, quota_bytes: int = config.STORAGE_QUOTA_BYTES):
        super().__init__(quota_bytes)
        self.url = url
        self.engine = create_engine(url, echo=False, pool_pre_ping=True)
        self._schema_ready = False

    def get_item(self, key: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute(
                select(storage_items_table.c.value).where(storage_items_table.c.key == key)
            ).first()
        return row[0] if row is not None else None

    def set_item(self, key: str, value: str) -> None:
        with self._begin() as conn:
            rows = conn.execute(select(storage_items_table.c.key, storage_items_table.c.value))
            items = {row[0]: row[1] for row in rows}
            items[key] = value
            self._check_quota(items)

            conn.execute(delete(storage_items_table).where(storage_items_table.c.key == key))
            conn.execute(insert(storage_items_table).values(key=key, value=value))

    def remove_item(self, key: str) -> None:
        with self._begin() as conn:
            conn.execute(delete(storage_items_table).where(storage_items_table.c.key == key))

    def keys(self) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute(select(storage_items_table.c.key).order_by(storage_items_table.c.key))
            return [row[0] for row in rows]

    def close(self) -> None:
        self.engine.dispose()

    # -------------------------------------------------------------------------
    # Private Helper Methods
    # -------------------------------------------------------------------------

    def _ensure_schema(self) -> None:
        if not self._schema_ready:
            metadata.create_all(self.engine)
            self._schema_ready = True

    @contextmanager
    def _connect(self):
        """Read-only connection; database errors become PersistenceFailure."""
        try:
            self._ensure_schema()
            with self.engine.connect() as conn:
                yield conn
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Database error on {self.engine.url}: {e}") from e

    @contextmanager
    def _begin(self):
        """Transaction that commits on success and rolls back on any error."""
        try:
            self._ensure_schema()
            with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Database error on {self.engine.url}: {e}") from e


def create_storage(
    backend: str = config.STORAGE_BACKEND,
    url: str = config.DATABASE_URL,
    quota_bytes: int = config.STORAGE_QUOTA_BYTES,
) -> StorageBackend:
    """Build the storage backend named in configuration."""
    if backend == "memory":
        return MemoryStorage(quota_bytes)
    if backend == "sql":
        return SqlStorage(url, quota_bytes)
    raise ValueError(f"Unknown storage backend: {backend}")


# =============================================================================
# Session Store
# =============================================================================

class SessionStore:
    """
    Save, list and look up session summaries.

    Safe to call from a worker thread (the practice engine saves off the
    event loop) while request handlers read from the server's threadpool.
    Any backend error that is not already a StepCoach error surfaces as
    PersistenceFailure.

    Usage:
        store = SessionStore(MemoryStorage())
        store.save(summary)
        latest = store.list(dance_id="salsa")[0]
    """

    def __init__(self, storage: Optional[StorageBackend] = None):
        self.storage = storage or MemoryStorage()
        self._lock = threading.Lock()

    def save(self, summary: SessionSummary) -> None:
        """
        Append a summary to its dance collection.

        Saving a session id that is already stored replaces that entry.

        Raises:
            PersistenceFailure: quota exceeded, unreadable storage or the
                summary could not be serialized
        """
        key = collection_key(summary.dance_id)
        with self._lock, self._guard("save"):
            entries = [e for e in self._load(key) if e.session_id != summary.session_id]
            entries.append(summary)
            self._store(key, entries)
        logger.info(f"Saved session {summary.session_id} to '{key}'")

    def list(self, dance_id: Optional[str] = None) -> list[SessionSummary]:
        """Summaries newest first, optionally limited to one dance form."""
        with self._lock, self._guard("list"):
            if dance_id is not None:
                keys = [collection_key(dance_id)]
            else:
                keys = [k for k in self.storage.keys() if k.startswith(config.COLLECTION_PREFIX)]

            ordered = []
            for key in keys:
                ordered.extend(self._load(key))

        # Sort is stable, so reverse insertion order breaks created_at ties
        ordered.reverse()
        return sorted(ordered, key=lambda s: s.created_at, reverse=True)

    def get(self, session_id: str) -> SessionSummary:
        """
        Look up one summary.

        Raises:
            NotFound: no summary with this id
        """
        with self._lock, self._guard("get"):
            _, summary = self._find(session_id)
        return summary

    def mark_verified(self, session_id: str, verified: bool) -> SessionSummary:
        """
        Record the verification authority's verdict.

        Raises:
            NotFound: no summary with this id
        """
        with self._lock, self._guard("mark_verified"):
            key, summary = self._find(session_id)
            updated = summary.with_verified(verified)
            entries = [updated if e.session_id == session_id else e for e in self._load(key)]
            self._store(key, entries)
        logger.info(f"Session {session_id} verified={verified}")
        return updated

    def delete(self, session_id: str) -> None:
        """
        Remove a summary.

        Raises:
            NotFound: no summary with this id
        """
        with self._lock, self._guard("delete"):
            key, _ = self._find(session_id)
            entries = [e for e in self._load(key) if e.session_id != session_id]
            if entries:
                self._store(key, entries)
            else:
                self.storage.remove_item(key)
        logger.info(f"Deleted session {session_id}")

    # -------------------------------------------------------------------------
    # Private Helper Methods (callers hold the lock)
    # -------------------------------------------------------------------------

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        """Let StepCoach errors through; wrap anything else the backend raises."""
        try:
            yield
        except StepCoachError:
            raise
        except Exception as e:
            logger.error(f"Storage backend failed during {operation}: {e!r}")
            raise PersistenceFailure(f"Storage backend failed during {operation}: {e}") from e

    def _find(self, session_id: str) -> tuple[str, SessionSummary]:
        for key in self.storage.keys():
            if not key.startswith(config.COLLECTION_PREFIX):
                continue
            for summary in self._load(key):
                if summary.session_id == session_id:
                    return key, summary
        raise NotFound(session_id)

    def _load(self, key: str) -> List[SessionSummary]:
        raw = self.storage.get_item(key)
        if raw is None:
            return []
        try:
            return [SessionSummary.from_dict(item) for item in json.loads(raw)]
        except (ValueError, KeyError, TypeError) as e:
            raise PersistenceFailure(f"Collection '{key}' is corrupted: {e}") from e

    def _store(self, key: str, entries: List[SessionSummary]) -> None:
        try:
            payload = json.dumps([e.to_dict() for e in entries])
        except (TypeError, ValueError) as e:
            raise PersistenceFailure(f"Could not serialize collection '{key}': {e}") from e
        self.storage.set_item(key, payload)
