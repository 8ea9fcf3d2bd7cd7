"""
Key-value store for named collections.

The ledger reads and writes whole collections (lists or mappings of JSON
documents) by name. Two implementations are provided: SqlStore keeps each
collection as one row in SQLite, InMemoryStore keeps them in a dict for tests
and throwaway sessions. Both share add/void_item, which build on get/set.
"""

import copy
import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Generator, Optional, Protocol

from sqlalchemy.orm import Session

from exchange_desk.lib.db import db_session
from exchange_desk.lib.errors import StoreError
from exchange_desk.models.store_entry import StoreEntry
from exchange_desk.models.transaction import TransactionStatus

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def next_id(items: list[dict[str, Any]], now: datetime) -> int:
    """
    Generate a timestamp-derived id that is strictly greater than any existing id.

    Args:
        items: Existing collection items
        now: Current time

    Returns:
        Epoch milliseconds, bumped past the largest existing id if needed
    """
    candidate = int(now.timestamp() * 1000)
    existing = [int(item["id"]) for item in items if isinstance(item.get("id"), (int, float))]
    if existing:
        candidate = max(candidate, max(existing) + 1)
    return candidate


def _to_document(value: Any) -> Any:
    """Copy a value through JSON so stored data never aliases caller objects."""
    try:
        return json.loads(json.dumps(value))
    except (TypeError, ValueError) as e:
        raise StoreError(f"Value is not JSON serializable: {e}") from e


class KeyValueStore(Protocol):
    """Interface the ledger depends on for persistence."""

    clock: Clock

    def get(self, key: str) -> Any:
        """Return the collection stored under key, or None."""
        ...

    def set(self, key: str, value: Any) -> None:
        """Replace the collection stored under key."""
        ...

    def add(self, key: str, item: dict[str, Any]) -> dict[str, Any]:
        """Append item with a fresh id and date, returning the stored item."""
        ...

    def void_item(
        self, key: str, item_id: int, reason: str, voided_by: str
    ) -> Optional[dict[str, Any]]:
        """Mark item voided, or return None if missing or already voided."""
        ...

    def batch(self) -> Any:
        """Context manager making the enclosed operations atomic."""
        ...


class BaseStore:
    """Collection helpers shared by all store implementations."""

    def __init__(self, clock: Optional[Clock] = None):
        """
        Initialize store.

        Args:
            clock: Callable returning the current time (default: UTC now)
        """
        self.clock: Clock = clock or utc_now

    def get(self, key: str) -> Any:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def add(self, key: str, item: dict[str, Any]) -> dict[str, Any]:
        """
        Append an item to a list collection.

        Assigns ``id`` (timestamp-derived, monotonic) and ``date`` (ISO
        timestamp), overwriting any values the caller supplied.

        Args:
            key: Collection name
            item: Item fields

        Returns:
            The stored item including id and date
        """
        items = self.get(key) or []
        if not isinstance(items, list):
            raise StoreError(f"Collection '{key}' is not a list")

        now = self.clock()
        stored = dict(item)
        stored["id"] = next_id(items, now)
        stored["date"] = now.isoformat()
        items.append(stored)
        self.set(key, items)

        logger.debug(f"Added item {stored['id']} to {key}")
        return stored

    def void_item(
        self, key: str, item_id: int, reason: str, voided_by: str
    ) -> Optional[dict[str, Any]]:
        """
        Mark an item in a list collection as voided.

        The item is kept in the collection for the audit trail.

        Args:
            key: Collection name
            item_id: Id of the item to void
            reason: Void reason (may be empty)
            voided_by: Name of the acting user

        Returns:
            The updated item, or None if not found or already voided
        """
        items = self.get(key) or []
        for item in items:
            if item.get("id") is None or int(item["id"]) != int(item_id):
                continue

            if item.get("status") == TransactionStatus.VOIDED.value:
                logger.info(f"Item {item_id} in {key} is already voided")
                return None

            item["status"] = TransactionStatus.VOIDED.value
            item["void_reason"] = reason
            item["voided_by"] = voided_by
            self.set(key, items)
            return item

        logger.info(f"Item {item_id} not found in {key}")
        return None


class InMemoryStore(BaseStore):
    """Dict-backed store. Values are copied through JSON on every read and write."""

    def __init__(
        self, initial: Optional[dict[str, Any]] = None, clock: Optional[Clock] = None
    ):
        """
        Initialize in-memory store.

        Args:
            initial: Optional initial collections
            clock: Callable returning the current time
        """
        super().__init__(clock)
        self._data: dict[str, Any] = {k: _to_document(v) for k, v in (initial or {}).items()}

    def get(self, key: str) -> Any:
        if key not in self._data:
            return None
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = _to_document(value)

    def keys(self) -> list[str]:
        """Names of all stored collections."""
        return sorted(self._data)

    @contextmanager
    def batch(self) -> Generator["InMemoryStore", None, None]:
        """Restore the previous contents if the enclosed operations fail."""
        snapshot = copy.deepcopy(self._data)
        try:
            yield self
        except Exception:
            self._data = snapshot
            raise


class SqlStore(BaseStore):
    """SQLite-backed store with one StoreEntry row per collection."""

    def __init__(self, clock: Optional[Clock] = None):
        """
        Initialize SQL store.

        Args:
            clock: Callable returning the current time
        """
        super().__init__(clock)
        self._session: Optional[Session] = None

    @contextmanager
    def _use_session(self) -> Generator[Session, None, None]:
        """Reuse the batch session if one is open, otherwise a short-lived one."""
        if self._session is not None:
            yield self._session
        else:
            with db_session() as session:
                yield session

    def get(self, key: str) -> Any:
        with self._use_session() as session:
            entry = session.get(StoreEntry, key)
            if entry is None:
                return None
            return copy.deepcopy(entry.value)

    def set(self, key: str, value: Any) -> None:
        document = _to_document(value)
        with self._use_session() as session:
            entry = session.get(StoreEntry, key)
            if entry is None:
                session.add(StoreEntry(key=key, value=document))
            else:
                entry.value = document
            session.flush()

    def keys(self) -> list[str]:
        """Names of all stored collections."""
        with self._use_session() as session:
            return sorted(entry.key for entry in session.query(StoreEntry).all())

    @contextmanager
    def batch(self) -> Generator["SqlStore", None, None]:
        """
        Run the enclosed operations in one database transaction.

        Commits when the block completes and rolls back on any exception.
        Nested batches join the outer one.
        """
        if self._session is not None:
            yield self
            return

        with db_session() as session:
            self._session = session
            try:
                yield self
            finally:
                self._session = None
