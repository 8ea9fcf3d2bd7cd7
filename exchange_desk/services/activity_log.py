"""Audit trail of user actions stored in the activity_logs collection."""

import logging
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from exchange_desk.lib.config import ACTIVITY_LOGS_KEY
from exchange_desk.lib.errors import StoreError
from exchange_desk.models.activity_log import ActivityLogEntry
from exchange_desk.services.store import KeyValueStore, next_id

logger = logging.getLogger(__name__)


def log_activity(
    store: KeyValueStore,
    actor: str,
    action_type: str,
    module_name: str,
    details: str = "",
) -> ActivityLogEntry:
    """
    Append an entry to the activity log.

    Args:
        store: Key-value store
        actor: Name of the acting user
        action_type: Create, Update, Delete or Void
        module_name: Module producing the entry
        details: Human readable description

    Returns:
        The stored entry
    """
    logs = store.get(ACTIVITY_LOGS_KEY) or []
    now = store.clock()

    entry = ActivityLogEntry(
        id=next_id(logs, now),
        actor=actor,
        action_type=action_type,
        module_name=module_name,
        details=details,
        timestamp=now,
    )
    logs.append(entry.model_dump(mode="json"))
    store.set(ACTIVITY_LOGS_KEY, logs)

    logger.debug(f"Activity: {actor} {action_type} [{module_name}] {details}")
    return entry


def get_activity_logs(
    store: KeyValueStore, limit: Optional[int] = None, module_name: Optional[str] = None
) -> list[ActivityLogEntry]:
    """
    Get activity log entries, newest first.

    Args:
        store: Key-value store
        limit: Optional maximum number of entries
        module_name: Optional module filter

    Returns:
        List of entries sorted by timestamp descending
    """
    try:
        entries = [ActivityLogEntry.model_validate(raw) for raw in store.get(ACTIVITY_LOGS_KEY) or []]
    except PydanticValidationError as e:
        raise StoreError(f"Corrupt activity log: {e}") from e

    if module_name:
        entries = [e for e in entries if e.module_name == module_name]

    entries.sort(key=lambda e: e.timestamp, reverse=True)
    return entries[:limit] if limit else entries
