"""
Models for the exchange-desk application.

StoreEntry is the SQLAlchemy table behind the key-value store; the remaining
models are pydantic documents persisted inside store collections.
"""

from exchange_desk.models.activity_log import ActivityLogEntry
from exchange_desk.models.actor import Actor, UserRole
from exchange_desk.models.exchange_rate import RateRecord
from exchange_desk.models.lot import Lot
from exchange_desk.models.store_entry import StoreEntry
from exchange_desk.models.transaction import (
    RealizedFragment,
    Transaction,
    TransactionStatus,
    TransactionType,
)

__all__ = [
    # Persistence
    "StoreEntry",
    # Ledger documents
    "Transaction",
    "RealizedFragment",
    "Lot",
    "RateRecord",
    "ActivityLogEntry",
    # Context
    "Actor",
    # Enums
    "TransactionType",
    "TransactionStatus",
    "UserRole",
]
