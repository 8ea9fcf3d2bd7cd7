"""
Key-value store entry model.

Each named collection (transactions, holdings, rates, activity logs) is kept
as a single JSON document row.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, TIMESTAMP, String
from sqlalchemy.orm import Mapped, mapped_column

from exchange_desk.lib.db import Base


class StoreEntry(Base):  # type: ignore[misc,valid-type]
    """
    Represents one named collection in the key-value store.

    Attributes:
        key: Collection name (e.g., exchange_transactions)
        value: JSON document (list or mapping)
        created_at: Record creation timestamp
        updated_at: Last write timestamp
    """

    __tablename__ = "store_entries"

    key: Mapped[str] = mapped_column(
        String(100),
        primary_key=True,
        comment="Collection name",
    )

    value: Mapped[Any] = mapped_column(
        JSON,
        nullable=False,
        comment="Collection contents as a JSON document",
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<StoreEntry(key={self.key}, updated_at={self.updated_at})>"
