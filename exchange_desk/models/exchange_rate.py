"""
Exchange rate model for the configured per-currency rate table.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from exchange_desk.models.transaction import TransactionType


class RateRecord(BaseModel):
    """
    Configured buy/sell rates for one currency.

    The generic ``rate`` field is a fallback used when the direction-specific
    field is missing (older records only carry ``rate``).
    """

    buy_rate: Optional[Decimal] = Field(default=None, gt=0)
    sell_rate: Optional[Decimal] = Field(default=None, gt=0)
    rate: Optional[Decimal] = Field(default=None, gt=0)
    created: datetime
    updated: Optional[datetime] = None

    class Config:
        """Pydantic configuration."""

        extra = "ignore"

    @field_validator("buy_rate", "sell_rate", "rate", mode="before")
    @classmethod
    def handle_unset_rate(cls, v: Any) -> Any:
        """Treat empty strings and zero as "not configured"."""
        if v in ("", None) or v == 0:
            return None
        return v

    def rate_for(self, direction: TransactionType) -> Optional[Decimal]:
        """
        Get the configured rate for a direction, falling back to ``rate``.

        Args:
            direction: buy or sell

        Returns:
            Configured rate or None
        """
        specific = self.buy_rate if direction == TransactionType.BUY else self.sell_rate
        return specific if specific is not None else self.rate

    def __repr__(self) -> str:
        """String representation showing the configured rates."""
        return f"RateRecord(buy={self.buy_rate}, sell={self.sell_rate}, fallback={self.rate})"
