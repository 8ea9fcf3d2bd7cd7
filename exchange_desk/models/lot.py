"""
Currency lot model for FIFO cost-basis tracking.

Each buy creates a lot holding the bought quantity at its buy rate. Sells
draw lots down from the head of the queue (oldest first).
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class Lot(BaseModel):
    """
    A quantity of one currency still held, acquired at a specific rate.

    Attributes:
        amount: Remaining quantity (never negative)
        rate: Buy rate at which the lot was acquired
        date: Acquisition timestamp (audit only, queue order is FIFO)
    """

    amount: Decimal = Field(ge=0)
    rate: Decimal = Field(gt=0)
    date: datetime

    class Config:
        """Pydantic configuration."""

        validate_assignment = True
        extra = "ignore"

    @property
    def cost(self) -> Decimal:
        """Local-currency cost basis of the remaining quantity."""
        return self.amount * self.rate

    def same_origin(self, amount: Decimal, rate: Decimal, date: datetime) -> bool:
        """True if this lot is exactly the one a buy of (amount, rate, date) created."""
        return self.amount == amount and self.rate == rate and self.date == date

    def __repr__(self) -> str:
        """String representation."""
        return f"<Lot(amount={self.amount}, rate={self.rate}, date={self.date.isoformat()})>"
