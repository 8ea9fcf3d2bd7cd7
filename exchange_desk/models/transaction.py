"""
Transaction model for currency exchange buy/sell events.

Transactions are immutable once recorded except for the one-way
active -> voided state change, which keeps the record for the audit trail.
"""

import enum
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator


class TransactionType(str, enum.Enum):
    """Direction of an exchange transaction (from the desk's point of view)."""

    BUY = "buy"  # Desk buys foreign currency from the customer
    SELL = "sell"  # Desk sells foreign currency to the customer


class TransactionStatus(str, enum.Enum):
    """Lifecycle state of a transaction."""

    ACTIVE = "active"
    VOIDED = "voided"


class RealizedFragment(BaseModel):
    """Portion of a lot consumed by a sell, kept for exact reversal."""

    amount: Decimal = Field(gt=0)
    buy_rate: Decimal = Field(gt=0)

    class Config:
        """Pydantic configuration."""

        frozen = True


class Transaction(BaseModel):
    """
    Represents one buy or sell event in the exchange transaction log.

    Attributes:
        id: Timestamp-derived monotonic identifier
        type: buy or sell
        currency: Foreign currency code
        amount: Quantity of foreign currency (always positive)
        rate: Exchange rate applied (local currency per unit)
        date: Creation timestamp
        customer: Customer name
        id_card: Customer identity document number
        status: active or voided
        void_reason: Reason given when voided
        voided_by: Actor who voided the transaction
        realized: Lot fragments consumed by a sell (None for buys and legacy sells)
        shortfall_amount: Sold quantity not covered by any lot (zero cost basis)
    """

    id: int
    type: TransactionType
    currency: str
    amount: Decimal = Field(gt=0)
    rate: Decimal = Field(gt=0)
    date: datetime
    customer: str = ""
    id_card: str = ""
    status: TransactionStatus = TransactionStatus.ACTIVE
    void_reason: Optional[str] = None
    voided_by: Optional[str] = None
    realized: Optional[list[RealizedFragment]] = None
    shortfall_amount: Decimal = Field(default=Decimal("0"), ge=0)

    class Config:
        """Pydantic configuration."""

        frozen = True
        extra = "ignore"

    @model_validator(mode="before")
    @classmethod
    def derive_shortfall(cls, data: Any) -> Any:
        """Fill in shortfall_amount for sells stored before it was recorded."""
        if not isinstance(data, dict) or "shortfall_amount" in data:
            return data

        realized = data.get("realized")
        if realized is None or data.get("amount") is None:
            return data

        try:
            covered = sum(
                (
                    Decimal(str(f["amount"] if isinstance(f, dict) else f.amount))
                    for f in realized
                ),
                Decimal("0"),
            )
            shortfall = Decimal(str(data["amount"])) - covered
        except (InvalidOperation, KeyError, TypeError, AttributeError):
            return data

        if shortfall > 0:
            data = {**data, "shortfall_amount": shortfall}
        return data

    @model_validator(mode="after")
    def check_consistency(self) -> "Transaction":
        """Enforce void-field and realized-breakdown invariants."""
        if self.status == TransactionStatus.ACTIVE:
            if self.void_reason is not None or self.voided_by is not None:
                raise ValueError("void_reason/voided_by are only allowed on voided transactions")
        elif self.voided_by is None:
            raise ValueError("voided transactions must record voided_by")

        if self.type == TransactionType.BUY:
            if self.realized is not None:
                raise ValueError("buy transactions cannot carry a realized breakdown")
            if self.shortfall_amount != 0:
                raise ValueError("buy transactions cannot carry a shortfall")
        elif self.realized is not None:
            covered = sum((f.amount for f in self.realized), Decimal("0"))
            if covered + self.shortfall_amount != self.amount:
                raise ValueError(
                    f"realized breakdown ({covered}) plus shortfall ({self.shortfall_amount}) "
                    f"must equal amount ({self.amount})"
                )

        return self

    @property
    def is_active(self) -> bool:
        """True unless the transaction has been voided."""
        return self.status == TransactionStatus.ACTIVE

    @property
    def total(self) -> Decimal:
        """Local-currency value of the transaction."""
        return self.amount * self.rate

    @property
    def signed_amount(self) -> Decimal:
        """Effect on net holdings: positive for buys, negative for sells."""
        return self.amount if self.type == TransactionType.BUY else -self.amount

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Transaction(id={self.id}, {self.type.value} {self.amount} {self.currency} "
            f"@ {self.rate}, status={self.status.value})>"
        )
