"""FIFO lot queue operations for currency holdings.

Implements:
- Lot creation at the tail of a currency's queue for buys
- FIFO consumption from the head for sells, with zero-cost-basis shortfall
- Reversal helpers used when voiding (exact removal, LIFO trim, head reinsertion)
- Pure replay of realized profit over a transaction sequence

All functions operate on a plain ``list[Lot]`` ordered oldest first and
mutate it in place where documented. Nothing here touches the store.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from exchange_desk.models.lot import Lot
from exchange_desk.models.transaction import RealizedFragment, Transaction, TransactionType

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass
class SellAllocation:
    """Result of drawing a sell down against a lot queue.

    Attributes:
        realized: Consumed lot fragments in consumption order
        shortfall_amount: Quantity sold beyond all available lots
    """

    realized: list[RealizedFragment] = field(default_factory=list)
    shortfall_amount: Decimal = ZERO

    @property
    def covered_amount(self) -> Decimal:
        """Quantity matched against lots."""
        return sum((f.amount for f in self.realized), ZERO)


def push_lot(lots: list[Lot], amount: Decimal, rate: Decimal, date: datetime) -> Lot:
    """Append a new lot to the tail of the queue.

    Args:
        lots: Lot queue (mutated)
        amount: Bought quantity
        rate: Buy rate
        date: Acquisition timestamp

    Returns:
        The created lot
    """
    lot = Lot(amount=amount, rate=rate, date=date)
    lots.append(lot)
    return lot


def consume_fifo(lots: list[Lot], amount: Decimal) -> SellAllocation:
    """Consume ``amount`` from the head of the queue, oldest lots first.

    Each step takes ``min(remaining, lot.amount)`` from the head lot and
    records a fragment with the lot's buy rate. Emptied lots are evicted
    immediately. If the queue runs dry first, the leftover is returned as a
    shortfall instead of raising.

    Args:
        lots: Lot queue (mutated)
        amount: Quantity sold

    Returns:
        SellAllocation with fragments and shortfall
    """
    allocation = SellAllocation()
    remaining = amount

    while remaining > 0 and lots:
        lot = lots[0]
        if lot.amount <= 0:
            lots.pop(0)
            continue

        take = min(remaining, lot.amount)
        allocation.realized.append(RealizedFragment(amount=take, buy_rate=lot.rate))
        lot.amount = lot.amount - take
        remaining -= take

        logger.debug(f"Consumed {take} @ {lot.rate} from head lot, {lot.amount} left in lot")

        if lot.amount <= 0:
            lots.pop(0)

    if remaining > 0:
        allocation.shortfall_amount = remaining

    return allocation


def realized_profit(
    sell_rate: Decimal, realized: Iterable[RealizedFragment], shortfall_amount: Decimal = ZERO
) -> Decimal:
    """Profit recognized by a sell.

    Matched fragments earn the spread between sell and buy rate; the shortfall
    has no cost basis, so its full proceeds count as profit.

    Args:
        sell_rate: Rate the currency was sold at
        realized: Consumed lot fragments
        shortfall_amount: Quantity sold without a matching lot

    Returns:
        Realized profit in local currency
    """
    profit = sum(((sell_rate - f.buy_rate) * f.amount for f in realized), ZERO)
    return profit + sell_rate * shortfall_amount


def remove_exact_lot(lots: list[Lot], amount: Decimal, rate: Decimal, date: datetime) -> bool:
    """Remove the first lot (head to tail) matching amount, rate and date exactly.

    Args:
        lots: Lot queue (mutated)
        amount: Original bought quantity
        rate: Original buy rate
        date: Original acquisition timestamp

    Returns:
        True if a lot was removed
    """
    for index, lot in enumerate(lots):
        if lot.same_origin(amount, rate, date):
            del lots[index]
            return True
    return False


def trim_lifo(lots: list[Lot], amount: Decimal) -> Decimal:
    """Remove ``amount`` starting from the most recently added lots.

    A lot larger than the quantity still to remove is split (shrunk) rather
    than dropped.

    Args:
        lots: Lot queue (mutated)
        amount: Quantity to remove

    Returns:
        Quantity that could not be removed because the queue ran dry
    """
    remaining = amount

    while remaining > 0 and lots:
        lot = lots[-1]
        take = min(remaining, lot.amount)
        lot.amount = lot.amount - take
        remaining -= take
        if lot.amount <= 0:
            lots.pop()

    return remaining


def reinsert_at_head(
    lots: list[Lot], fragments: Iterable[RealizedFragment], date: datetime
) -> list[Lot]:
    """Put consumed fragments back at the head of the queue.

    The reinserted lots keep the fragment order (first consumed ends up first
    in the queue) and carry ``date`` rather than the original acquisition date.

    Args:
        lots: Lot queue (mutated)
        fragments: Fragments to restore
        date: Timestamp for the new lots

    Returns:
        The reinserted lots
    """
    restored = [Lot(amount=f.amount, rate=f.buy_rate, date=date) for f in fragments if f.amount > 0]
    lots[0:0] = restored
    return restored


def total_amount(lots: Iterable[Lot]) -> Decimal:
    """Sum of lot amounts."""
    return sum((lot.amount for lot in lots), ZERO)


def average_rate(lots: list[Lot]) -> Decimal:
    """Amount-weighted average buy rate, 0 when nothing is held."""
    total = total_amount(lots)
    if total <= 0:
        return ZERO
    return sum((lot.cost for lot in lots), ZERO) / total


def replay_realized_profit(transactions: Iterable[Transaction]) -> Decimal:
    """Recompute realized profit from scratch over a transaction sequence.

    Transactions are replayed in ascending date order against empty queues,
    voided ones skipped, using the same FIFO and shortfall policy as live
    sells. Stored holdings are never read or written.

    Args:
        transactions: Transactions to replay (any order)

    Returns:
        Total realized profit in local currency
    """
    queues: dict[str, list[Lot]] = {}
    profit = ZERO

    for txn in sorted(transactions, key=lambda t: t.date):
        if not txn.is_active:
            continue

        queue = queues.setdefault(txn.currency, [])
        if txn.type == TransactionType.BUY:
            push_lot(queue, txn.amount, txn.rate, txn.date)
        else:
            allocation = consume_fifo(queue, txn.amount)
            profit += realized_profit(txn.rate, allocation.realized, allocation.shortfall_amount)

    return profit
