"""Exchange reporting for the dashboard, records and holdings views.

All functions are read-only aggregations over a list of transactions.
Voided transactions are excluded from every figure; only the records view
lists them.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable

from exchange_desk.lib.config import EXCHANGE_SPREAD
from exchange_desk.models.transaction import Transaction, TransactionType
from exchange_desk.services.fifo import ZERO, replay_realized_profit


@dataclass
class VolumeSplit:
    """Local-currency volume split by direction."""

    buy: Decimal = ZERO
    sell: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.buy + self.sell


@dataclass
class DashboardStats:
    """Exchange dashboard figures.

    Attributes:
        bought: Foreign quantity bought per currency
        sold: Foreign quantity sold per currency
        volume_by_currency: Local-currency volume (amount * rate) per currency
        week_volume: Volume since the start of the week (Sunday)
        month_volume: Volume since the first of the month
        estimated_profit: Realized profit estimate
        profit_method: "fifo_lots" or "average_cost"
    """

    bought: dict[str, Decimal] = field(default_factory=dict)
    sold: dict[str, Decimal] = field(default_factory=dict)
    volume_by_currency: dict[str, Decimal] = field(default_factory=dict)
    week_volume: VolumeSplit = field(default_factory=VolumeSplit)
    month_volume: VolumeSplit = field(default_factory=VolumeSplit)
    estimated_profit: Decimal = ZERO
    profit_method: str = "fifo_lots"

    @property
    def total_volume(self) -> Decimal:
        return sum(self.volume_by_currency.values(), ZERO)


@dataclass
class PeriodMetrics:
    """Exchange figures for one analytics period."""

    start: datetime
    end: datetime
    transaction_count: int
    exchange_volume: Decimal
    spread_revenue: Decimal


@dataclass
class HoldingsRow:
    """Holdings derived from transactions when no lot data exists."""

    currency: str
    bought: Decimal
    sold: Decimal
    net: Decimal
    average_buy_rate: Decimal

    @property
    def cost_value(self) -> Decimal:
        return self.net * self.average_buy_rate


def _active(transactions: Iterable[Transaction]) -> list[Transaction]:
    return [txn for txn in transactions if txn.is_active]


def start_of_week(now: datetime) -> datetime:
    """Midnight of the most recent Sunday (same timezone as ``now``)."""
    days_since_sunday = (now.weekday() + 1) % 7
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight - timedelta(days=days_since_sunday)


def start_of_month(now: datetime) -> datetime:
    """Midnight of the first day of the month (same timezone as ``now``)."""
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def estimate_profit_average_cost(transactions: Iterable[Transaction]) -> Decimal:
    """Realized profit using a running weighted-average buy rate.

    Used for data recorded before lot-based holdings existed. The average is
    recalculated on buys only; a sell with no prior buy is costed at its own
    rate (zero profit).

    Args:
        transactions: Transactions (any order)

    Returns:
        Estimated realized profit
    """
    positions: dict[str, dict[str, Decimal]] = {}
    profit = ZERO

    for txn in sorted(_active(transactions), key=lambda t: t.date):
        pos = positions.setdefault(
            txn.currency, {"amount": ZERO, "cost": ZERO, "avg_rate": ZERO}
        )
        if txn.type == TransactionType.BUY:
            pos["amount"] += txn.amount
            pos["cost"] += txn.amount * txn.rate
            if pos["amount"] > 0:
                pos["avg_rate"] = pos["cost"] / pos["amount"]
        else:
            cost_rate = pos["avg_rate"] or txn.rate
            profit += (txn.rate - cost_rate) * txn.amount
            pos["amount"] -= txn.amount
            pos["cost"] -= txn.amount * cost_rate

    return profit


def build_dashboard(
    transactions: Iterable[Transaction], lots_available: bool, now: datetime
) -> DashboardStats:
    """Aggregate dashboard figures.

    Args:
        transactions: Transaction log
        lots_available: Whether lot-based holdings exist (selects FIFO profit)
        now: Reference time; week and month windows start at local midnight

    Returns:
        DashboardStats
    """
    active = sorted(_active(transactions), key=lambda t: t.date)
    local_now = now.astimezone()
    week_start = start_of_week(local_now)
    month_start = start_of_month(local_now)
    stats = DashboardStats()

    for txn in active:
        totals = stats.bought if txn.type == TransactionType.BUY else stats.sold
        totals[txn.currency] = totals.get(txn.currency, ZERO) + txn.amount

        value = txn.total
        stats.volume_by_currency[txn.currency] = (
            stats.volume_by_currency.get(txn.currency, ZERO) + value
        )

        for window_start, split in (
            (week_start, stats.week_volume),
            (month_start, stats.month_volume),
        ):
            if txn.date >= window_start:
                if txn.type == TransactionType.BUY:
                    split.buy += value
                else:
                    split.sell += value

    if lots_available:
        stats.estimated_profit = replay_realized_profit(active)
        stats.profit_method = "fifo_lots"
    else:
        stats.estimated_profit = estimate_profit_average_cost(active)
        stats.profit_method = "average_cost"

    return stats


def period_metrics(
    transactions: Iterable[Transaction], start: datetime, end: datetime
) -> PeriodMetrics:
    """Exchange volume and spread revenue for transactions dated in [start, end).

    Args:
        transactions: Transaction log
        start: Period start (inclusive)
        end: Period end (exclusive)

    Returns:
        PeriodMetrics
    """
    in_period = [txn for txn in _active(transactions) if start <= txn.date < end]
    volume = sum((txn.total for txn in in_period), ZERO)
    return PeriodMetrics(
        start=start,
        end=end,
        transaction_count=len(in_period),
        exchange_volume=volume,
        spread_revenue=volume * EXCHANGE_SPREAD,
    )


def list_records(transactions: Iterable[Transaction], include_voided: bool = True) -> list[Transaction]:
    """Transactions for the records view, newest first."""
    records = list(transactions) if include_voided else _active(transactions)
    return sorted(records, key=lambda t: t.date, reverse=True)


def aggregate_holdings(transactions: Iterable[Transaction]) -> list[HoldingsRow]:
    """Bought, sold and net quantity per currency from the transaction log.

    Args:
        transactions: Transaction log

    Returns:
        One row per currency, in order of first appearance
    """
    rows: dict[str, dict[str, Decimal]] = {}

    for txn in sorted(_active(transactions), key=lambda t: t.date):
        row = rows.setdefault(txn.currency, {"bought": ZERO, "sold": ZERO, "buy_cost": ZERO})
        if txn.type == TransactionType.BUY:
            row["bought"] += txn.amount
            row["buy_cost"] += txn.total
        else:
            row["sold"] += txn.amount

    return [
        HoldingsRow(
            currency=currency,
            bought=row["bought"],
            sold=row["sold"],
            net=row["bought"] - row["sold"],
            average_buy_rate=row["buy_cost"] / row["bought"] if row["bought"] > 0 else ZERO,
        )
        for currency, row in rows.items()
    ]
