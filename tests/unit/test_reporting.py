"""Unit tests for exchange reporting."""

import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from exchange_desk.models.transaction import Transaction, TransactionStatus, TransactionType
from exchange_desk.services.reporting import (
    aggregate_holdings,
    build_dashboard,
    estimate_profit_average_cost,
    list_records,
    period_metrics,
    start_of_month,
    start_of_week,
)

# Wednesday
NOW = datetime(2024, 3, 13, 15, 30, tzinfo=timezone.utc)


def txn(txn_id, txn_type, amount, rate, date, currency="USD", voided=False):
    extra = {"status": TransactionStatus.VOIDED, "voided_by": "Alice"} if voided else {}
    return Transaction(
        id=txn_id,
        type=txn_type,
        currency=currency,
        amount=Decimal(amount),
        rate=Decimal(rate),
        date=date,
        **extra,
    )


@pytest.fixture
def tokyo_local_time(monkeypatch):
    """Run with the process local timezone set to UTC+9."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset not available on this platform")
    monkeypatch.setenv("TZ", "JST-9")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


@pytest.fixture
def sample_transactions():
    """Buys and sells spread over the last two months."""
    return [
        txn(1, TransactionType.BUY, "100", "1.0", NOW - timedelta(days=40)),
        txn(2, TransactionType.BUY, "100", "2.0", NOW - timedelta(days=10)),
        txn(3, TransactionType.SELL, "150", "3.0", NOW - timedelta(days=1)),
        txn(4, TransactionType.BUY, "50", "0.9", NOW - timedelta(hours=2), currency="EUR"),
        txn(5, TransactionType.BUY, "999", "9.9", NOW - timedelta(hours=1), voided=True),
    ]


@pytest.mark.unit
class TestWindows:
    """Test suite for week and month window starts."""

    def test_start_of_week_is_sunday_midnight(self):
        """Weeks start on Sunday at 00:00."""
        assert start_of_week(NOW) == datetime(2024, 3, 10, tzinfo=timezone.utc)

    def test_start_of_week_on_sunday(self):
        """On a Sunday the week starts the same day."""
        sunday = datetime(2024, 3, 10, 18, 0, tzinfo=timezone.utc)

        assert start_of_week(sunday) == datetime(2024, 3, 10, tzinfo=timezone.utc)

    def test_start_of_month(self):
        """Months start on the first at 00:00."""
        assert start_of_month(NOW) == datetime(2024, 3, 1, tzinfo=timezone.utc)


@pytest.mark.unit
class TestBuildDashboard:
    """Test suite for build_dashboard."""

    def test_totals_exclude_voided(self, sample_transactions):
        """Bought and sold quantities per currency ignore voided records."""
        stats = build_dashboard(sample_transactions, lots_available=True, now=NOW)

        assert stats.bought == {"USD": Decimal("200"), "EUR": Decimal("50")}
        assert stats.sold == {"USD": Decimal("150")}

    def test_volume_by_currency(self, sample_transactions):
        """Volume is amount times rate."""
        stats = build_dashboard(sample_transactions, lots_available=True, now=NOW)

        assert stats.volume_by_currency["USD"] == Decimal("100") + Decimal("200") + Decimal("450")
        assert stats.volume_by_currency["EUR"] == Decimal("45")
        assert stats.total_volume == Decimal("795")

    def test_week_and_month_windows(self, sample_transactions):
        """Windowed volumes only count recent transactions."""
        stats = build_dashboard(sample_transactions, lots_available=True, now=NOW)

        assert stats.week_volume.buy == Decimal("45")
        assert stats.week_volume.sell == Decimal("450")
        assert stats.month_volume.buy == Decimal("245")
        assert stats.month_volume.total == Decimal("695")

    def test_windows_start_at_local_midnight(self, tokyo_local_time):
        """Week and month windows follow the local calendar, not UTC."""
        # NOW is Thursday 2024-03-14 00:30 in UTC+9
        transactions = [
            # Sunday 2024-03-10 05:00 local, still Saturday in UTC
            txn(1, TransactionType.BUY, "10", "1.0", datetime(2024, 3, 9, 20, tzinfo=timezone.utc)),
            # 2024-03-01 05:00 local, still February in UTC
            txn(2, TransactionType.BUY, "20", "1.0", datetime(2024, 2, 29, 20, tzinfo=timezone.utc)),
            # Saturday 2024-03-09 23:00 local, before the local week
            txn(3, TransactionType.SELL, "5", "1.0", datetime(2024, 3, 9, 14, tzinfo=timezone.utc)),
        ]

        stats = build_dashboard(transactions, lots_available=False, now=NOW)

        assert stats.week_volume.buy == Decimal("10")
        assert stats.week_volume.sell == 0
        assert stats.month_volume.buy == Decimal("30")
        assert stats.month_volume.sell == Decimal("5")

    def test_fifo_profit_when_lots_exist(self, sample_transactions):
        """Lot-based data uses FIFO replay."""
        stats = build_dashboard(sample_transactions, lots_available=True, now=NOW)

        assert stats.profit_method == "fifo_lots"
        assert stats.estimated_profit == Decimal("200") + Decimal("50")

    def test_average_cost_profit_for_legacy_data(self, sample_transactions):
        """Without lot data the running average cost is used."""
        stats = build_dashboard(sample_transactions, lots_available=False, now=NOW)

        assert stats.profit_method == "average_cost"
        assert stats.estimated_profit == Decimal("225")

    def test_empty(self):
        """No transactions yields zeroed stats."""
        stats = build_dashboard([], lots_available=False, now=NOW)

        assert stats.bought == {}
        assert stats.estimated_profit == 0
        assert stats.total_volume == 0


@pytest.mark.unit
class TestAverageCost:
    """Test suite for estimate_profit_average_cost."""

    def test_sell_without_buy_has_no_profit(self):
        """A sell with no prior buy is costed at its own rate."""
        transactions = [txn(1, TransactionType.SELL, "10", "2.0", NOW)]

        assert estimate_profit_average_cost(transactions) == 0

    def test_average_recomputed_on_buys(self):
        """Later buys move the average."""
        transactions = [
            txn(1, TransactionType.BUY, "10", "1.0", NOW),
            txn(2, TransactionType.SELL, "5", "2.0", NOW + timedelta(minutes=1)),
            txn(3, TransactionType.BUY, "5", "3.0", NOW + timedelta(minutes=2)),
            txn(4, TransactionType.SELL, "10", "3.0", NOW + timedelta(minutes=3)),
        ]

        # avg 1.0 -> profit 5; then avg (5 + 15) / 10 = 2.0 -> profit 10
        assert estimate_profit_average_cost(transactions) == Decimal("15")


@pytest.mark.unit
class TestPeriodMetrics:
    """Test suite for period_metrics."""

    def test_volume_and_spread(self, sample_transactions):
        """Spread revenue is 2% of the period's volume."""
        metrics = period_metrics(sample_transactions, NOW - timedelta(days=30), NOW)

        assert metrics.transaction_count == 3
        assert metrics.exchange_volume == Decimal("695")
        assert metrics.spread_revenue == Decimal("13.90")

    def test_previous_period(self, sample_transactions):
        """Periods are bounded on both sides."""
        metrics = period_metrics(
            sample_transactions, NOW - timedelta(days=60), NOW - timedelta(days=30)
        )

        assert metrics.transaction_count == 1
        assert metrics.exchange_volume == Decimal("100")

    def test_end_is_exclusive(self):
        """A transaction on the boundary belongs to the later period only."""
        boundary = NOW - timedelta(days=30)
        transactions = [txn(1, TransactionType.BUY, "10", "2.0", boundary)]

        current = period_metrics(transactions, boundary, NOW)
        previous = period_metrics(transactions, NOW - timedelta(days=60), boundary)

        assert current.transaction_count == 1
        assert current.exchange_volume == Decimal("20")
        assert previous.transaction_count == 0
        assert previous.exchange_volume == 0


@pytest.mark.unit
class TestRecordsAndHoldings:
    """Test suite for list_records and aggregate_holdings."""

    def test_records_newest_first(self, sample_transactions):
        """Records are sorted by date descending and include voided."""
        records = list_records(sample_transactions)

        assert [r.id for r in records] == [5, 4, 3, 2, 1]

    def test_records_active_only(self, sample_transactions):
        """Voided records can be hidden."""
        records = list_records(sample_transactions, include_voided=False)

        assert 5 not in [r.id for r in records]

    def test_aggregate_holdings(self, sample_transactions):
        """Net quantity and average buy rate per currency."""
        rows = {row.currency: row for row in aggregate_holdings(sample_transactions)}

        usd = rows["USD"]
        assert usd.bought == Decimal("200")
        assert usd.sold == Decimal("150")
        assert usd.net == Decimal("50")
        assert usd.average_buy_rate == Decimal("1.5")
        assert usd.cost_value == Decimal("75")
        assert rows["EUR"].net == Decimal("50")
