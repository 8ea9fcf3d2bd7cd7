"""Unit tests for FIFO lot queue operations."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from exchange_desk.models.lot import Lot
from exchange_desk.models.transaction import (
    RealizedFragment,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from exchange_desk.services.fifo import (
    average_rate,
    consume_fifo,
    push_lot,
    realized_profit,
    reinsert_at_head,
    remove_exact_lot,
    replay_realized_profit,
    total_amount,
    trim_lifo,
)

T0 = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)


def make_lots(*pairs):
    """Build a lot queue from (amount, rate) pairs, one minute apart."""
    return [
        Lot(amount=Decimal(amount), rate=Decimal(rate), date=T0 + timedelta(minutes=i))
        for i, (amount, rate) in enumerate(pairs)
    ]


def make_txn(txn_id, txn_type, amount, rate, minutes=0, **kwargs):
    """Build a transaction dated relative to T0."""
    return Transaction(
        id=txn_id,
        type=txn_type,
        currency=kwargs.pop("currency", "USD"),
        amount=Decimal(amount),
        rate=Decimal(rate),
        date=T0 + timedelta(minutes=minutes),
        **kwargs,
    )


@pytest.mark.unit
class TestConsumeFifo:
    """Test suite for consume_fifo."""

    def test_consume_within_head_lot(self):
        """Partial consumption shrinks the head lot."""
        lots = make_lots(("100", "1.10"), ("50", "1.20"))

        allocation = consume_fifo(lots, Decimal("30"))

        assert allocation.realized == [RealizedFragment(amount=Decimal("30"), buy_rate=Decimal("1.10"))]
        assert allocation.shortfall_amount == 0
        assert [lot.amount for lot in lots] == [Decimal("70"), Decimal("50")]

    def test_consume_across_lots_oldest_first(self):
        """A sell spanning lots takes the oldest lot first and evicts it."""
        lots = make_lots(("100", "1.10"), ("50", "1.20"))

        allocation = consume_fifo(lots, Decimal("120"))

        assert [(f.amount, f.buy_rate) for f in allocation.realized] == [
            (Decimal("100"), Decimal("1.10")),
            (Decimal("20"), Decimal("1.20")),
        ]
        assert len(lots) == 1
        assert lots[0].amount == Decimal("30")
        assert lots[0].rate == Decimal("1.20")

    def test_exact_consumption_empties_queue(self):
        """No zero-amount lots remain after consuming everything."""
        lots = make_lots(("10", "2"), ("5", "3"))

        allocation = consume_fifo(lots, Decimal("15"))

        assert lots == []
        assert allocation.covered_amount == Decimal("15")
        assert allocation.shortfall_amount == 0

    def test_shortfall_when_queue_runs_dry(self):
        """Quantity beyond all lots is returned as shortfall."""
        lots = make_lots(("10", "2"))

        allocation = consume_fifo(lots, Decimal("25"))

        assert allocation.covered_amount == Decimal("10")
        assert allocation.shortfall_amount == Decimal("15")
        assert lots == []

    def test_empty_queue_is_all_shortfall(self):
        """Selling against no lots realizes nothing."""
        allocation = consume_fifo([], Decimal("5"))

        assert allocation.realized == []
        assert allocation.shortfall_amount == Decimal("5")


@pytest.mark.unit
class TestRealizedProfit:
    """Test suite for realized_profit."""

    def test_profit_from_fragments(self):
        """Profit is the rate spread times each fragment amount."""
        fragments = [
            RealizedFragment(amount=Decimal("100"), buy_rate=Decimal("1.10")),
            RealizedFragment(amount=Decimal("20"), buy_rate=Decimal("1.20")),
        ]

        profit = realized_profit(Decimal("1.30"), fragments)

        assert profit == Decimal("20.00") + Decimal("2.00")

    def test_loss_is_negative(self):
        """Selling below the buy rate yields a negative profit."""
        fragments = [RealizedFragment(amount=Decimal("10"), buy_rate=Decimal("2"))]

        assert realized_profit(Decimal("1.5"), fragments) == Decimal("-5.0")

    def test_shortfall_counts_full_proceeds(self):
        """Shortfall has zero cost basis."""
        profit = realized_profit(Decimal("1.5"), [], Decimal("10"))

        assert profit == Decimal("15.0")


@pytest.mark.unit
class TestReversalHelpers:
    """Test suite for lot reversal helpers."""

    def test_remove_exact_lot(self):
        """Only the lot with identical amount, rate and date is removed."""
        lots = make_lots(("100", "1.10"), ("100", "1.10"))

        removed = remove_exact_lot(lots, Decimal("100"), Decimal("1.10"), T0 + timedelta(minutes=1))

        assert removed is True
        assert len(lots) == 1
        assert lots[0].date == T0

    def test_remove_exact_lot_missing(self):
        """A partially consumed lot does not match its original buy."""
        lots = make_lots(("60", "1.10"))

        assert remove_exact_lot(lots, Decimal("100"), Decimal("1.10"), T0) is False
        assert len(lots) == 1

    def test_trim_lifo_splits_newest_lot(self):
        """Trimming takes from the tail and shrinks a larger lot."""
        lots = make_lots(("100", "1"), ("50", "2"))

        unreversed = trim_lifo(lots, Decimal("70"))

        assert unreversed == 0
        assert len(lots) == 1
        assert lots[0].amount == Decimal("80")
        assert lots[0].rate == Decimal("1")

    def test_trim_lifo_reports_unremoved(self):
        """Quantity beyond the queue is reported back."""
        lots = make_lots(("30", "1"))

        assert trim_lifo(lots, Decimal("50")) == Decimal("20")
        assert lots == []

    def test_reinsert_at_head_keeps_fragment_order(self):
        """First consumed fragment becomes the new head."""
        lots = make_lots(("5", "3"))
        fragments = [
            RealizedFragment(amount=Decimal("10"), buy_rate=Decimal("1")),
            RealizedFragment(amount=Decimal("4"), buy_rate=Decimal("2")),
        ]
        now = T0 + timedelta(days=1)

        restored = reinsert_at_head(lots, fragments, now)

        assert [(lot.amount, lot.rate) for lot in lots] == [
            (Decimal("10"), Decimal("1")),
            (Decimal("4"), Decimal("2")),
            (Decimal("5"), Decimal("3")),
        ]
        assert all(lot.date == now for lot in restored)


@pytest.mark.unit
class TestAggregates:
    """Test suite for queue aggregates."""

    def test_total_and_weighted_average(self):
        """Average rate is weighted by remaining amount."""
        lots = make_lots(("100", "1"), ("300", "2"))

        assert total_amount(lots) == Decimal("400")
        assert average_rate(lots) == Decimal("1.75")

    def test_average_of_empty_queue_is_zero(self):
        """Nothing held means a zero average."""
        assert average_rate([]) == 0

    def test_push_lot_appends_to_tail(self):
        """New lots go to the end of the queue."""
        lots = make_lots(("1", "1"))

        lot = push_lot(lots, Decimal("2"), Decimal("3"), T0)

        assert lots[-1] is lot
        assert lot.cost == Decimal("6")


@pytest.mark.unit
class TestReplayRealizedProfit:
    """Test suite for replay_realized_profit."""

    def test_replay_sorts_by_date(self):
        """Transactions are replayed chronologically regardless of input order."""
        transactions = [
            make_txn(3, TransactionType.SELL, "120", "1.30", minutes=2),
            make_txn(1, TransactionType.BUY, "100", "1.10", minutes=0),
            make_txn(2, TransactionType.BUY, "50", "1.20", minutes=1),
        ]

        assert replay_realized_profit(transactions) == Decimal("22.00")

    def test_replay_skips_voided(self):
        """Voided transactions do not contribute."""
        transactions = [
            make_txn(1, TransactionType.BUY, "100", "1.10", minutes=0),
            make_txn(
                2,
                TransactionType.BUY,
                "100",
                "1.00",
                minutes=1,
                status=TransactionStatus.VOIDED,
                voided_by="Alice",
            ),
            make_txn(3, TransactionType.SELL, "50", "1.20", minutes=2),
        ]

        assert replay_realized_profit(transactions) == Decimal("5.00")

    def test_replay_separates_currencies(self):
        """Each currency has its own queue."""
        transactions = [
            make_txn(1, TransactionType.BUY, "10", "2", minutes=0, currency="EUR"),
            make_txn(2, TransactionType.BUY, "10", "1", minutes=1),
            make_txn(3, TransactionType.SELL, "10", "3", minutes=2, currency="EUR"),
        ]

        assert replay_realized_profit(transactions) == Decimal("10")

    def test_replay_applies_shortfall_policy(self):
        """Sells without lots count at zero cost basis."""
        transactions = [make_txn(1, TransactionType.SELL, "10", "1.5")]

        assert replay_realized_profit(transactions) == Decimal("15.0")
