"""
Holdings ledger for the currency exchange desk.

Records buy/sell transactions, keeps a FIFO queue of cost lots per currency,
computes realized profit on sells and reverses holdings when a transaction is
voided. Every mutating operation runs inside one store batch so the
transaction log, holdings and activity log change together or not at all.
"""

import enum
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional

from pydantic import ValidationError as PydanticValidationError

from exchange_desk.lib.config import EXCHANGE_MODULE, HOLDINGS_KEY, TRANSACTIONS_KEY
from exchange_desk.lib.errors import (
    InsufficientFundsError,
    MissingRateError,
    PermissionDeniedError,
    StoreError,
)
from exchange_desk.lib.validators import (
    Number,
    sanitize_string,
    validate_amount,
    validate_currency,
    validate_rate,
)
from exchange_desk.models.actor import Actor
from exchange_desk.models.lot import Lot
from exchange_desk.models.transaction import (
    RealizedFragment,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from exchange_desk.services.activity_log import log_activity
from exchange_desk.services.fifo import (
    ZERO,
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
from exchange_desk.services.rate_resolver import RateResolver
from exchange_desk.services.store import KeyValueStore

logger = logging.getLogger(__name__)


class ReversalKind(str, enum.Enum):
    """How a void reversed the transaction's effect on holdings."""

    EXACT_LOT = "exact_lot"  # Buy: the lot it created was still intact and removed
    LIFO_TRIM = "lifo_trim"  # Buy: lot already consumed, trimmed newest lots instead
    REALIZED_REINSERT = "realized_reinsert"  # Sell: consumed fragments put back at head
    SELL_RATE_REINSERT = "sell_rate_reinsert"  # Sell without breakdown: one lot at sell rate

    @property
    def is_exact(self) -> bool:
        """True if the reversal restores the consumed cost basis exactly."""
        return self in (ReversalKind.EXACT_LOT, ReversalKind.REALIZED_REINSERT)


@dataclass
class BuyReceipt:
    """Result of recording a buy."""

    transaction: Transaction
    lot: Lot


@dataclass
class SellReceipt:
    """Result of recording a sell.

    Attributes:
        transaction: Stored sell transaction (carries realized and shortfall)
        realized: Lot fragments consumed, oldest first
        shortfall_amount: Quantity sold beyond the available lots
        realized_profit: Profit recognized by this sell
    """

    transaction: Transaction
    realized: list[RealizedFragment]
    shortfall_amount: Decimal
    realized_profit: Decimal


@dataclass
class VoidOutcome:
    """Result of voiding a transaction.

    Attributes:
        transaction: The voided transaction as stored
        reversal: Which reversal path was taken
        unreversed_amount: Quantity a LIFO trim could not remove
        restored_lots: Lots put back at the queue head (sell reversals)
    """

    transaction: Transaction
    reversal: ReversalKind
    unreversed_amount: Decimal = ZERO
    restored_lots: list[Lot] = field(default_factory=list)

    @property
    def is_exact(self) -> bool:
        """True if holdings were restored exactly."""
        return self.reversal.is_exact


@dataclass
class HoldingsSummary:
    """Current holdings of one currency."""

    currency: str
    total_amount: Decimal
    average_buy_rate: Decimal
    lots: list[Lot]

    @property
    def cost_value(self) -> Decimal:
        """Local-currency cost basis of everything held."""
        return sum((lot.cost for lot in self.lots), ZERO)


class HoldingsLedger:
    """Lot-based holdings ledger over a key-value store."""

    def __init__(self, store: KeyValueStore, rates: Optional[RateResolver] = None):
        """
        Initialize holdings ledger.

        Args:
            store: Key-value store with the exchange collections
            rates: Rate resolver used to default transaction rates
                   (default: one over the same store)
        """
        self.store = store
        self.rates = rates or RateResolver(store)

    # Persistence helpers

    def _load_holdings(self) -> dict[str, list[Lot]]:
        raw = self.store.get(HOLDINGS_KEY) or {}
        try:
            return {
                currency: [Lot.model_validate(lot) for lot in (data or {}).get("lots", [])]
                for currency, data in raw.items()
            }
        except PydanticValidationError as e:
            raise StoreError(f"Corrupt holdings: {e}") from e

    def _save_holdings(self, holdings: dict[str, list[Lot]]) -> None:
        self.store.set(
            HOLDINGS_KEY,
            {
                currency: {"lots": [lot.model_dump(mode="json") for lot in lots]}
                for currency, lots in holdings.items()
            },
        )

    @staticmethod
    def _parse_transaction(raw: dict) -> Transaction:
        try:
            return Transaction.model_validate(raw)
        except PydanticValidationError as e:
            raise StoreError(f"Corrupt transaction {raw.get('id')}: {e}") from e

    # Queries

    def transactions(self, include_voided: bool = True) -> list[Transaction]:
        """
        Get the transaction log in append order.

        Args:
            include_voided: Whether to include voided transactions

        Returns:
            List of transactions
        """
        parsed = [self._parse_transaction(raw) for raw in self.store.get(TRANSACTIONS_KEY) or []]
        if include_voided:
            return parsed
        return [txn for txn in parsed if txn.is_active]

    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        """Find a transaction by id."""
        for txn in self.transactions():
            if txn.id == int(transaction_id):
                return txn
        return None

    def net_holding(self, currency: str) -> Decimal:
        """
        Net quantity held according to active transactions (bought - sold).

        This is the figure sells are checked against. It can differ from the
        lot total after approximate reversals.

        Args:
            currency: Currency code

        Returns:
            Net active quantity
        """
        currency = validate_currency(currency)
        return sum(
            (
                txn.signed_amount
                for txn in self.transactions(include_voided=False)
                if txn.currency == currency
            ),
            ZERO,
        )

    def has_lot_holdings(self) -> bool:
        """True once lot-based holdings have been written at least once."""
        return self.store.get(HOLDINGS_KEY) is not None

    def query_holdings(self, currency: str) -> HoldingsSummary:
        """
        Current lots of a currency with total and weighted average buy rate.

        Args:
            currency: Currency code

        Returns:
            HoldingsSummary (empty when nothing is held)
        """
        currency = validate_currency(currency)
        lots = self._load_holdings().get(currency, [])
        return HoldingsSummary(
            currency=currency,
            total_amount=total_amount(lots),
            average_buy_rate=average_rate(lots),
            lots=lots,
        )

    def all_holdings(self) -> list[HoldingsSummary]:
        """Holdings summary for every currency with a lot queue."""
        return [
            HoldingsSummary(
                currency=currency,
                total_amount=total_amount(lots),
                average_buy_rate=average_rate(lots),
                lots=lots,
            )
            for currency, lots in self._load_holdings().items()
        ]

    @staticmethod
    def query_realized_profit(transactions: Iterable[Transaction]) -> Decimal:
        """
        Recompute realized profit over a transaction sequence without touching holdings.

        Args:
            transactions: Transactions to replay (sorted by date internally)

        Returns:
            Realized profit in local currency
        """
        return replay_realized_profit(transactions)

    # Transaction entry

    def _entry_rate(
        self, actor: Actor, currency: str, direction: TransactionType, rate: Optional[Number]
    ) -> tuple[Decimal, bool]:
        """
        Determine the rate for a new transaction.

        Returns:
            (rate, persist) where persist means a privileged override should be
            written back to the rate table
        """
        configured = self.rates.resolve(currency, direction)

        if rate is None:
            if configured is None:
                raise MissingRateError(currency, direction.value)
            return configured, False

        value = validate_rate(rate)
        if configured is not None and value == configured:
            return value, False

        if actor.is_privileged:
            return value, True

        if configured is not None:
            raise PermissionDeniedError(
                actor.name, f"override the configured {direction.value} rate for {currency}"
            )

        # Unconfigured currency: manual entry is the only option
        return value, False

    def record_buy(
        self,
        actor: Actor,
        currency: str,
        amount: Number,
        rate: Optional[Number] = None,
        customer: Optional[str] = "",
        id_card: Optional[str] = "",
    ) -> BuyReceipt:
        """
        Record a buy and push its lot to the tail of the currency queue.

        Args:
            actor: Acting user
            currency: Currency bought
            amount: Quantity bought (> 0)
            rate: Buy rate (> 0); defaults to the configured buy rate
            customer: Customer name
            id_card: Customer identity document number

        Returns:
            BuyReceipt with the stored transaction and the new lot

        Raises:
            ValidationError: On invalid input or when no rate is available
            PermissionDeniedError: If a non-admin overrides a configured rate
        """
        currency = validate_currency(currency)
        amount = validate_amount(amount)
        customer = sanitize_string(customer, max_length=200)
        id_card = sanitize_string(id_card, max_length=100)
        rate_value, persist_rate = self._entry_rate(actor, currency, TransactionType.BUY, rate)

        with self.store.batch():
            if persist_rate:
                self.rates.set_rate(currency, TransactionType.BUY, rate_value, actor)

            raw = self.store.add(
                TRANSACTIONS_KEY,
                {
                    "type": TransactionType.BUY.value,
                    "customer": customer,
                    "id_card": id_card,
                    "currency": currency,
                    "amount": str(amount),
                    "rate": str(rate_value),
                    "status": TransactionStatus.ACTIVE.value,
                },
            )
            transaction = self._parse_transaction(raw)

            holdings = self._load_holdings()
            lot = push_lot(holdings.setdefault(currency, []), amount, rate_value, transaction.date)
            self._save_holdings(holdings)

            log_activity(
                self.store,
                actor.name,
                "Create",
                EXCHANGE_MODULE,
                f"BUY {amount} {currency} at rate {rate_value}",
            )

        logger.info(
            f"Recorded buy {transaction.id}: {amount} {currency} @ {rate_value} by {actor.name}"
        )
        return BuyReceipt(transaction=transaction, lot=lot)

    def record_sell(
        self,
        actor: Actor,
        currency: str,
        amount: Number,
        rate: Optional[Number] = None,
        customer: Optional[str] = "",
        id_card: Optional[str] = "",
    ) -> SellReceipt:
        """
        Record a sell, consuming lots FIFO and computing realized profit.

        The sell is checked against the net of active transactions for the
        currency. If the lot queue holds less than that (possible after
        approximate reversals), the uncovered part is treated as disposed at
        zero cost basis and reported as ``shortfall_amount``.

        Args:
            actor: Acting user
            currency: Currency sold
            amount: Quantity sold (> 0)
            rate: Sell rate (> 0); defaults to the configured sell rate
            customer: Customer name
            id_card: Customer identity document number

        Returns:
            SellReceipt with the realized breakdown, shortfall and profit

        Raises:
            ValidationError: On invalid input or when no rate is available
            InsufficientFundsError: If amount exceeds net active holdings
            PermissionDeniedError: If a non-admin overrides a configured rate
        """
        currency = validate_currency(currency)
        amount = validate_amount(amount)
        customer = sanitize_string(customer, max_length=200)
        id_card = sanitize_string(id_card, max_length=100)
        rate_value, persist_rate = self._entry_rate(actor, currency, TransactionType.SELL, rate)

        with self.store.batch():
            available = self.net_holding(currency)
            if amount > available:
                logger.info(f"Refused sell of {amount} {currency}: only {available} held")
                raise InsufficientFundsError(currency, available, amount)

            if persist_rate:
                self.rates.set_rate(currency, TransactionType.SELL, rate_value, actor)

            holdings = self._load_holdings()
            allocation = consume_fifo(holdings.setdefault(currency, []), amount)
            if allocation.shortfall_amount > 0:
                logger.warning(
                    f"Sell of {amount} {currency} exceeds lot holdings by "
                    f"{allocation.shortfall_amount}; counting shortfall at zero cost basis"
                )

            raw = self.store.add(
                TRANSACTIONS_KEY,
                {
                    "type": TransactionType.SELL.value,
                    "customer": customer,
                    "id_card": id_card,
                    "currency": currency,
                    "amount": str(amount),
                    "rate": str(rate_value),
                    "status": TransactionStatus.ACTIVE.value,
                    "realized": [f.model_dump(mode="json") for f in allocation.realized],
                    "shortfall_amount": str(allocation.shortfall_amount),
                },
            )
            transaction = self._parse_transaction(raw)
            self._save_holdings(holdings)

            log_activity(
                self.store,
                actor.name,
                "Create",
                EXCHANGE_MODULE,
                f"SELL {amount} {currency} at rate {rate_value}",
            )

        profit = realized_profit(rate_value, allocation.realized, allocation.shortfall_amount)
        logger.info(
            f"Recorded sell {transaction.id}: {amount} {currency} @ {rate_value} by {actor.name}, "
            f"{len(allocation.realized)} lot fragment(s), realized profit {profit}"
        )
        return SellReceipt(
            transaction=transaction,
            realized=allocation.realized,
            shortfall_amount=allocation.shortfall_amount,
            realized_profit=profit,
        )

    # Voiding

    def _reverse(self, transaction: Transaction, lots: list[Lot]) -> VoidOutcome:
        """Best-effort undo of a transaction's effect on its currency queue."""
        if transaction.type == TransactionType.BUY:
            if remove_exact_lot(lots, transaction.amount, transaction.rate, transaction.date):
                return VoidOutcome(transaction=transaction, reversal=ReversalKind.EXACT_LOT)

            unreversed = trim_lifo(lots, transaction.amount)
            return VoidOutcome(
                transaction=transaction,
                reversal=ReversalKind.LIFO_TRIM,
                unreversed_amount=unreversed,
            )

        now = self.store.clock()
        if transaction.realized is not None:
            restored = reinsert_at_head(lots, transaction.realized, now)
            return VoidOutcome(
                transaction=transaction,
                reversal=ReversalKind.REALIZED_REINSERT,
                restored_lots=restored,
            )

        fallback = RealizedFragment(amount=transaction.amount, buy_rate=transaction.rate)
        restored = reinsert_at_head(lots, [fallback], now)
        return VoidOutcome(
            transaction=transaction,
            reversal=ReversalKind.SELL_RATE_REINSERT,
            restored_lots=restored,
        )

    def void_transaction(
        self, actor: Actor, transaction_id: int, reason: Optional[str] = ""
    ) -> Optional[VoidOutcome]:
        """
        Void a transaction and reverse its effect on holdings.

        The record stays in the log marked voided. Reversal is best-effort:
        a buy whose lot was already consumed trims the newest lots instead,
        and a sell without a realized breakdown is restored as one lot at the
        sell rate. ``VoidOutcome.is_exact`` tells the paths apart.

        Args:
            actor: Acting user (recorded as voided_by)
            transaction_id: Id of the transaction to void
            reason: Optional void reason

        Returns:
            VoidOutcome, or None if the transaction does not exist or is
            already voided
        """
        reason = sanitize_string(reason, max_length=500)

        with self.store.batch():
            raw = self.store.void_item(TRANSACTIONS_KEY, transaction_id, reason, actor.name)
            if raw is None:
                return None

            transaction = self._parse_transaction(raw)
            holdings = self._load_holdings()
            outcome = self._reverse(transaction, holdings.setdefault(transaction.currency, []))
            self._save_holdings(holdings)

            log_activity(
                self.store,
                actor.name,
                "Void",
                EXCHANGE_MODULE,
                f"Voided {transaction.type.value.upper()} id={transaction.id} "
                f"({transaction.amount} {transaction.currency}): {reason}",
            )

        if outcome.is_exact:
            logger.info(
                f"Voided {transaction.type.value} {transaction.id} by {actor.name} "
                f"({outcome.reversal.value})"
            )
        else:
            logger.warning(
                f"Voided {transaction.type.value} {transaction.id} by {actor.name} with approximate "
                f"holdings reversal ({outcome.reversal.value}, unreversed={outcome.unreversed_amount})"
            )

        return outcome
