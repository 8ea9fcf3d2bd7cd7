"""
Configured exchange rate table.

Admins maintain per-currency buy and sell rates; transaction entry reads them
to default the rate for a direction. A generic ``rate`` field is kept as a
fallback for records that predate the buy/sell split.
"""

import logging
from decimal import Decimal
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError

from exchange_desk.lib.config import ADMIN_MODULE, DEFAULT_CURRENCIES, RATES_KEY
from exchange_desk.lib.errors import PermissionDeniedError, StoreError, ValidationError
from exchange_desk.lib.validators import Number, validate_currency, validate_rate
from exchange_desk.models.actor import Actor
from exchange_desk.models.exchange_rate import RateRecord
from exchange_desk.models.transaction import TransactionType
from exchange_desk.services.activity_log import log_activity
from exchange_desk.services.store import KeyValueStore

logger = logging.getLogger(__name__)

Direction = Union[TransactionType, str]


def parse_direction(direction: Direction) -> TransactionType:
    """
    Normalize a direction argument.

    Args:
        direction: TransactionType or "buy"/"sell"

    Returns:
        TransactionType

    Raises:
        ValidationError: If direction is neither buy nor sell
    """
    if isinstance(direction, TransactionType):
        return direction
    try:
        return TransactionType(str(direction).lower().strip())
    except ValueError as e:
        raise ValidationError(f"Invalid direction: '{direction}'. Use 'buy' or 'sell'.") from e


class RateResolver:
    """Read and maintain the per-currency rate table."""

    def __init__(self, store: KeyValueStore):
        """
        Initialize rate resolver.

        Args:
            store: Key-value store holding the exchange_rates collection
        """
        self.store = store

    def _load(self) -> dict[str, RateRecord]:
        raw = self.store.get(RATES_KEY) or {}
        try:
            return {cur: RateRecord.model_validate(data) for cur, data in raw.items()}
        except PydanticValidationError as e:
            raise StoreError(f"Corrupt rate table: {e}") from e

    def _save(self, rates: dict[str, RateRecord]) -> None:
        self.store.set(
            RATES_KEY,
            {cur: record.model_dump(mode="json", exclude_none=True) for cur, record in rates.items()},
        )

    def list_rates(self) -> dict[str, RateRecord]:
        """All configured currencies with their rate records."""
        return self._load()

    def get(self, currency: str) -> Optional[RateRecord]:
        """Rate record for a currency, or None if unconfigured."""
        return self._load().get(validate_currency(currency))

    def currencies(self) -> list[str]:
        """
        Currencies offered for transaction entry.

        Returns:
            Configured currencies, or the default list when none are configured
        """
        configured = list(self._load())
        return configured if configured else list(DEFAULT_CURRENCIES)

    def resolve(self, currency: str, direction: Direction) -> Optional[Decimal]:
        """
        Get the rate to apply for a currency and direction.

        Args:
            currency: Currency code
            direction: buy or sell

        Returns:
            Direction-specific rate, else the fallback rate, else None when the
            currency has no configured entry
        """
        record = self.get(currency)
        if record is None:
            return None
        return record.rate_for(parse_direction(direction))

    def _require_privileged(self, actor: Actor, action: str) -> None:
        if not actor.is_privileged:
            logger.warning(f"Refused rate change by {actor.name} ({actor.role.value}): {action}")
            raise PermissionDeniedError(actor.name, action)

    def set_rate(
        self, currency: str, direction: Direction, value: Number, actor: Actor
    ) -> RateRecord:
        """
        Upsert the rate for one direction.

        Writes the direction-specific field and the fallback ``rate`` and
        stamps ``updated``.

        Args:
            currency: Currency code
            direction: buy or sell
            value: New rate
            actor: Acting user (must be privileged)

        Returns:
            The updated rate record

        Raises:
            PermissionDeniedError: If actor is not privileged (table unchanged)
            ValidationError: If currency, direction or value is invalid
        """
        self._require_privileged(actor, "configure exchange rates")
        currency = validate_currency(currency)
        direction = parse_direction(direction)
        rate = validate_rate(value)

        with self.store.batch():
            rates = self._load()
            now = self.store.clock()
            record = rates.get(currency) or RateRecord(created=now)

            update: dict[str, object] = {"rate": rate, "updated": now}
            if direction == TransactionType.BUY:
                update["buy_rate"] = rate
            else:
                update["sell_rate"] = rate
            record = record.model_copy(update=update)

            rates[currency] = record
            self._save(rates)
            log_activity(
                self.store,
                actor.name,
                "Update",
                ADMIN_MODULE,
                f"Set {direction.value} rate for {currency} to {rate}",
            )

        logger.info(f"{actor.name} set {direction.value} rate for {currency} to {rate}")
        return record

    def configure(
        self,
        currency: str,
        actor: Actor,
        buy_rate: Optional[Number] = None,
        sell_rate: Optional[Number] = None,
    ) -> RateRecord:
        """
        Add or update a currency with buy and/or sell rates at once.

        The fallback ``rate`` becomes the buy rate if given, else the sell rate.

        Args:
            currency: Currency code
            actor: Acting user (must be privileged)
            buy_rate: Optional new buy rate
            sell_rate: Optional new sell rate

        Returns:
            The updated rate record

        Raises:
            PermissionDeniedError: If actor is not privileged
            ValidationError: If no rate is given or a rate is invalid
        """
        self._require_privileged(actor, "configure exchange rates")
        currency = validate_currency(currency)

        if buy_rate is None and sell_rate is None:
            raise ValidationError("Provide a valid currency and at least one rate")

        buy = validate_rate(buy_rate) if buy_rate is not None else None
        sell = validate_rate(sell_rate) if sell_rate is not None else None

        with self.store.batch():
            rates = self._load()
            now = self.store.clock()
            record = rates.get(currency) or RateRecord(created=now)

            update: dict[str, object] = {"updated": now, "rate": buy if buy is not None else sell}
            if buy is not None:
                update["buy_rate"] = buy
            if sell is not None:
                update["sell_rate"] = sell
            record = record.model_copy(update=update)

            rates[currency] = record
            self._save(rates)
            log_activity(
                self.store,
                actor.name,
                "Update",
                ADMIN_MODULE,
                f"Configured {currency}: buy={buy} sell={sell}",
            )

        logger.info(f"{actor.name} configured {currency}: buy={buy} sell={sell}")
        return record

    def delete(self, currency: str, actor: Actor) -> bool:
        """
        Remove a currency from the rate table.

        Args:
            currency: Currency code
            actor: Acting user (must be privileged)

        Returns:
            True if the currency was configured and has been removed
        """
        self._require_privileged(actor, "delete exchange rates")
        currency = validate_currency(currency)

        with self.store.batch():
            rates = self._load()
            if currency not in rates:
                return False

            del rates[currency]
            self._save(rates)
            log_activity(self.store, actor.name, "Delete", ADMIN_MODULE, f"Deleted currency {currency}")

        logger.info(f"{actor.name} deleted currency {currency} from rate table")
        return True
