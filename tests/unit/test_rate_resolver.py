"""Unit tests for the configured rate table."""

from decimal import Decimal

import pytest

from exchange_desk.lib.errors import PermissionDeniedError, ValidationError
from exchange_desk.models.transaction import TransactionType
from exchange_desk.services.activity_log import get_activity_logs
from exchange_desk.services.rate_resolver import RateResolver, parse_direction


@pytest.fixture
def resolver(memory_store):
    """Rate resolver over an empty in-memory store."""
    return RateResolver(memory_store)


@pytest.mark.unit
class TestParseDirection:
    """Test suite for parse_direction."""

    def test_accepts_enum_and_strings(self):
        """Directions are case-insensitive."""
        assert parse_direction(TransactionType.BUY) == TransactionType.BUY
        assert parse_direction("SELL") == TransactionType.SELL
        assert parse_direction(" buy ") == TransactionType.BUY

    def test_rejects_unknown(self):
        """Anything but buy/sell is a validation error."""
        with pytest.raises(ValidationError, match="Invalid direction"):
            parse_direction("swap")


@pytest.mark.unit
class TestResolve:
    """Test suite for RateResolver.resolve."""

    def test_unconfigured_currency(self, resolver):
        """Unknown currencies resolve to None."""
        assert resolver.resolve("USD", "buy") is None

    def test_direction_specific_rates(self, resolver, admin):
        """Buy and sell rates are returned per direction."""
        resolver.configure("usd", admin, buy_rate="1.10", sell_rate="1.15")

        assert resolver.resolve("USD", "buy") == Decimal("1.10")
        assert resolver.resolve("USD", "sell") == Decimal("1.15")

    def test_fallback_rate_for_legacy_records(self, memory_store, clock):
        """Records carrying only ``rate`` serve both directions."""
        memory_store.set("exchange_rates", {"GBP": {"rate": "0.85", "created": clock().isoformat()}})
        resolver = RateResolver(memory_store)

        assert resolver.resolve("GBP", TransactionType.BUY) == Decimal("0.85")
        assert resolver.resolve("GBP", TransactionType.SELL) == Decimal("0.85")

    def test_zero_rate_treated_as_unset(self, memory_store, clock):
        """A stored zero falls back to ``rate``."""
        memory_store.set(
            "exchange_rates",
            {"EUR": {"buy_rate": 0, "rate": "0.90", "created": clock().isoformat()}},
        )

        assert RateResolver(memory_store).resolve("EUR", "buy") == Decimal("0.90")


@pytest.mark.unit
class TestSetRate:
    """Test suite for RateResolver.set_rate."""

    def test_admin_upserts_direction_and_fallback(self, resolver, admin):
        """set_rate writes the direction field and the fallback rate."""
        record = resolver.set_rate("USD", "sell", "1.20", admin)

        assert record.sell_rate == Decimal("1.20")
        assert record.rate == Decimal("1.20")
        assert record.buy_rate is None
        assert record.updated is not None
        assert resolver.resolve("USD", "buy") == Decimal("1.20")

    def test_update_keeps_other_direction(self, resolver, admin):
        """Changing one direction leaves the other untouched."""
        resolver.configure("USD", admin, buy_rate="1.10", sell_rate="1.15")

        resolver.set_rate("USD", "buy", "1.05", admin)

        assert resolver.resolve("USD", "buy") == Decimal("1.05")
        assert resolver.resolve("USD", "sell") == Decimal("1.15")

    def test_non_admin_refused(self, resolver, teller):
        """Only admins may change rates and the table stays unchanged."""
        with pytest.raises(PermissionDeniedError, match="Admin role required"):
            resolver.set_rate("USD", "buy", "1.10", teller)

        assert resolver.list_rates() == {}

    def test_invalid_rate_rejected(self, resolver, admin):
        """Rates must be positive."""
        with pytest.raises(ValidationError, match="Invalid exchange rate"):
            resolver.set_rate("USD", "buy", "0", admin)

    def test_activity_logged(self, resolver, memory_store, admin):
        """Rate changes are recorded in the admin module."""
        resolver.set_rate("USD", "buy", "1.10", admin)

        entries = get_activity_logs(memory_store)
        assert len(entries) == 1
        assert entries[0].actor == "Alice"
        assert entries[0].action_type == "Update"
        assert entries[0].module_name == "admin"


@pytest.mark.unit
class TestConfigure:
    """Test suite for configure, delete and currencies."""

    def test_requires_a_rate(self, resolver, admin):
        """At least one rate must be provided."""
        with pytest.raises(ValidationError, match="at least one rate"):
            resolver.configure("USD", admin)

    def test_fallback_is_buy_rate(self, resolver, admin):
        """The fallback rate prefers the buy rate."""
        record = resolver.configure("USD", admin, buy_rate="1.10", sell_rate="1.15")

        assert record.rate == Decimal("1.10")

    def test_currencies_default_list(self, resolver):
        """With no configured rates the default currencies are offered."""
        assert resolver.currencies() == ["USD", "EUR", "GBP"]

    def test_currencies_configured(self, resolver, admin):
        """Configured currencies replace the default list."""
        resolver.configure("CHF", admin, sell_rate="1.02")

        assert resolver.currencies() == ["CHF"]

    def test_delete(self, resolver, admin):
        """Deleting removes the currency; unknown currencies report False."""
        resolver.configure("USD", admin, buy_rate="1.10")

        assert resolver.delete("usd", admin) is True
        assert resolver.get("USD") is None
        assert resolver.delete("USD", admin) is False

    def test_delete_requires_admin(self, resolver, admin, teller):
        """Non-admins cannot delete currencies."""
        resolver.configure("USD", admin, buy_rate="1.10")

        with pytest.raises(PermissionDeniedError):
            resolver.delete("USD", teller)

        assert resolver.get("USD") is not None
