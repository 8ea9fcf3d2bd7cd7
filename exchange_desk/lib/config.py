"""Application configuration constants."""

from decimal import Decimal

# Store collection keys
TRANSACTIONS_KEY = "exchange_transactions"
HOLDINGS_KEY = "exchange_holdings"
RATES_KEY = "exchange_rates"
ACTIVITY_LOGS_KEY = "activity_logs"

# Activity log module names
EXCHANGE_MODULE = "exchange"
ADMIN_MODULE = "admin"

# Currencies offered when no rates have been configured yet
DEFAULT_CURRENCIES = ("USD", "EUR", "GBP")

# Roles allowed to configure rates and override configured rates
PRIVILEGED_ROLES = frozenset({"admin"})

# Actor name recorded when no user is known
UNKNOWN_ACTOR = "Unknown"

# Analytics
EXCHANGE_SPREAD = Decimal("0.02")  # Revenue estimate: 2% of exchange volume
DEFAULT_ANALYTICS_PERIOD_DAYS = 30

# Display precision
AMOUNT_DISPLAY_PLACES = 2
RATE_DISPLAY_PLACES = 4
