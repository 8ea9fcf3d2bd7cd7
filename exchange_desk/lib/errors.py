"""Custom exception classes for exchange-desk."""

from decimal import Decimal


class ExchangeDeskError(Exception):
    """Base exception for all exchange-desk errors."""

    def __init__(self, message: str):
        """Initialize with error message."""
        self.message = message
        super().__init__(message)


class DataError(ExchangeDeskError):
    """Data validation or processing errors."""

    pass


class ValidationError(DataError):
    """Input validation errors."""

    pass


class InvalidAmountError(ValidationError):
    """Invalid transaction amount."""

    def __init__(self, amount: object, reason: str = ""):
        """
        Initialize with amount details.

        Args:
            amount: The invalid amount
            reason: Reason why amount is invalid
        """
        message = f"Invalid amount: {amount}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class InvalidRateError(ValidationError):
    """Invalid exchange rate value."""

    def __init__(self, rate: object, reason: str = ""):
        """
        Initialize with rate details.

        Args:
            rate: The invalid rate
            reason: Reason why rate is invalid
        """
        message = f"Invalid exchange rate: {rate}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class InvalidCurrencyError(ValidationError):
    """Missing or malformed currency code."""

    def __init__(self, currency: object, custom_message: str = ""):
        """
        Initialize with invalid currency.

        Args:
            currency: The invalid currency code
            custom_message: Optional custom error message
        """
        if custom_message:
            message = f"Invalid currency code: '{currency}'. {custom_message}"
        else:
            message = f"Invalid currency code: '{currency}'. Select a currency (e.g., USD, EUR)."
        super().__init__(message)


class MissingRateError(ValidationError):
    """No rate given and none configured for the currency."""

    def __init__(self, currency: str, direction: str):
        """
        Initialize with lookup details.

        Args:
            currency: Currency code that has no configured rate
            direction: Transaction direction ("buy" or "sell")
        """
        message = (
            f"No {direction} rate configured for {currency}. "
            f"Enter the rate manually with --rate."
        )
        super().__init__(message)


class InsufficientFundsError(DataError):
    """Attempt to sell more currency than held."""

    def __init__(self, currency: str, available: Decimal, requested: Decimal):
        """
        Initialize with holding details.

        Args:
            currency: Currency code
            available: Net quantity held (active transactions)
            requested: Quantity requested to sell
        """
        message = (
            f"Insufficient funds! Cannot sell {requested} {currency}. "
            f"You only have {available:.2f} {currency} in holdings."
        )
        self.currency = currency
        self.available = available
        self.requested = requested
        super().__init__(message)


class PermissionDeniedError(ExchangeDeskError):
    """Actor is not allowed to perform the action."""

    def __init__(self, actor: str, action: str):
        """
        Initialize with actor and attempted action.

        Args:
            actor: Name of the acting user
            action: Short description of the refused action
        """
        message = f"Permission denied: {actor} may not {action}. Admin role required."
        super().__init__(message)


class StoreError(ExchangeDeskError):
    """Persisted collection could not be read or written."""

    pass


# Error message helpers


def format_error_message(error: Exception) -> str:
    """
    Format exception into user-friendly error message.

    Args:
        error: The exception to format

    Returns:
        Formatted error message
    """
    if isinstance(error, ExchangeDeskError):
        return error.message

    error_type = type(error).__name__
    return f"{error_type}: {str(error)}"


def get_error_color(error: Exception) -> str:
    """
    Get Rich color for error type.

    Args:
        error: The exception

    Returns:
        Rich color name
    """
    if isinstance(error, InsufficientFundsError):
        return "yellow"
    elif isinstance(error, (ValidationError, DataError)):
        return "red"
    elif isinstance(error, PermissionDeniedError):
        return "orange1"
    elif isinstance(error, StoreError):
        return "magenta"
    else:
        return "red"
