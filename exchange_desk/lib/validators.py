"""
Input validation utilities.

Provides validation functions for user inputs including currency codes,
amounts, exchange rates and free-text fields.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from exchange_desk.lib.errors import (
    InvalidAmountError,
    InvalidCurrencyError,
    InvalidRateError,
    ValidationError,
)

Number = Union[Decimal, int, float, str]

MAX_CURRENCY_LENGTH = 50


def to_decimal(value: Number) -> Decimal:
    """
    Convert user input to Decimal without binary float artifacts.

    Args:
        value: Number or numeric string

    Returns:
        Decimal value

    Raises:
        ValidationError: If the value is not a finite number

    Examples:
        >>> to_decimal(0.1)
        Decimal('0.1')
        >>> to_decimal("12.50")
        Decimal('12.50')
    """
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as e:
            raise ValidationError(f"Not a number: {value!r}") from e

    if not result.is_finite():
        raise ValidationError(f"Not a finite number: {value!r}")

    return result


def validate_currency(currency: Optional[str]) -> str:
    """
    Validate and normalize a currency code.

    Currency codes are free-form keys into the rate table and holdings, so
    only empty and overlong codes are rejected.

    Args:
        currency: Currency code to validate

    Returns:
        Normalized currency code (uppercase, trimmed)

    Raises:
        InvalidCurrencyError: If no currency is selected or the code is too long

    Examples:
        >>> validate_currency("usd")
        'USD'
        >>> validate_currency("  EUR  ")
        'EUR'
    """
    if currency is None or not currency.strip():
        raise InvalidCurrencyError("", "A currency must be selected")

    currency = currency.upper().strip()

    if len(currency) > MAX_CURRENCY_LENGTH:
        raise InvalidCurrencyError(
            currency, f"Currency code must be at most {MAX_CURRENCY_LENGTH} characters"
        )

    return currency


def validate_amount(amount: Number, max_value: Decimal = Decimal("1000000000")) -> Decimal:
    """
    Validate a foreign-currency amount is positive and within reasonable range.

    Args:
        amount: Amount to validate
        max_value: Maximum allowed value

    Returns:
        Validated amount as Decimal

    Raises:
        InvalidAmountError: If amount is not a positive number

    Examples:
        >>> validate_amount("100")
        Decimal('100')
    """
    try:
        value = to_decimal(amount)
    except ValidationError as e:
        raise InvalidAmountError(amount, "not a number") from e

    if value <= 0:
        raise InvalidAmountError(value, "must be positive")

    if value > max_value:
        raise InvalidAmountError(value, f"exceeds maximum {max_value}")

    return value


def validate_rate(rate: Number, max_value: Decimal = Decimal("1000000")) -> Decimal:
    """
    Validate an exchange rate is positive and within reasonable range.

    Args:
        rate: Rate to validate
        max_value: Maximum allowed value

    Returns:
        Validated rate as Decimal

    Raises:
        InvalidRateError: If rate is not a positive number
    """
    try:
        value = to_decimal(rate)
    except ValidationError as e:
        raise InvalidRateError(rate, "not a number") from e

    if value <= 0:
        raise InvalidRateError(value, "must be positive")

    if value > max_value:
        raise InvalidRateError(value, f"exceeds maximum {max_value}")

    return value


def sanitize_string(
    text: Optional[str], max_length: int = 1000, allowed_pattern: Optional[str] = None
) -> str:
    """
    Sanitize user input string.

    Args:
        text: String to sanitize (None is treated as empty)
        max_length: Maximum allowed length
        allowed_pattern: Optional regex pattern for allowed characters

    Returns:
        Sanitized string (trimmed, length-limited)

    Raises:
        ValidationError: If string exceeds length or contains disallowed characters

    Examples:
        >>> sanitize_string("  John Doe  ", max_length=20)
        'John Doe'
    """
    text = (text or "").strip()

    if len(text) > max_length:
        raise ValidationError(f"Input exceeds maximum length of {max_length} characters")

    if allowed_pattern and text and not re.match(allowed_pattern, text):
        raise ValidationError("Input contains disallowed characters")

    return text
