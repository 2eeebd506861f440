from decimal import Decimal, InvalidOperation

from accounts.domain.constants import (
    MAX_ACCOUNT_ID_LENGTH,
    MAX_AMOUNT_DECIMAL_PLACES,
    MAX_AMOUNT_DIGITS,
)
from accounts.domain.exceptions import InvalidInput


def validate_account_id(account_id):
    if not isinstance(account_id, str):
        raise InvalidInput("account id must be a string")

    normalized = account_id.strip()
    if not normalized:
        raise InvalidInput("account id cannot be empty")
    if len(normalized) > MAX_ACCOUNT_ID_LENGTH:
        raise InvalidInput(
            f"account id must be at most {MAX_ACCOUNT_ID_LENGTH} characters"
        )

    return normalized


def count_digits(value):
    """Return ``(total_digits, decimal_places)`` of a finite decimal."""
    _, digits, exponent = value.as_tuple()
    if exponent >= 0:
        return len(digits) + exponent, 0
    decimal_places = -exponent
    return max(len(digits), decimal_places), decimal_places


def validate_amount(amount):
    if isinstance(amount, bool) or amount is None:
        raise InvalidInput("amount must be a number")

    if isinstance(amount, float):
        amount = str(amount)

    try:
        value = Decimal(amount)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise InvalidInput("amount must be a number") from exc

    if not value.is_finite():
        raise InvalidInput("amount must be a finite number")

    total_digits, decimal_places = count_digits(value)
    if decimal_places > MAX_AMOUNT_DECIMAL_PLACES:
        raise InvalidInput(
            f"amount must have at most {MAX_AMOUNT_DECIMAL_PLACES} decimal places"
        )
    if total_digits > MAX_AMOUNT_DIGITS:
        raise InvalidInput(f"amount must have at most {MAX_AMOUNT_DIGITS} digits")
    whole_digits = MAX_AMOUNT_DIGITS - MAX_AMOUNT_DECIMAL_PLACES
    if total_digits - decimal_places > whole_digits:
        raise InvalidInput(
            f"amount must have at most {whole_digits} digits before the decimal point"
        )

    return value
