"""
Validation utilities for monetary input

Amounts travel through the API as strings and become Decimal here; binary
floats never reach the balance engine.
"""
import re
from decimal import Decimal, InvalidOperation


def normalize_decimal_input(value: str) -> str:
    """
    Normalize an amount: trim and accept a comma as decimal separator

    Example:
        >>> normalize_decimal_input(" 100,50 ")
        "100.50"
    """
    return value.strip().replace(",", ".")


def validate_decimal_amount(
    value: str,
    max_decimal_places: int = 2,
    allow_negative: bool = False,
) -> tuple[bool, str | None]:
    """
    Validate a monetary amount

    Returns:
        (is_valid, error_message)

    Example:
        >>> validate_decimal_amount("100.50")
        (True, None)
        >>> validate_decimal_amount("100.505")
        (False, "At most 2 decimal places")
    """
    normalized = normalize_decimal_input(value)

    try:
        decimal_value = Decimal(normalized)
    except (InvalidOperation, ValueError):
        return False, "Invalid amount"
    if not decimal_value.is_finite():
        return False, "Invalid amount"

    sign = "-?" if allow_negative else ""
    pattern = rf"^{sign}\d+(\.\d{{1,{max_decimal_places}}})?$"
    if not re.match(pattern, normalized):
        if not allow_negative and normalized.startswith("-"):
            return False, "Amount must not be negative"
        return False, f"At most {max_decimal_places} decimal places"

    return True, None


def validate_and_normalize_amount(
    value: str,
    max_decimal_places: int = 2,
    allow_negative: bool = False,
) -> str:
    """
    Validate and normalize an amount

    Raises:
        ValueError: on invalid input
    """
    is_valid, error = validate_decimal_amount(value, max_decimal_places, allow_negative)
    if not is_valid:
        raise ValueError(error)

    return normalize_decimal_input(value)


def parse_amount(value: str, allow_negative: bool = False) -> Decimal:
    """Validated string amount -> Decimal"""
    return Decimal(validate_and_normalize_amount(value, allow_negative=allow_negative))
