"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation
import re

from ledgerkit.domain.money import Money


def parse_amount(amount_str: str) -> Decimal:
    """Parse an amount string into a Decimal.

    Handles various formats:
    - "123.45"
    - "$123.45"
    - "1,234.56"
    - "(123.45)" (negative in parentheses)

    Args:
        amount_str: Amount string

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    amount_str = amount_str.strip()

    # Handle parentheses notation (negative)
    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        is_negative = True
        amount_str = amount_str[1:-1]

    # Remove currency symbols and thousands separators
    amount_str = re.sub(r"[$€£¥]", "", amount_str)
    amount_str = amount_str.replace(",", "").strip()

    try:
        amount = Decimal(amount_str)
    except InvalidOperation:
        raise ValueError(f"Could not parse amount '{amount_str}'")
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str}'")
    return -amount if is_negative else amount


def parse_minor_units(amount_str: str, currency: str) -> int:
    """Parse a decimal amount string into integer minor units of currency.

    Examples:
        >>> parse_minor_units("15.00", "USD")
        1500
        >>> parse_minor_units("1,500", "JPY")
        1500

    Raises:
        ValueError: If the string cannot be parsed or has too many decimals
    """
    return Money.from_decimal(parse_amount(amount_str), currency).minor_units
