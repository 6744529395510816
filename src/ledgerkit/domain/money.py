"""Fixed-point money amounts.

Amounts are held as integer minor units (cents, pence, yen) together with an
ISO 4217 currency code. Arithmetic never goes through floating point, so
debit and credit totals compare exactly.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
import re

from ledgerkit.domain.errors import CurrencyMismatchError, ValidationError

# ISO 4217 currencies whose minor unit is not 1/100
_CURRENCY_EXPONENTS = {
    "BIF": 0,
    "CLP": 0,
    "DJF": 0,
    "GNF": 0,
    "ISK": 0,
    "JPY": 0,
    "KMF": 0,
    "KRW": 0,
    "PYG": 0,
    "RWF": 0,
    "UGX": 0,
    "VND": 0,
    "VUV": 0,
    "XAF": 0,
    "XOF": 0,
    "XPF": 0,
    "BHD": 3,
    "IQD": 3,
    "JOD": 3,
    "KWD": 3,
    "LYD": 3,
    "OMR": 3,
    "TND": 3,
}

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


def normalize_currency(code: str) -> str:
    """Normalize a currency code to upper case.

    Args:
        code: Currency code, any case

    Returns:
        Upper-cased three-letter code

    Raises:
        ValidationError: If the code is not three ASCII letters
    """
    normalized = (code or "").strip().upper()
    if not _CURRENCY_RE.match(normalized):
        raise ValidationError(f"Invalid currency code '{code}'")
    return normalized


def currency_exponent(currency: str) -> int:
    """Return the number of decimal places of a currency's minor unit."""
    return _CURRENCY_EXPONENTS.get(currency.upper(), 2)


@dataclass(frozen=True)
class Money:
    """Exact money amount in minor units."""

    minor_units: int
    currency: str

    def __post_init__(self):
        if isinstance(self.minor_units, bool) or not isinstance(self.minor_units, int):
            raise ValidationError(f"Minor units must be an integer, got {self.minor_units!r}")
        object.__setattr__(self, "currency", normalize_currency(self.currency))

    @classmethod
    def zero(cls, currency: str) -> "Money":
        return cls(0, currency)

    @classmethod
    def from_decimal(cls, value: Decimal | str | int, currency: str) -> "Money":
        """Build an amount from a decimal value in major units.

        Raises:
            ValidationError: If the value has more precision than the currency allows
        """
        try:
            decimal_value = Decimal(str(value))
        except InvalidOperation:
            raise ValidationError(f"Invalid amount '{value}'")
        if not decimal_value.is_finite():
            raise ValidationError(f"Invalid amount '{value}'")
        exponent = currency_exponent(currency)
        scaled = decimal_value.scaleb(exponent)
        if scaled != scaled.to_integral_value():
            raise ValidationError(
                f"Amount {value} has more than {exponent} decimal places for {currency.upper()}"
            )
        return cls(int(scaled), currency)

    def to_decimal(self) -> Decimal:
        exponent = currency_exponent(self.currency)
        return Decimal(self.minor_units).scaleb(-exponent)

    def is_zero(self) -> bool:
        return self.minor_units == 0

    def _check(self, other: "Money") -> None:
        if not isinstance(other, Money):
            raise TypeError(f"Cannot combine Money with {type(other).__name__}")
        if other.currency != self.currency:
            raise CurrencyMismatchError(
                f"Currency mismatch: {self.currency} vs {other.currency}"
            )

    def __add__(self, other: "Money") -> "Money":
        self._check(other)
        return Money(self.minor_units + other.minor_units, self.currency)

    def __sub__(self, other: "Money") -> "Money":
        self._check(other)
        return Money(self.minor_units - other.minor_units, self.currency)

    def __neg__(self) -> "Money":
        return Money(-self.minor_units, self.currency)

    def __abs__(self) -> "Money":
        return Money(abs(self.minor_units), self.currency)

    def __lt__(self, other: "Money") -> bool:
        self._check(other)
        return self.minor_units < other.minor_units

    def __le__(self, other: "Money") -> bool:
        self._check(other)
        return self.minor_units <= other.minor_units

    def __gt__(self, other: "Money") -> bool:
        self._check(other)
        return self.minor_units > other.minor_units

    def __ge__(self, other: "Money") -> bool:
        self._check(other)
        return self.minor_units >= other.minor_units

    def __str__(self) -> str:
        exponent = currency_exponent(self.currency)
        return f"{self.to_decimal():.{exponent}f}"
