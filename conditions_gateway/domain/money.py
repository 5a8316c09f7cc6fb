"""Fixed-point money in integer minor units"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, localcontext
from typing import List, Union

from conditions_gateway.domain.exceptions import CurrencyMismatchError, PrecisionError, ValidationError

DecimalLike = Union[Decimal, str, int, float]

# ISO 4217 minor-unit exponents
CURRENCY_SCALES = {
    "ARS": 2,
    "AUD": 2,
    "BRL": 2,
    "CAD": 2,
    "CHF": 2,
    "CLP": 0,
    "COP": 2,
    "EUR": 2,
    "GBP": 2,
    "JPY": 0,
    "KRW": 0,
    "KWD": 3,
    "MXN": 2,
    "PEN": 2,
    "USD": 2,
    "UYU": 2,
}


def currency_scale(currency: str) -> int:
    """Number of fractional digits in the currency's minor unit"""
    try:
        return CURRENCY_SCALES[currency]
    except KeyError:
        raise ValidationError(f"Unsupported currency: {currency!r}") from None


@dataclass(frozen=True)
class Money:
    """
    Amount in minor units (e.g. cents) plus ISO currency code.

    All arithmetic stays on the integer amount. Decimal form is produced
    only by to_decimal().

    Example:
        Money.from_decimal("19.99", "USD") → Money(amount=1999, currency="USD")
    """

    amount: int
    currency: str

    def __post_init__(self) -> None:
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise ValidationError(f"Money amount must be an int, got {type(self.amount).__name__}")
        currency_scale(self.currency)

    @classmethod
    def from_decimal(cls, value: DecimalLike, currency: str) -> "Money":
        """
        Convert a decimal amount to minor units.

        Raises:
            PrecisionError: value is not exact at the currency's scale (19.999 USD)
            ValidationError: value is not a finite number
        """
        scale = currency_scale(currency)
        if isinstance(value, bool):
            raise ValidationError(f"Not a decimal amount: {value!r}")
        try:
            # str() first so floats keep their shortest repr instead of binary noise
            decimal_value = value if isinstance(value, Decimal) else Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise ValidationError(f"Not a decimal amount: {value!r}") from e
        if not decimal_value.is_finite():
            raise ValidationError(f"Not a finite amount: {value!r}")

        with localcontext() as ctx:
            ctx.prec = max(ctx.prec, len(decimal_value.as_tuple().digits) + scale)
            minor = decimal_value.scaleb(scale)
        if minor != minor.to_integral_value():
            raise PrecisionError(
                f"{value} has more than {scale} fractional digit(s) for {currency}"
            )
        return cls(int(minor), currency)

    @classmethod
    def zero(cls, currency: str) -> "Money":
        return cls(0, currency)

    def to_decimal(self) -> Decimal:
        """Scale down to the display form, quantized to the currency scale"""
        scale = currency_scale(self.currency)
        # Default 28-digit precision would reject very large amounts
        with localcontext() as ctx:
            ctx.prec = max(ctx.prec, len(str(abs(self.amount))) + scale)
            return Decimal(self.amount).scaleb(-scale).quantize(Decimal(1).scaleb(-scale))

    def add(self, other: "Money") -> "Money":
        self._assert_same_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def multiply(self, factor: int) -> "Money":
        if isinstance(factor, bool) or not isinstance(factor, int):
            raise ValidationError(f"Can only multiply Money by int, got {type(factor).__name__}")
        return Money(self.amount * factor, self.currency)

    def allocate(self, parts: int) -> List["Money"]:
        """
        Split into `parts` shares that sum exactly to this amount.

        Floor division, then one extra minor unit to each of the first
        `remainder` shares.

        Example:
            1999 / 3 → [667, 666, 666]
        """
        if isinstance(parts, bool) or not isinstance(parts, int) or parts <= 0:
            raise ValidationError(f"Cannot allocate into {parts!r} parts")

        base, remainder = divmod(self.amount, parts)
        return [
            Money(base + 1 if i < remainder else base, self.currency)
            for i in range(parts)
        ]

    def __lt__(self, other: "Money") -> bool:
        self._assert_same_currency(other)
        return self.amount < other.amount

    def __le__(self, other: "Money") -> bool:
        self._assert_same_currency(other)
        return self.amount <= other.amount

    def __gt__(self, other: "Money") -> bool:
        self._assert_same_currency(other)
        return self.amount > other.amount

    def __ge__(self, other: "Money") -> bool:
        self._assert_same_currency(other)
        return self.amount >= other.amount

    def __str__(self) -> str:
        return f"{self.to_decimal()} {self.currency}"

    def _assert_same_currency(self, other: "Money") -> None:
        if not isinstance(other, Money):
            raise TypeError(f"Expected Money, got {type(other).__name__}")
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency, other.currency)
