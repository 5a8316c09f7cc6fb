"""Domain models - immutable dataclasses for carts, installment plans and results"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Tuple

from conditions_gateway.domain.exceptions import CurrencyMismatchError, ValidationError
from conditions_gateway.domain.money import Money


@dataclass(frozen=True)
class CartLine:
    """Single item in the checkout cart"""

    sku: str
    quantity: int
    unit_price: Money

    def __post_init__(self) -> None:
        if not self.sku:
            raise ValidationError("Cart line sku must not be empty")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int) or self.quantity <= 0:
            raise ValidationError(f"Cart line quantity must be a positive int, got {self.quantity!r}")
        if self.unit_price.amount < 0:
            raise ValidationError(f"Cart line unit price must not be negative ({self.sku})")


@dataclass(frozen=True)
class CartSnapshot:
    """Checkout cart as seen by the conditions lookup"""

    lines: Tuple[CartLine, ...]
    total: Money

    def __post_init__(self) -> None:
        object.__setattr__(self, "lines", tuple(self.lines))
        if self.total.amount <= 0:
            raise ValidationError("Cart total must be positive")
        for line in self.lines:
            if line.unit_price.currency != self.total.currency:
                raise CurrencyMismatchError(line.unit_price.currency, self.total.currency)

    @property
    def currency(self) -> str:
        return self.total.currency


@dataclass(frozen=True)
class InstallmentOption:
    """
    One way to split the purchase: `count` payments of `installment_amount`.

    `total_amount - installment_amount * count` is a rounding remainder in
    [0, count) that the last installment absorbs.
    """

    count: int
    installment_amount: Money
    total_amount: Money
    interest_free: bool

    def __post_init__(self) -> None:
        if isinstance(self.count, bool) or not isinstance(self.count, int) or self.count <= 0:
            raise ValidationError(f"Installment count must be a positive int, got {self.count!r}")
        if self.installment_amount.currency != self.total_amount.currency:
            raise CurrencyMismatchError(self.installment_amount.currency, self.total_amount.currency)
        if self.installment_amount.amount < 0:
            raise ValidationError("Installment amount must not be negative")
        if not 0 <= self.remainder_cents < self.count:
            raise ValidationError(
                f"{self.count} x {self.installment_amount} does not add up to {self.total_amount}"
            )

    @property
    def currency(self) -> str:
        return self.total_amount.currency

    @property
    def remainder_cents(self) -> int:
        return self.total_amount.amount - self.installment_amount.multiply(self.count).amount

    def schedule(self) -> Tuple[Money, ...]:
        """
        Individual payments, last one absorbing the rounding remainder.

        Example:
            $19.99 / 3 → [$6.66, $6.66, $6.67]
        """
        base = self.installment_amount
        last = base.add(Money(self.remainder_cents, base.currency))
        return tuple([base] * (self.count - 1) + [last])


@dataclass(frozen=True)
class InstallmentPlan:
    """Installment options sorted ascending by count, one option per count"""

    currency: str
    options: Tuple[InstallmentOption, ...] = field(default_factory=tuple)

    @classmethod
    def from_options(cls, currency: str, options: Iterable[InstallmentOption]) -> "InstallmentPlan":
        """Deduplicate by count (first occurrence wins) and sort"""
        by_count = {}
        for option in options:
            if option.currency != currency:
                raise CurrencyMismatchError(option.currency, currency)
            by_count.setdefault(option.count, option)
        return cls(currency=currency, options=tuple(by_count[c] for c in sorted(by_count)))

    def option_for(self, count: int) -> Optional[InstallmentOption]:
        return next((o for o in self.options if o.count == count), None)

    def __len__(self) -> int:
        return len(self.options)


class ConditionsStatus(str, Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class ConditionsResult:
    """Outcome of a conditions lookup; UNAVAILABLE means checkout proceeds without installments"""

    status: ConditionsStatus
    plan: Optional[InstallmentPlan] = None
    reason: Optional[str] = None
    cached: bool = False

    @classmethod
    def available(cls, plan: InstallmentPlan, cached: bool = False) -> "ConditionsResult":
        return cls(status=ConditionsStatus.AVAILABLE, plan=plan, cached=cached)

    @classmethod
    def unavailable(cls, reason: str) -> "ConditionsResult":
        return cls(status=ConditionsStatus.UNAVAILABLE, reason=reason)

    @property
    def is_available(self) -> bool:
        return self.status is ConditionsStatus.AVAILABLE


@dataclass(frozen=True)
class TransactionReceipt:
    """Authorizer acknowledgement of a created transaction"""

    transaction_id: str
    status: str
    idempotency_key: str
