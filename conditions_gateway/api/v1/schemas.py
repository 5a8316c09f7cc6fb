"""Pydantic schemas for API request/response validation"""

from decimal import Decimal
from pydantic import BaseModel, Field
from typing import List, Optional

from conditions_gateway.domain.models import CartLine, CartSnapshot, ConditionsResult, InstallmentOption
from conditions_gateway.domain.money import Money


class CartLineSchema(BaseModel):
    """Single cart item; prices are decimal strings in the cart currency"""

    sku: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)


class ConditionsRequest(BaseModel):
    """Request body for POST /v1/installment-conditions"""

    currency: str = Field(..., min_length=3, max_length=3, description="ISO 4217 code")
    total: Decimal = Field(..., gt=0, description="Cart total in major units")
    items: List[CartLineSchema] = Field(default_factory=list)

    def to_cart(self) -> CartSnapshot:
        """Convert to the domain cart (raises PrecisionError/ValidationError)"""
        currency = self.currency.upper()
        return CartSnapshot(
            lines=tuple(
                CartLine(
                    sku=item.sku,
                    quantity=item.quantity,
                    unit_price=Money.from_decimal(item.unit_price, currency),
                )
                for item in self.items
            ),
            total=Money.from_decimal(self.total, currency),
        )


class InstallmentOptionSchema(BaseModel):
    """One installment option; amounts formatted from integer minor units"""

    count: int
    installment_amount: str
    total_amount: str
    interest_free: bool
    schedule: List[str]

    @classmethod
    def from_option(cls, option: InstallmentOption) -> "InstallmentOptionSchema":
        return cls(
            count=option.count,
            installment_amount=str(option.installment_amount.to_decimal()),
            total_amount=str(option.total_amount.to_decimal()),
            interest_free=option.interest_free,
            schedule=[str(payment.to_decimal()) for payment in option.schedule()],
        )


class ConditionsResponse(BaseModel):
    """Response for POST /v1/installment-conditions"""

    status: str
    cached: bool = False
    reason: Optional[str] = None
    currency: Optional[str] = None
    options: List[InstallmentOptionSchema] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: ConditionsResult) -> "ConditionsResponse":
        if result.plan is None:
            return cls(status=result.status.value, reason=result.reason)
        return cls(
            status=result.status.value,
            cached=result.cached,
            currency=result.plan.currency,
            options=[InstallmentOptionSchema.from_option(o) for o in result.plan.options],
        )


class TransactionRequest(ConditionsRequest):
    """Request body for POST /v1/transactions"""

    installments: int = Field(..., gt=0)
    idempotency_key: Optional[str] = Field(
        None, description="Key from a previous attempt of the same transaction"
    )


class TransactionResponse(BaseModel):
    """Response for POST /v1/transactions"""

    transaction_id: str
    status: str
    idempotency_key: str


class ErrorResponse(BaseModel):
    """Structured failure body"""

    error: str
    detail: str
    idempotency_key: Optional[str] = None
    source: Optional[str] = None  # "request" or "upstream" when the origin is known
