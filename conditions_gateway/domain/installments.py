"""Installment schedule normalization from authorizer payloads"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Sequence, Tuple

from conditions_gateway.domain.exceptions import (
    CurrencyMismatchError,
    MalformedScheduleError,
    ValidationError,
)
from conditions_gateway.domain.models import InstallmentOption, InstallmentPlan
from conditions_gateway.domain.money import Money


@dataclass(frozen=True)
class ScheduleView:
    """Field map for one upstream representation of the installment schedule"""

    name: str
    collection_key: str
    count_field: str
    amount_field: str
    total_field: str
    interest_free_field: Optional[str] = None
    interest_rate_field: Optional[str] = None


PURCHASE_VIEW = ScheduleView(
    name="purchase",
    collection_key="purchase_installments",
    count_field="count",
    amount_field="amount",
    total_field="total",
    interest_free_field="interest_free",
)

FINANCIAL_VIEW = ScheduleView(
    name="financial",
    collection_key="financing_options",
    count_field="installments",
    amount_field="installment_value",
    total_field="total_value",
    interest_rate_field="interest_rate",
)

# First view present in the payload wins
DEFAULT_VIEW_PRECEDENCE: Tuple[ScheduleView, ...] = (PURCHASE_VIEW, FINANCIAL_VIEW)


class InstallmentNormalizer:
    """
    Convert an authorizer payload into a canonical InstallmentPlan.

    Rules:
    - Purchase view is authoritative; financial view is used only when the
      purchase view is absent
    - Upstream total wins over count x installment when they differ by less
      than `count` minor units; the installment is re-derived by allocation
    - interest_free when flagged, when the rate is zero, or when the total
      equals the requested price
    """

    def __init__(self, views: Sequence[ScheduleView] = DEFAULT_VIEW_PRECEDENCE):
        self.views = tuple(views)

    def normalize(self, payload: Mapping[str, Any], price: Money) -> InstallmentPlan:
        """
        Raises:
            MalformedScheduleError: no usable view, bad counts or negative/inconsistent amounts
            PrecisionError: amount finer than the currency's minor unit
            CurrencyMismatchError: payload currency differs from the price currency
        """
        if not isinstance(payload, Mapping):
            raise MalformedScheduleError("Authorizer payload is not an object")

        currency = payload.get("currency") or price.currency
        if currency != price.currency:
            raise CurrencyMismatchError(currency, price.currency)

        view, entries = self._select_view(payload)
        options = [self._parse_entry(view, entry, price) for entry in entries]
        return InstallmentPlan.from_options(price.currency, options)

    def _select_view(self, payload: Mapping[str, Any]) -> Tuple[ScheduleView, list]:
        for view in self.views:
            entries = payload.get(view.collection_key)
            if entries is None:
                continue
            if not isinstance(entries, list):
                raise MalformedScheduleError(f"'{view.collection_key}' is not a list")
            return view, entries

        keys = ", ".join(v.collection_key for v in self.views)
        raise MalformedScheduleError(f"Payload has none of: {keys}")

    def _parse_entry(self, view: ScheduleView, entry: Any, price: Money) -> InstallmentOption:
        if not isinstance(entry, Mapping):
            raise MalformedScheduleError(f"{view.name} entry is not an object")

        count = entry.get(view.count_field)
        if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
            raise MalformedScheduleError(f"{view.name} entry has invalid count: {count!r}")

        installment = self._amount(view, entry, view.amount_field, price.currency)
        upstream_total = self._amount(view, entry, view.total_field, price.currency)

        if installment is None and upstream_total is None:
            raise MalformedScheduleError(f"{view.name} entry for {count}x has no amounts")

        if installment is None:
            total = upstream_total
            installment = total.allocate(count)[-1]
        else:
            total = installment.multiply(count)
            if upstream_total is not None and upstream_total != total:
                drift = abs(upstream_total.amount - total.amount)
                if drift >= count:
                    raise MalformedScheduleError(
                        f"{view.name} entry for {count}x: total {upstream_total} "
                        f"disagrees with {count} x {installment}"
                    )
                # Rounding drift: keep the upstream total, smallest share is the installment
                total = upstream_total
                installment = total.allocate(count)[-1]

        return InstallmentOption(
            count=count,
            installment_amount=installment,
            total_amount=total,
            interest_free=self._is_interest_free(view, entry, total, price),
        )

    @staticmethod
    def _amount(view: ScheduleView, entry: Mapping[str, Any], field_name: str, currency: str) -> Optional[Money]:
        raw = entry.get(field_name)
        if raw is None:
            return None
        try:
            money = Money.from_decimal(raw, currency)
        except ValidationError as e:
            raise MalformedScheduleError(f"{view.name} entry has invalid {field_name}: {raw!r}") from e
        if money.amount < 0:
            raise MalformedScheduleError(f"{view.name} entry has negative {field_name}: {raw!r}")
        return money

    @staticmethod
    def _is_interest_free(view: ScheduleView, entry: Mapping[str, Any], total: Money, price: Money) -> bool:
        if view.interest_free_field and entry.get(view.interest_free_field) is True:
            return True
        if view.interest_rate_field:
            rate = entry.get(view.interest_rate_field)
            if rate is not None and not isinstance(rate, bool):
                try:
                    if Decimal(str(rate)) == 0:
                        return True
                except InvalidOperation:
                    raise MalformedScheduleError(f"{view.name} entry has invalid interest rate: {rate!r}") from None
        return total == price
