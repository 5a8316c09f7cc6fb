"""Installment conditions lookup for checkout: cache, authorizer, normalization"""

import logging
import time
from typing import Optional

from conditions_gateway.domain.exceptions import (
    CircuitOpenError,
    MalformedScheduleError,
    UpstreamRejectedError,
    UpstreamUnavailableError,
)
from conditions_gateway.domain.installments import InstallmentNormalizer
from conditions_gateway.domain.models import CartSnapshot, ConditionsResult
from conditions_gateway.infrastructure.cache.conditions_cache import ConditionsCache, fingerprint
from conditions_gateway.infrastructure.clients.authorizer import AuthorizerClient
from conditions_gateway.infrastructure.observability.logging import (
    log_conditions_served,
    log_normalization_error,
)
from conditions_gateway.infrastructure.observability.metrics import record_conditions_result

logger = logging.getLogger(__name__)


class PaymentConditionsService:
    """
    Resolve installment conditions for a cart without ever blocking checkout.

    Flow:
    1. Return the cached plan for the cart fingerprint, if fresh
    2. Otherwise ask the authorizer (resilient call)
    3. Normalize the payload against the cart total
    4. Cache the plan; failures are never cached

    Infrastructure failures and bad upstream schedules degrade to an
    UNAVAILABLE result. Money/validation errors propagate to the caller.
    """

    def __init__(
        self,
        authorizer: AuthorizerClient,
        cache: ConditionsCache,
        normalizer: Optional[InstallmentNormalizer] = None,
    ):
        self.authorizer = authorizer
        self.cache = cache
        self.normalizer = normalizer or InstallmentNormalizer()

    async def get(self, cart: CartSnapshot, correlation_id: Optional[str] = None) -> ConditionsResult:
        start_time = time.time()
        key = fingerprint(cart)

        cached_plan = self.cache.get(key)
        if cached_plan is not None:
            result = ConditionsResult.available(cached_plan, cached=True)
        else:
            result = await self._lookup(cart, key, correlation_id)

        duration_ms = (time.time() - start_time) * 1000
        record_conditions_result(result.status.value, result.reason)
        log_conditions_served(
            correlation_id,
            result.status.value,
            len(result.plan) if result.plan is not None else 0,
            result.cached,
            duration_ms,
            result.reason,
        )
        return result

    async def _lookup(self, cart: CartSnapshot, key: str, correlation_id: Optional[str]) -> ConditionsResult:
        try:
            payload = await self.authorizer.fetch_installment_conditions(cart, correlation_id)
            plan = self.normalizer.normalize(payload, cart.total)

        except CircuitOpenError as e:
            logger.warning(f"Conditions skipped: {e}", extra={"correlation_id": correlation_id})
            return ConditionsResult.unavailable(e.code)

        except (UpstreamUnavailableError, UpstreamRejectedError) as e:
            logger.warning(f"Conditions unavailable: {e}", extra={"correlation_id": correlation_id})
            return ConditionsResult.unavailable(e.code)

        except MalformedScheduleError as e:
            log_normalization_error(e, correlation_id)
            return ConditionsResult.unavailable(e.code)

        self.cache.put(key, plan)
        return ConditionsResult.available(plan)
