"""Payment authorizer API client for installment conditions and transactions"""

from typing import Any, Dict, Optional

import httpx

from conditions_gateway.config import settings
from conditions_gateway.domain.models import CartSnapshot
from conditions_gateway.infrastructure.clients.resilient import ResilientClient, UpstreamRequest


def build_http_client(base_url: str | None = None) -> httpx.AsyncClient:
    """Shared connection pool for the authorizer; closed on application shutdown"""
    return httpx.AsyncClient(
        base_url=base_url or settings.authorizer_base_url,
        timeout=settings.upstream_timeout_seconds,
    )


class AuthorizerClient:
    """Client for the external payment authorizer"""

    def __init__(
        self,
        resilient_client: ResilientClient,
        conditions_path: str | None = None,
        transactions_path: str | None = None,
    ):
        self.resilient_client = resilient_client
        self.conditions_path = conditions_path or settings.conditions_path
        self.transactions_path = transactions_path or settings.transactions_path

    async def fetch_installment_conditions(
        self, cart: CartSnapshot, correlation_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Simulate installments for the cart. Read-only, so no idempotency key.

        Returns:
            Raw authorizer payload (purchase and/or financial schedule views)
        """
        return await self.resilient_client.call(
            UpstreamRequest(
                method="POST",
                path=self.conditions_path,
                json=serialize_cart(cart),
                correlation_id=correlation_id,
            )
        )

    async def create_transaction(
        self,
        cart: CartSnapshot,
        installments: int,
        idempotency_key: str,
        correlation_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a transaction. Every retry re-sends `idempotency_key` so the
        authorizer applies the operation at most once.
        """
        payload = serialize_cart(cart)
        payload["installments"] = installments
        return await self.resilient_client.call(
            UpstreamRequest(
                method="POST",
                path=self.transactions_path,
                json=payload,
                correlation_id=correlation_id,
                mutating=True,
                idempotency_key=idempotency_key,
            )
        )


def serialize_cart(cart: CartSnapshot) -> Dict[str, Any]:
    """Wire format: decimal strings, never floats"""
    return {
        "amount": str(cart.total.to_decimal()),
        "currency": cart.currency,
        "items": [
            {
                "sku": line.sku,
                "quantity": line.quantity,
                "unit_price": str(line.unit_price.to_decimal()),
            }
            for line in cart.lines
        ],
    }
