"""Transaction submission to the authorizer with one idempotency key per submission"""

import logging
from typing import Optional

from conditions_gateway.domain.exceptions import UpstreamRejectedError, ValidationError
from conditions_gateway.domain.models import CartSnapshot, TransactionReceipt
from conditions_gateway.infrastructure.clients.authorizer import AuthorizerClient
from conditions_gateway.infrastructure.resilience.idempotency import IdempotencyKeyIssuer

logger = logging.getLogger(__name__)


class TransactionService:
    """Create authorizer transactions; failures propagate (this path never fails open)"""

    def __init__(self, authorizer: AuthorizerClient, issuer: Optional[IdempotencyKeyIssuer] = None):
        self.authorizer = authorizer
        self.issuer = issuer or IdempotencyKeyIssuer()

    async def submit(
        self,
        cart: CartSnapshot,
        installments: int,
        correlation_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> TransactionReceipt:
        """
        Submit one logical transaction.

        Pass `idempotency_key` from a previous receipt to resubmit the same
        transaction after an error; leave it out for a new transaction.

        Raises:
            ValidationError: installments is not a positive int
            CircuitOpenError / UpstreamUnavailableError / UpstreamRejectedError
        """
        if isinstance(installments, bool) or not isinstance(installments, int) or installments <= 0:
            raise ValidationError(f"installments must be a positive int, got {installments!r}")

        key = idempotency_key or self.issuer.issue()
        data = await self.authorizer.create_transaction(cart, installments, key, correlation_id)

        try:
            receipt = TransactionReceipt(
                transaction_id=str(data["id"]),
                status=str(data["status"]),
                idempotency_key=key,
            )
        except KeyError as e:
            raise UpstreamRejectedError(
                self.authorizer.transactions_path, f"transaction response missing {e}"
            ) from e

        logger.info(
            "Transaction submitted",
            extra={
                "transaction_id": receipt.transaction_id,
                "status": receipt.status,
                "installments": installments,
                "correlation_id": correlation_id,
            },
        )
        return receipt
