"""POST /v1/transactions - create an installment transaction at the authorizer"""

import logging
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from conditions_gateway.api.v1.schemas import ErrorResponse, TransactionRequest, TransactionResponse
from conditions_gateway.api.dependencies import get_request_id, get_transaction_service
from conditions_gateway.domain.exceptions import (
    CircuitOpenError,
    DomainException,
    UpstreamRejectedError,
    UpstreamUnavailableError,
)
from conditions_gateway.services.transactions import TransactionService

router = APIRouter()


@router.post(
    "/transactions",
    response_model=TransactionResponse,
    responses={422: {"model": ErrorResponse}, 502: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def create_transaction(
    request_body: TransactionRequest,
    request: Request,
    service: TransactionService = Depends(get_transaction_service),
):
    """
    Submit a transaction. Resubmit with the returned idempotency_key after
    a 502/503 to retry the same transaction without double charging.
    """
    request_id = get_request_id(request)
    # Issued here so failed attempts can hand the key back for resubmission
    idempotency_key = request_body.idempotency_key or service.issuer.issue()

    try:
        receipt = await service.submit(
            request_body.to_cart(),
            request_body.installments,
            correlation_id=request_id,
            idempotency_key=idempotency_key,
        )

    except (CircuitOpenError, UpstreamUnavailableError) as e:
        logging.error(f"Authorizer unavailable: {e}", extra={"request_id": request_id})
        return JSONResponse(
            status_code=503,
            content={"error": e.code, "detail": "Authorizer unavailable", "idempotency_key": idempotency_key},
        )

    except UpstreamRejectedError as e:
        logging.error(f"Authorizer rejected transaction: {e}", extra={"request_id": request_id})
        return JSONResponse(
            status_code=502,
            content={"error": e.code, "detail": e.reason, "idempotency_key": idempotency_key},
        )

    except DomainException as e:
        logging.warning(f"Transaction request rejected: {e}", extra={"request_id": request_id})
        return JSONResponse(status_code=422, content={"error": e.code, "detail": str(e)})

    return TransactionResponse(
        transaction_id=receipt.transaction_id,
        status=receipt.status,
        idempotency_key=receipt.idempotency_key,
    )
