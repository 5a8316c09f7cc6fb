"""POST /v1/installment-conditions - installment options for a checkout cart"""

import logging
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from conditions_gateway.api.v1.schemas import ConditionsRequest, ConditionsResponse, ErrorResponse
from conditions_gateway.api.dependencies import get_conditions_service, get_request_id
from conditions_gateway.domain.exceptions import DomainException
from conditions_gateway.services.payment_conditions import PaymentConditionsService

router = APIRouter()


@router.post(
    "/installment-conditions",
    response_model=ConditionsResponse,
    responses={422: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def get_installment_conditions(
    request_body: ConditionsRequest,
    request: Request,
    service: PaymentConditionsService = Depends(get_conditions_service),
):
    """
    Installment conditions for the cart.

    Always 200 when the cart is valid: an authorizer outage yields
    status "unavailable" so checkout continues without installments.
    Money errors in the cart are a 422; the same errors found in the
    authorizer's payload are a 502.
    """
    request_id = get_request_id(request)

    try:
        cart = request_body.to_cart()
    except DomainException as e:
        logging.warning(f"Conditions request rejected: {e}", extra={"request_id": request_id})
        return JSONResponse(status_code=422, content={"error": e.code, "detail": str(e), "source": "request"})

    try:
        result = await service.get(cart, correlation_id=request_id)
    except DomainException as e:
        # The cart was already valid, so the authorizer's payload is at fault
        logging.error(f"Authorizer payload rejected: {e}", extra={"request_id": request_id})
        return JSONResponse(status_code=502, content={"error": e.code, "detail": str(e), "source": "upstream"})

    return ConditionsResponse.from_result(result)
