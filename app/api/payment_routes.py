"""Mobile-money payment routes.

  POST /payments/mpesa/stk-push   authenticated; prompts the payer's phone
  POST /payments/mpesa/callback   called by the gateway with the outcome
"""

import logging
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, Query

from app.api.schemas import StkPushRequest
from app.core.dependencies import (
    get_current_principal,
    get_payment_service,
    json_body,
    validated_body,
)
from app.domain.entities import Principal
from app.domain.services import IPaymentService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/payments/mpesa", tags=["payments"])


@router.post("/stk-push")
async def stk_push(
    principal: Annotated[Principal, Depends(get_current_principal)],
    body: Annotated[StkPushRequest, Depends(validated_body(StkPushRequest))],
    payments: Annotated[IPaymentService, Depends(get_payment_service)],
) -> dict:
    """Start a token purchase.  Body: ``{"amount": <KSH>, "phoneNumber": "2547..."}``.

    The gateway's reply is passed through unchanged; tokens are credited only
    when the callback confirms the payment.
    """
    return await payments.initiate_token_purchase(principal.id, body.amount, body.phone_number)


@router.post("/callback")
async def mpesa_callback(
    body: Annotated[Any, Depends(json_body)],
    payments: Annotated[IPaymentService, Depends(get_payment_service)],
    user_id: Annotated[Optional[str], Query(alias="userId")] = None,
) -> dict:
    credited = await payments.handle_callback(user_id, body)
    if credited:
        logger.info("Payment callback credited %d tokens to %s", credited, user_id)
    return {"ResultCode": 0, "ResultDesc": "Accepted"}
