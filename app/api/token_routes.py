"""Token API routes (balance, token checkout, purchase history)."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.api.schemas import (
    CheckoutRequest,
    TokenAccountResponse,
    TokenActionResponse,
    TransactionListResponse,
    TransactionResponse,
)
from app.core.dependencies import (
    get_current_principal,
    get_token_ledger_service,
    validated_body,
)
from app.domain.entities import Principal
from app.domain.services import ITokenLedgerService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["tokens"])


@router.get("/tokens/balance", response_model=TokenAccountResponse)
async def get_balance(
    principal: Annotated[Principal, Depends(get_current_principal)],
    ledger: Annotated[ITokenLedgerService, Depends(get_token_ledger_service)],
) -> TokenAccountResponse:
    """Current balance; users without an account read as zero."""
    account = await ledger.get_balance(principal.id)
    return TokenAccountResponse.model_validate(account)


@router.post("/checkout/tokens", response_model=TokenActionResponse)
async def checkout_with_tokens(
    principal: Annotated[Principal, Depends(get_current_principal)],
    body: Annotated[CheckoutRequest, Depends(validated_body(CheckoutRequest))],
    ledger: Annotated[ITokenLedgerService, Depends(get_token_ledger_service)],
) -> TokenActionResponse:
    """Buy listings with tokens.

    Body: ``{"items": [{"bookId": "<uuid>", "quantity": 1}, ...]}``.  Prices
    come from the listings; a short balance answers 402 and changes nothing.
    """
    lines = [(line.book_id, line.quantity) for line in body.items]
    account = await ledger.checkout_tokens(principal.id, lines)
    return TokenActionResponse(account=TokenAccountResponse.model_validate(account))


@router.get("/transactions", response_model=TransactionListResponse)
async def list_transactions(
    principal: Annotated[Principal, Depends(get_current_principal)],
    ledger: Annotated[ITokenLedgerService, Depends(get_token_ledger_service)],
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> TransactionListResponse:
    """The caller's purchase history, newest first."""
    transactions = await ledger.history(principal.id, limit)
    return TransactionListResponse(
        transactions=[TransactionResponse.from_transaction(tx) for tx in transactions],
        total=len(transactions),
    )
