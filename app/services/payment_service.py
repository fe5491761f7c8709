"""Cash -> token purchases through the mobile-money gateway.

Initiation is authenticated and rate limited under ``token_purchase``.  The
gateway's asynchronous callback carries the principal id in its query string
and is trusted as delivered: there is no signature check and no dedup key, so
a replayed success callback credits twice.
"""

import logging
from typing import Any, Optional
from uuid import UUID

from app.domain.entities import OperationType
from app.domain.exceptions import BadRequest
from app.domain.repositories import IPaymentGateway
from app.domain.services import IPaymentService, IRateLimiter, ITokenLedgerService
from app.infrastructure.payments.mpesa import extract_callback_amount
from app.services.privileged import PrivilegedMutation

logger = logging.getLogger(__name__)


class PaymentService(IPaymentService):

    def __init__(
        self,
        gateway: IPaymentGateway,
        ledger: ITokenLedgerService,
        rate_limiter: IRateLimiter,
        public_base_url: str,
        tokens_per_ksh: int = 1,
    ):
        self.gateway = gateway
        self.ledger = ledger
        self.purchase_guard = PrivilegedMutation(rate_limiter, OperationType.TOKEN_PURCHASE)
        self.public_base_url = public_base_url.rstrip("/")
        self.tokens_per_ksh = tokens_per_ksh

    def callback_url(self, user_id: UUID) -> str:
        return f"{self.public_base_url}/payments/mpesa/callback?userId={user_id}"

    async def initiate_token_purchase(self, user_id: UUID, amount: int, phone_number: str) -> dict:
        """Prompt ``phone_number`` (already in ``2547XXXXXXXX`` form) for ``amount`` KSH."""
        return await self.purchase_guard.run(
            user_id,
            lambda: self.gateway.initiate_stk_push(
                amount, phone_number, self.callback_url(user_id)
            ),
            "Failed to initiate payment",
        )

    async def handle_callback(self, user_id: Optional[str], payload: Any) -> Optional[int]:
        try:
            result_code, amount = extract_callback_amount(payload)
        except ValueError as exc:
            logger.warning("Malformed payment callback: %s", exc)
            raise BadRequest("Invalid callback payload")

        if result_code != 0:
            logger.info("Payment for %s not completed (ResultCode=%s)", user_id, result_code)
            return None
        account_id = self._parse_user_id(user_id)
        if account_id is None:
            logger.warning("Successful payment callback without a valid userId: %r", user_id)
            return None
        if not amount or amount <= 0:
            logger.warning("Successful payment callback without an Amount for %s", user_id)
            return None

        tokens = amount * self.tokens_per_ksh
        await self.ledger.top_up(account_id, tokens, "mpesa", amount_ksh=float(amount))
        return tokens

    @staticmethod
    def _parse_user_id(user_id: Optional[str]) -> Optional[UUID]:
        if not user_id:
            return None
        try:
            return UUID(user_id)
        except ValueError:
            return None
