"""M-Pesa Daraja gateway client.

Talks to the Daraja REST API over HTTP using **httpx**:

1. ``GET /oauth/v1/generate?grant_type=client_credentials`` with HTTP Basic
   consumer key/secret, yielding a short-lived bearer token.
2. ``POST /mpesa/stkpush/v1/processrequest`` asking the customer's phone to
   confirm the payment.  The outcome arrives later on the callback URL.

The STK password is ``base64(shortcode + passkey + timestamp)`` with the
timestamp formatted ``YYYYMMDDHHMMSS``.
"""

import base64
import logging
from datetime import datetime
from typing import Any, Callable, Optional

import httpx
from pydantic import BaseModel, Field, TypeAdapter

from app.domain.repositories import IPaymentGateway

logger = logging.getLogger(__name__)


class PaymentGatewayError(Exception):
    """The gateway was unreachable or refused the request."""


class MpesaGateway(IPaymentGateway):
    """Daraja STK-push client.

    Constructor args:
        base_url:         Daraja host (sandbox by default).
        consumer_key / consumer_secret:  app credentials for the OAuth call.
        shortcode / passkey:  merchant paybill and its STK passkey.
        timeout:          per-request timeout in seconds.
        transport:        optional httpx transport (tests use ``MockTransport``).
    """

    def __init__(
        self,
        consumer_key: str,
        consumer_secret: str,
        shortcode: str,
        passkey: str,
        base_url: str = "https://sandbox.safaricom.co.ke",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.shortcode = shortcode
        self.passkey = passkey
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.clock = clock

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self.transport
        )

    def stk_password(self, timestamp: str) -> str:
        raw = f"{self.shortcode}{self.passkey}{timestamp}"
        return base64.b64encode(raw.encode()).decode()

    async def _access_token(self, client: httpx.AsyncClient) -> str:
        resp = await client.get(
            "/oauth/v1/generate",
            params={"grant_type": "client_credentials"},
            auth=(self.consumer_key, self.consumer_secret),
        )
        resp.raise_for_status()
        token = resp.json().get("access_token")
        if not token:
            raise PaymentGatewayError("OAuth response carried no access_token")
        return token

    async def initiate_stk_push(self, amount: int, phone_number: str, callback_url: str) -> dict:
        timestamp = self.clock().strftime("%Y%m%d%H%M%S")
        payload = {
            "BusinessShortCode": self.shortcode,
            "Password": self.stk_password(timestamp),
            "Timestamp": timestamp,
            "TransactionType": "CustomerPayBillOnline",
            "Amount": amount,
            "PartyA": phone_number,
            "PartyB": self.shortcode,
            "PhoneNumber": phone_number,
            "CallBackURL": callback_url,
            "AccountReference": "BookSwap",
            "TransactionDesc": "Token Purchase",
        }
        try:
            async with self._client() as client:
                token = await self._access_token(client)
                resp = await client.post(
                    "/mpesa/stkpush/v1/processrequest",
                    json=payload,
                    headers={"Authorization": f"Bearer {token}"},
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as exc:
            logger.error("M-Pesa STK push failed: %s", exc)
            raise PaymentGatewayError(str(exc)) from exc

        logger.info(
            "STK push accepted: CheckoutRequestID=%s amount=%d",
            data.get("CheckoutRequestID"), amount,
        )
        return data


class CallbackItem(BaseModel):
    name: Optional[str] = Field(None, alias="Name")
    value: Any = Field(None, alias="Value")


class CallbackMetadata(BaseModel):
    items: Optional[list[CallbackItem]] = Field(None, alias="Item")


class StkCallback(BaseModel):
    result_code: int = Field(alias="ResultCode")
    metadata: Optional[CallbackMetadata] = Field(None, alias="CallbackMetadata")


class CallbackBody(BaseModel):
    stk_callback: StkCallback = Field(alias="stkCallback")


class StkCallbackEnvelope(BaseModel):
    """``{"Body": {"stkCallback": {...}}}`` as posted to the callback URL."""

    body: CallbackBody = Field(alias="Body")


# Whole shillings; ``10.0`` is accepted, ``10.5`` is refused.
_callback_amount = TypeAdapter(int)


def extract_callback_amount(payload: Any) -> tuple[int, Optional[int]]:
    """Return ``(result_code, amount)`` from a Daraja STK callback body.

    ``amount`` is ``None`` when the metadata carries no ``Amount`` item,
    which is the case for every failed or cancelled payment.  A body of the
    wrong shape raises ``pydantic.ValidationError``.
    """
    callback = StkCallbackEnvelope.model_validate(payload).body.stk_callback
    items = (callback.metadata.items if callback.metadata else None) or []
    for item in items:
        if item.name == "Amount" and item.value is not None:
            return callback.result_code, _callback_amount.validate_python(item.value)
    return callback.result_code, None
