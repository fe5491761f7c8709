"""
HTTP tests for balances, token checkout, payments and the public catalog.
"""

from uuid import uuid4

import pytest

from app.domain.entities import ListingStatus
from tests.factories import READER_ID, bearer, make_listing

READER = bearer(READER_ID)


@pytest.mark.asyncio
class TestBalance:

    async def test_balance(self, client):
        resp = await client.get("/tokens/balance", headers=READER)

        assert resp.status_code == 200
        assert resp.json()["token_balance"] == 100

    async def test_balance_requires_credential(self, client):
        resp = await client.get("/tokens/balance")

        assert resp.status_code == 401

    async def test_new_user_reads_zero(self, client):
        resp = await client.get("/tokens/balance", headers=bearer(uuid4()))

        assert resp.json()["token_balance"] == 0


@pytest.mark.asyncio
class TestCheckout:

    async def test_checkout(self, client, available_listing, transaction_repo):
        resp = await client.post(
            "/checkout/tokens",
            json={"items": [{"bookId": str(available_listing.id), "quantity": 1}]},
            headers=READER,
        )

        assert resp.status_code == 200
        assert resp.json()["account"]["token_balance"] == 80
        assert transaction_repo.transactions[0].book_id == available_listing.id

    async def test_short_balance_is_402(self, client, available_listing, token_repo):
        resp = await client.post(
            "/checkout/tokens",
            json={"items": [{"bookId": str(available_listing.id), "quantity": 6}]},
            headers=READER,
        )

        assert resp.status_code == 402
        assert resp.json() == {"error": "You don't have enough tokens for this purchase"}
        assert (await token_repo.get(READER_ID)).token_balance == 100

    async def test_same_title_listings_keep_their_own_prices(
        self, client, listing_repo, transaction_repo
    ):
        cheap = make_listing(title="Dune", status=ListingStatus.AVAILABLE, token_price=5)
        dear = make_listing(title="Dune", status=ListingStatus.AVAILABLE, token_price=50)
        listing_repo.listings.update({cheap.id: cheap, dear.id: dear})

        resp = await client.post(
            "/checkout/tokens",
            json={"items": [{"bookId": str(cheap.id)}, {"bookId": str(dear.id)}]},
            headers=READER,
        )

        assert resp.status_code == 200
        assert resp.json()["account"]["token_balance"] == 45
        assert sorted(
            (tx.token_amount, tx.book_id) for tx in transaction_repo.transactions
        ) == [(5, cheap.id), (50, dear.id)]

    @pytest.mark.parametrize(
        "payload, message",
        [
            ({"items": []}, "Cart is empty"),
            ({"items": [{"bookId": str(uuid4()), "quantity": 0}]}, "Invalid quantity"),
            ({"items": [{"bookId": "dune"}]}, "Invalid book ID format"),
            ({"items": [{"bookId": str(uuid4())}]}, "Book is not available"),
        ],
    )
    async def test_checkout_bad_request(self, client, token_repo, rate_limit_repo, payload, message):
        resp = await client.post("/checkout/tokens", json=payload, headers=READER)

        assert resp.status_code == 400
        assert resp.json() == {"error": message}
        assert token_repo.writes == 0
        assert rate_limit_repo.records == []

    async def test_history(self, client, available_listing):
        await client.post(
            "/checkout/tokens",
            json={"items": [{"bookId": str(available_listing.id)}]},
            headers=READER,
        )

        resp = await client.get("/transactions", headers=READER)

        body = resp.json()
        assert body["total"] == 1
        assert body["transactions"][0]["transaction_type"] == "book_purchase"
        assert body["transactions"][0]["token_amount"] == 20

    async def test_history_limit_validated(self, client):
        resp = await client.get("/transactions?limit=0", headers=READER)

        assert resp.status_code == 400
        assert "error" in resp.json()


@pytest.mark.asyncio
class TestPayments:

    async def test_stk_push(self, client, gateway):
        resp = await client.post(
            "/payments/mpesa/stk-push",
            json={"amount": 100, "phoneNumber": "+254712345678"},
            headers=READER,
        )

        assert resp.status_code == 200
        assert resp.json()["CheckoutRequestID"] == "ws_CO_123"
        amount, phone, callback_url = gateway.calls[0]
        assert (amount, phone) == (100, "254712345678")
        assert callback_url.endswith(f"/payments/mpesa/callback?userId={READER_ID}")

    async def test_stk_push_requires_credential(self, client, gateway):
        resp = await client.post(
            "/payments/mpesa/stk-push", json={"amount": 100, "phoneNumber": "0712345678"}
        )

        assert resp.status_code == 401
        assert gateway.calls == []

    @pytest.mark.parametrize(
        "payload, message",
        [
            ({"phoneNumber": "0712345678"}, "Valid amount is required"),
            ({"amount": 150_001, "phoneNumber": "0712345678"}, "Amount exceeds the payment limit"),
            ({"amount": 100}, "Phone number is required"),
            ({"amount": 100, "phoneNumber": "999"}, "Invalid phone number"),
        ],
    )
    async def test_stk_push_bad_request(self, client, gateway, payload, message):
        resp = await client.post("/payments/mpesa/stk-push", json=payload, headers=READER)

        assert resp.status_code == 400
        assert resp.json() == {"error": message}
        assert gateway.calls == []

    async def test_callback_credits_and_acknowledges(self, client, token_repo):
        payload = {
            "Body": {
                "stkCallback": {
                    "ResultCode": 0,
                    "ResultDesc": "The service request is processed successfully.",
                    "CallbackMetadata": {"Item": [{"Name": "Amount", "Value": 40}]},
                }
            }
        }

        resp = await client.post(f"/payments/mpesa/callback?userId={READER_ID}", json=payload)

        assert resp.json() == {"ResultCode": 0, "ResultDesc": "Accepted"}
        assert (await token_repo.get(READER_ID)).token_balance == 140

    async def test_cancelled_payment_acknowledged_without_credit(self, client, token_repo):
        payload = {"Body": {"stkCallback": {"ResultCode": 1032, "ResultDesc": "Request cancelled"}}}

        resp = await client.post(f"/payments/mpesa/callback?userId={READER_ID}", json=payload)

        assert resp.json() == {"ResultCode": 0, "ResultDesc": "Accepted"}
        assert token_repo.writes == 0

    async def test_malformed_callback_rejected(self, client):
        resp = await client.post(f"/payments/mpesa/callback?userId={READER_ID}", json={"foo": 1})

        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid callback payload"}

    async def test_callback_metadata_as_list_rejected(self, client, token_repo):
        payload = {
            "Body": {
                "stkCallback": {
                    "ResultCode": 0,
                    "CallbackMetadata": [{"Name": "Amount", "Value": 10}],
                }
            }
        }

        resp = await client.post(f"/payments/mpesa/callback?userId={READER_ID}", json=payload)

        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid callback payload"}
        assert token_repo.writes == 0


@pytest.mark.asyncio
class TestCatalog:

    async def test_lists_only_available(self, client, available_listing):
        resp = await client.get("/books/")

        body = resp.json()
        assert body["total"] == 1
        assert [b["id"] for b in body["books"]] == [str(available_listing.id)]

    async def test_health(self, client):
        resp = await client.get("/health")

        assert resp.json() == {"status": "healthy"}
