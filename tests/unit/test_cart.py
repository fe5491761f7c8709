"""
Unit tests for the session cart.
"""

from uuid import uuid4

import pytest

from app.domain.entities import PaymentMethod
from app.services.cart import CASH_DISPLAY_RATE, CartStore


@pytest.fixture
def cart() -> CartStore:
    return CartStore()


def add_book(cart, title, tokens=0, price=None, method=PaymentMethod.TOKENS):
    return cart.add(
        title=title,
        author="Author",
        condition="good",
        token_value=tokens,
        payment_method=method,
        price=price,
    )


class TestTotals:

    def test_mixed_cart_totals(self, cart):
        add_book(cart, "A", tokens=10)
        add_book(cart, "A", tokens=10)
        add_book(cart, "B", price=5, method=PaymentMethod.MONEY)

        assert cart.total_tokens() == 20
        assert cart.total_cash() == 5
        assert cart.total_cash_display() == 650

    def test_empty_cart(self, cart):
        assert cart.total_tokens() == 0
        assert cart.total_cash() == 0

    def test_display_rate(self):
        assert CASH_DISPLAY_RATE == 130
        cart = CartStore(cash_display_rate=100)
        add_book(cart, "B", price=2, method=PaymentMethod.MONEY)

        assert cart.total_cash_display() == 200


class TestLines:

    def test_same_title_same_method_merges(self, cart):
        first = add_book(cart, "A", tokens=10)
        second = add_book(cart, "A", tokens=10)

        assert first is second
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 2

    def test_same_title_different_method_is_separate(self, cart):
        add_book(cart, "A", tokens=10)
        add_book(cart, "A", price=3, method=PaymentMethod.MONEY)

        assert len(cart.items) == 2
        assert len(cart.lines(PaymentMethod.TOKENS)) == 1

    def test_same_title_different_listings_stay_apart(self, cart):
        cheap, dear = uuid4(), uuid4()
        cart.add("Dune", "Herbert", "worn", 5, PaymentMethod.TOKENS, book_id=cheap)
        cart.add("Dune", "Herbert", "mint", 50, PaymentMethod.TOKENS, book_id=dear)

        assert [(item.book_id, item.token_value) for item in cart.items] == [
            (cheap, 5),
            (dear, 50),
        ]
        assert cart.total_tokens() == 55

    def test_same_listing_adds_quantity(self, cart):
        book_id = uuid4()
        for quantity in (2, 3):
            item = cart.add(
                "Dune", "Herbert", "worn", 5, PaymentMethod.TOKENS, book_id=book_id, quantity=quantity
            )

        assert len(cart.items) == 1
        assert item.quantity == 5

    def test_listing_line_does_not_absorb_untied_line(self, cart):
        cart.add("Dune", "Herbert", "worn", 5, PaymentMethod.TOKENS, book_id=uuid4())
        add_book(cart, "Dune", tokens=5)

        assert len(cart.items) == 2

    def test_update_quantity(self, cart):
        item = add_book(cart, "A", tokens=4)

        cart.update_quantity(item.id, 3)

        assert cart.total_tokens() == 12

    def test_zero_quantity_removes(self, cart):
        item = add_book(cart, "A", tokens=4)

        cart.update_quantity(item.id, 0)

        assert cart.items == []

    def test_remove_and_clear(self, cart):
        a = add_book(cart, "A", tokens=4)
        add_book(cart, "B", tokens=4)

        cart.remove(a.id)
        assert [item.title for item in cart.items] == ["B"]

        cart.clear()
        assert cart.items == []


@pytest.mark.asyncio
class TestBalanceCache:

    async def test_balance_is_read_through(self, cart):
        calls = []

        async def fetch():
            calls.append(1)
            return 42

        assert await cart.token_balance(fetch) == 42
        assert await cart.token_balance(fetch) == 42
        assert len(calls) == 1

    async def test_invalidate_forces_refetch(self, cart):
        balances = iter([42, 17])

        async def fetch():
            return next(balances)

        await cart.token_balance(fetch)
        cart.invalidate_balance()

        assert await cart.token_balance(fetch) == 17
