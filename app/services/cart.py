"""Session-scoped shopping cart.

A ``CartStore`` is created per shopper session and handed to whatever needs
it; nothing about it is global.  The token balance it carries is only a
read-through cache of the server value and is dropped after every mutating
action, so it never drives an authorization or funds decision.
"""

import time
from typing import Awaitable, Callable, Optional
from uuid import UUID

from app.domain.entities import CartItem, PaymentMethod

# Cash prices are stored in one unit and shown in KSH at this fixed rate.
CASH_DISPLAY_RATE = 130


class CartStore:

    def __init__(self, cash_display_rate: int = CASH_DISPLAY_RATE):
        self.items: list[CartItem] = []
        self.cash_display_rate = cash_display_rate
        self._cached_balance: Optional[int] = None

    def add(
        self,
        title: str,
        author: str,
        condition: str,
        token_value: int,
        payment_method: PaymentMethod,
        price: Optional[float] = None,
        book_id: Optional[UUID] = None,
        image: Optional[str] = None,
        quantity: int = 1,
    ) -> CartItem:
        """Add copies to the cart, merging with a matching line.

        Lines tied to a listing match on the listing id, so two copies of the
        same title listed separately stay separate lines with their own
        prices.  Lines without a listing match on title and payment method.
        """
        for item in self.items:
            if self._same_line(item, title, payment_method, book_id):
                item.quantity += quantity
                return item

        item = CartItem(
            id=f"{book_id or title}-{payment_method.value}-{time.time_ns()}",
            title=title,
            author=author,
            condition=condition,
            token_value=token_value,
            payment_method=payment_method,
            price=price,
            book_id=book_id,
            image=image,
            quantity=quantity,
        )
        self.items.append(item)
        return item

    @staticmethod
    def _same_line(
        item: CartItem, title: str, payment_method: PaymentMethod, book_id: Optional[UUID]
    ) -> bool:
        if item.payment_method != payment_method:
            return False
        if book_id is not None:
            return item.book_id == book_id
        return item.book_id is None and item.title == title

    def remove(self, item_id: str) -> None:
        self.items = [item for item in self.items if item.id != item_id]

    def update_quantity(self, item_id: str, quantity: int) -> None:
        if quantity <= 0:
            self.remove(item_id)
            return
        for item in self.items:
            if item.id == item_id:
                item.quantity = quantity

    def clear(self) -> None:
        self.items = []

    def lines(self, payment_method: PaymentMethod) -> list[CartItem]:
        return [item for item in self.items if item.payment_method == payment_method]

    def total_tokens(self) -> int:
        return sum(item.token_value * item.quantity for item in self.lines(PaymentMethod.TOKENS))

    def total_cash(self) -> float:
        return sum((item.price or 0) * item.quantity for item in self.lines(PaymentMethod.MONEY))

    def total_cash_display(self) -> float:
        """Cash total in KSH, as rendered at checkout."""
        return self.total_cash() * self.cash_display_rate

    # -- token balance cache --------------------------------------------------

    def invalidate_balance(self) -> None:
        self._cached_balance = None

    async def token_balance(self, fetch: Callable[[], Awaitable[int]]) -> int:
        if self._cached_balance is None:
            self._cached_balance = await fetch()
        return self._cached_balance
