"""Token ledger: balances, token checkout and top-ups."""

import logging
from typing import Optional
from uuid import UUID, uuid4

from app.domain.entities import (
    ListingStatus,
    OperationType,
    PaymentMethod,
    TokenAccount,
    Transaction,
    TransactionType,
)
from app.domain.exceptions import BadRequest, InsufficientFunds
from app.domain.repositories import (
    IListingRepository,
    ITokenAccountRepository,
    ITransactionRepository,
)
from app.domain.services import IRateLimiter, ITokenLedgerService
from app.services.cart import CartStore
from app.services.privileged import PrivilegedMutation

logger = logging.getLogger(__name__)


class TokenLedgerService(ITokenLedgerService):

    def __init__(
        self,
        token_repository: ITokenAccountRepository,
        transaction_repository: ITransactionRepository,
        listing_repository: IListingRepository,
        rate_limiter: IRateLimiter,
    ):
        self.token_repository = token_repository
        self.transaction_repository = transaction_repository
        self.listing_repository = listing_repository
        self.purchase_guard = PrivilegedMutation(rate_limiter, OperationType.TOKEN_PURCHASE)

    async def get_balance(self, user_id: UUID) -> TokenAccount:
        account = await self.token_repository.get(user_id)
        return account or TokenAccount(user_id=user_id)

    async def build_cart(self, lines: list[tuple[UUID, int]]) -> CartStore:
        """Price ``(book_id, quantity)`` checkout lines from the stored listings.

        The token value always comes from the listing, never from the client.
        Repeating a listing adds to its line.
        """
        if not lines:
            raise BadRequest("Cart is empty")

        cart = CartStore()
        for book_id, quantity in lines:
            listing = await self.listing_repository.get_by_id(book_id)
            if listing is None or listing.status != ListingStatus.AVAILABLE:
                raise BadRequest("Book is not available")
            cart.add(
                title=listing.title,
                author=listing.author,
                condition=listing.condition,
                token_value=listing.token_price,
                payment_method=PaymentMethod.TOKENS,
                price=listing.price_ksh,
                book_id=listing.id,
                image=listing.image_url,
                quantity=quantity,
            )
        return cart

    async def checkout_tokens(
        self, user_id: UUID, lines: list[tuple[UUID, int]]
    ) -> TokenAccount:
        cart = await self.build_cart(lines)
        return await self.purchase_guard.run(
            user_id, lambda: self.purchase(user_id, cart), "Failed to complete purchase"
        )

    async def purchase(self, user_id: UUID, cart: CartStore) -> TokenAccount:
        """Pay for the cart's token lines out of the user's balance.

        The pre-flight comparison reports a short balance without writing;
        the debit itself is a conditional update, so a concurrent purchase
        that drained the balance in between is reported the same way.
        """
        total = cart.total_tokens()
        if total <= 0:
            raise BadRequest("Cart has no token items")

        try:
            current = await self.get_balance(user_id)
            if total > current.token_balance:
                logger.info(
                    "Insufficient tokens for %s: need %d, have %d",
                    user_id, total, current.token_balance,
                )
                raise InsufficientFunds("You don't have enough tokens for this purchase")

            account = await self.token_repository.debit(user_id, total)
            if account is None:
                raise InsufficientFunds("You don't have enough tokens for this purchase")

            token_lines = cart.lines(PaymentMethod.TOKENS)
            await self.transaction_repository.add_many([
                Transaction(
                    id=uuid4(),
                    user_id=user_id,
                    transaction_type=TransactionType.BOOK_PURCHASE,
                    payment_method=PaymentMethod.TOKENS.value,
                    token_amount=item.token_value * item.quantity,
                    book_id=item.book_id,
                )
                for item in token_lines
            ])
            for item in token_lines:
                cart.remove(item.id)
        finally:
            cart.invalidate_balance()

        logger.info("User %s spent %d tokens on %d line(s)", user_id, total, len(token_lines))
        return account

    async def top_up(
        self,
        user_id: UUID,
        tokens: int,
        payment_method: str,
        amount_ksh: Optional[float] = None,
    ) -> TokenAccount:
        """Credit purchased tokens, opening the account on first purchase."""
        if tokens <= 0:
            raise BadRequest("Valid token amount is required")
        account = await self.token_repository.credit(user_id, tokens)
        await self.transaction_repository.add_many([
            Transaction(
                id=uuid4(),
                user_id=user_id,
                transaction_type=TransactionType.TOKEN_PURCHASE,
                payment_method=payment_method,
                token_amount=tokens,
                amount_ksh=amount_ksh,
            )
        ])
        logger.info("Credited %d tokens to %s via %s", tokens, user_id, payment_method)
        return account

    async def history(self, user_id: UUID, limit: int = 100) -> list[Transaction]:
        return await self.transaction_repository.list_for_user(user_id, limit)
