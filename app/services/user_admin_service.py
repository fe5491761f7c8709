"""Admin mutations on users: token balance adjustments and role changes."""

import logging
from typing import Literal
from uuid import UUID, uuid4

from app.domain.entities import Role, TokenAccount, Transaction, TransactionType
from app.domain.exceptions import NotFound
from app.domain.repositories import (
    IRoleRepository,
    ITokenAccountRepository,
    ITransactionRepository,
)
from app.domain.services import IRateLimiter, IUserAdminService
from app.services.privileged import PrivilegedMutation

logger = logging.getLogger(__name__)


class UserAdminService(IUserAdminService):

    def __init__(
        self,
        token_repository: ITokenAccountRepository,
        role_repository: IRoleRepository,
        transaction_repository: ITransactionRepository,
        rate_limiter: IRateLimiter,
    ):
        self.token_repository = token_repository
        self.role_repository = role_repository
        self.transaction_repository = transaction_repository
        self.mutation = PrivilegedMutation(rate_limiter)

    async def adjust_tokens(
        self, admin_id: UUID, user_id: UUID, amount: int, action: Literal["add", "subtract"]
    ) -> TokenAccount:
        """Add to or remove from a user's balance.

        ``add`` creates the account when missing; ``subtract`` floors the
        balance at zero and needs an existing account.
        """

        async def mutate() -> TokenAccount:
            if action == "add":
                account = await self.token_repository.credit(user_id, amount)
            else:
                account = await self.token_repository.deduct(user_id, amount)
                if account is None:
                    raise NotFound("Token account not found")
            await self.transaction_repository.add_many([
                Transaction(
                    id=uuid4(),
                    user_id=user_id,
                    transaction_type=TransactionType.ADMIN_ADJUSTMENT,
                    payment_method="admin",
                    token_amount=amount if action == "add" else -amount,
                )
            ])
            return account

        account = await self.mutation.run(admin_id, mutate, "Failed to update tokens")
        logger.info("Admin %s: %s %d tokens for user %s", admin_id, action, amount, user_id)
        return account

    async def set_role(self, admin_id: UUID, user_id: UUID, role: Role) -> Role:
        stored = await self.mutation.run(
            admin_id,
            lambda: self.role_repository.set_role(user_id, role),
            "Failed to update user role",
        )
        logger.info("Admin %s set role of %s to %s", admin_id, user_id, stored.value)
        return stored
