"""Domain-level application service interfaces (ports).

Route handlers depend on these abstractions only; concrete implementations
live in ``app/services/`` and are wired by ``app/core/dependencies.py``.
Tests swap them through FastAPI's ``app.dependency_overrides``.
"""

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Literal, Optional
from uuid import UUID

from app.domain.entities import (
    Listing,
    ListingStatus,
    OperationType,
    RateLimitDecision,
    Role,
    TokenAccount,
    Transaction,
)


class IRateLimiter(ABC):

    @abstractmethod
    async def check(
        self, user_id: UUID, operation_type: str, max_attempts: int, window: timedelta
    ) -> RateLimitDecision:
        pass

    @abstractmethod
    async def record(self, user_id: UUID, operation_type: str) -> None:
        pass

    @abstractmethod
    async def enforce(self, user_id: UUID, operation: OperationType) -> RateLimitDecision:
        """Check against the configured policy and raise ``RateLimited`` when denied."""
        pass


class IListingAdminService(ABC):

    @abstractmethod
    async def approve_listing(
        self, admin_id: UUID, book_id: UUID, token_price: int, price_ksh: Optional[float] = None
    ) -> Listing:
        pass

    @abstractmethod
    async def delete_listing(self, admin_id: UUID, book_id: UUID) -> bool:
        pass

    @abstractmethod
    async def update_listing_status(
        self, admin_id: UUID, book_id: UUID, status: ListingStatus
    ) -> Listing:
        pass


class IUserAdminService(ABC):

    @abstractmethod
    async def adjust_tokens(
        self, admin_id: UUID, user_id: UUID, amount: int, action: Literal["add", "subtract"]
    ) -> TokenAccount:
        pass

    @abstractmethod
    async def set_role(self, admin_id: UUID, user_id: UUID, role: Role) -> Role:
        pass


class ITokenLedgerService(ABC):

    @abstractmethod
    async def get_balance(self, user_id: UUID) -> TokenAccount:
        pass

    @abstractmethod
    async def checkout_tokens(
        self, user_id: UUID, lines: list[tuple[UUID, int]]
    ) -> TokenAccount:
        """Buy ``(book_id, quantity)`` lines, priced from the stored listings."""
        pass

    @abstractmethod
    async def top_up(
        self,
        user_id: UUID,
        tokens: int,
        payment_method: str,
        amount_ksh: Optional[float] = None,
    ) -> TokenAccount:
        pass

    @abstractmethod
    async def history(self, user_id: UUID, limit: int = 100) -> list[Transaction]:
        pass


class IPaymentService(ABC):

    @abstractmethod
    async def initiate_token_purchase(self, user_id: UUID, amount: int, phone_number: str) -> dict:
        pass

    @abstractmethod
    async def handle_callback(self, user_id: Optional[str], payload: Any) -> Optional[int]:
        """Credit a confirmed payment; returns the tokens credited, if any."""
        pass
