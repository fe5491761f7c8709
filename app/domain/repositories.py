"""Repository interfaces (ports) for dependency inversion."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from uuid import UUID

from app.domain.entities import (
    Listing,
    ListingStatus,
    RateLimitRecord,
    Role,
    SystemStats,
    TokenAccount,
    Transaction,
    UserOverview,
)


class IRoleRepository(ABC):

    @abstractmethod
    async def get_role(self, user_id: UUID) -> Role:
        """Return the principal's role; no assignment row means ``Role.USER``."""
        pass

    @abstractmethod
    async def has_role(self, user_id: UUID, role: Role) -> bool:
        """True only when an assignment with exactly ``role`` exists."""
        pass

    @abstractmethod
    async def set_role(self, user_id: UUID, role: Role) -> Role:
        pass


class IListingRepository(ABC):

    @abstractmethod
    async def get_by_id(self, book_id: UUID) -> Optional[Listing]:
        pass

    @abstractmethod
    async def list_by_status(
        self, status: Optional[ListingStatus], skip: int = 0, limit: int = 100
    ) -> list[Listing]:
        """Newest first.  A status of ``None`` lists every listing."""
        pass

    @abstractmethod
    async def count_by_status(self, status: Optional[ListingStatus]) -> int:
        pass

    @abstractmethod
    async def approve(
        self, book_id: UUID, token_price: int, price_ksh: Optional[float] = None
    ) -> Optional[Listing]:
        """Mark available and set prices in a single UPDATE.

        ``price_ksh`` of ``None`` leaves the stored cash price untouched.
        Returns ``None`` when no listing has this id.
        """
        pass

    @abstractmethod
    async def update_status(self, book_id: UUID, status: ListingStatus) -> Optional[Listing]:
        pass

    @abstractmethod
    async def delete(self, book_id: UUID) -> bool:
        """Hard delete.  Returns False (not an error) when the row is already gone."""
        pass


class ITokenAccountRepository(ABC):

    @abstractmethod
    async def get(self, user_id: UUID) -> Optional[TokenAccount]:
        pass

    @abstractmethod
    async def credit(self, user_id: UUID, amount: int) -> TokenAccount:
        """Add to balance and total_earned, creating the account if needed."""
        pass

    @abstractmethod
    async def debit(self, user_id: UUID, amount: int) -> Optional[TokenAccount]:
        """Conditionally subtract ``amount`` when the balance covers it.

        Returns ``None`` when the account is missing or the balance is short;
        nothing is written in that case.
        """
        pass

    @abstractmethod
    async def deduct(self, user_id: UUID, amount: int) -> Optional[TokenAccount]:
        """Subtract with the balance floored at zero; total_spent grows by ``amount``."""
        pass


class IRateLimitRepository(ABC):

    @abstractmethod
    async def sum_attempts(self, user_id: UUID, operation_type: str, since: datetime) -> int:
        """Sum ``operation_count`` (empty counts as 1) for records at or after ``since``."""
        pass

    @abstractmethod
    async def add(self, record: RateLimitRecord) -> None:
        pass

    @abstractmethod
    async def purge_older_than(self, cutoff: datetime) -> int:
        pass


class ITransactionRepository(ABC):

    @abstractmethod
    async def add_many(self, transactions: list[Transaction]) -> list[Transaction]:
        pass

    @abstractmethod
    async def list_for_user(self, user_id: UUID, limit: int = 100) -> list[Transaction]:
        """Newest first."""
        pass


class IAdminReportRepository(ABC):
    """Read-only views for the admin console."""

    @abstractmethod
    async def list_users(self, skip: int = 0, limit: int = 100) -> list[UserOverview]:
        """Every user holding a role assignment or a token account, richest first."""
        pass

    @abstractmethod
    async def count_users(self) -> int:
        pass

    @abstractmethod
    async def stats(self) -> SystemStats:
        pass


class IPaymentGateway(ABC):
    """Outbound mobile-money gateway."""

    @abstractmethod
    async def initiate_stk_push(self, amount: int, phone_number: str, callback_url: str) -> dict:
        """Ask the gateway to prompt ``phone_number`` for ``amount``; returns its reply."""
        pass
