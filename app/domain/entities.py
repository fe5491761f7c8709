"""Domain entities for BookSwap."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional
from uuid import UUID


class Role(str, Enum):
    ADMIN = "admin"
    MODERATOR = "moderator"
    USER = "user"


class ListingStatus(str, Enum):
    PENDING = "pending"
    AVAILABLE = "available"
    RENTED = "rented"


class PaymentMethod(str, Enum):
    """How a cart line is paid for."""

    TOKENS = "tokens"
    MONEY = "money"


class TransactionType(str, Enum):
    TOKEN_PURCHASE = "token_purchase"
    BOOK_PURCHASE = "book_purchase"
    ADMIN_ADJUSTMENT = "admin_adjustment"


class OperationType(str, Enum):
    """Rate limited operations, stored verbatim in ``operation_type``."""

    LOGIN = "login"
    BOOK_UPLOAD = "book_upload"
    TOKEN_PURCHASE = "token_purchase"
    ADMIN_OPERATION = "admin_operation"


@dataclass(frozen=True)
class RateLimitPolicy:
    max_attempts: int
    window: timedelta


RATE_LIMITS: dict[OperationType, RateLimitPolicy] = {
    OperationType.LOGIN: RateLimitPolicy(5, timedelta(minutes=15)),
    OperationType.BOOK_UPLOAD: RateLimitPolicy(10, timedelta(minutes=60)),
    OperationType.TOKEN_PURCHASE: RateLimitPolicy(10, timedelta(minutes=60)),
    OperationType.ADMIN_OPERATION: RateLimitPolicy(50, timedelta(minutes=1)),
}


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining_attempts: int


@dataclass
class Principal:
    """An authenticated caller.  Its role is resolved separately."""

    id: UUID
    credential: str
    jti: Optional[str] = None
    expires_at: Optional[int] = None


@dataclass
class Listing:
    id: UUID
    owner_id: UUID
    title: str
    author: str
    genre: str
    condition: str
    status: ListingStatus = ListingStatus.PENDING
    token_price: int = 0
    price_ksh: Optional[float] = None
    description: Optional[str] = None
    isbn: Optional[str] = None
    location: Optional[str] = None
    image_url: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class TokenAccount:
    user_id: UUID
    token_balance: int = 0
    total_earned: int = 0
    total_spent: int = 0
    updated_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class RateLimitRecord:
    user_id: UUID
    operation_type: str
    created_at: datetime
    # Some writers leave this empty; it counts as one attempt.
    operation_count: Optional[int] = 1


@dataclass
class Transaction:
    id: UUID
    user_id: UUID
    transaction_type: TransactionType
    payment_method: str
    token_amount: Optional[int] = None
    amount_ksh: Optional[float] = None
    book_id: Optional[UUID] = None
    status: str = "completed"
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class CartItem:
    """A cart line.  Lives only as long as the shopper's session."""

    id: str
    title: str
    author: str
    condition: str
    token_value: int
    payment_method: PaymentMethod
    price: Optional[float] = None
    quantity: int = 1
    book_id: Optional[UUID] = None
    image: Optional[str] = None


@dataclass
class UserOverview:
    """A user as listed in the admin console: role assignment plus token account.

    Users are known from either table; a missing side reads as the default
    role or an empty account.
    """

    user_id: UUID
    role: Role = Role.USER
    token_balance: int = 0
    total_earned: int = 0
    total_spent: int = 0


@dataclass
class SystemStats:
    user_count: int = 0
    book_count: int = 0
    books_by_status: dict[str, int] = field(default_factory=dict)
    transaction_count: int = 0
    token_account_count: int = 0
    tokens_in_circulation: int = 0
