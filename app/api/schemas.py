"""Pydantic schemas for API requests and responses.

Request models report failures with the short client-facing messages the
clients display as ``{"error": ...}``; each field's validator swaps
pydantic's own wording for that message.
"""

import re
from datetime import datetime
from typing import Annotated, Any, Literal, Optional
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    TypeAdapter,
    ValidationError,
    ValidatorFunctionWrapHandler,
    field_validator,
    model_validator,
)
from pydantic_core import PydanticCustomError

from app.domain.entities import Listing, ListingStatus, Role, Transaction, UserOverview

UUID_SHAPE = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
KENYAN_MSISDN = re.compile(r"(?:\+?254|0)?([17]\d{8})")

MAX_CHECKOUT_LINES = 50
MAX_STK_AMOUNT = 150_000  # gateway per-transaction ceiling, KSH

# Whole numbers only: JSON ``true``, ``"5"`` and ``5.0`` are all refused.
StrictPositiveInt = Annotated[int, Field(strict=True, gt=0)]

_uuid_text = TypeAdapter(Annotated[str, StringConstraints(strict=True, pattern=UUID_SHAPE)])


def _reworded(value: Any, handler: ValidatorFunctionWrapHandler, message: str) -> Any:
    try:
        return handler(value)
    except ValidationError:
        raise PydanticCustomError("invalid_field", message)


def _identifier(
    value: Any, handler: ValidatorFunctionWrapHandler, missing: str, invalid: str
) -> UUID:
    """Canonical 8-4-4-4-12 hex ids only; braces, urns and bare hex are refused."""
    if not value:
        raise PydanticCustomError("missing", missing)
    try:
        return handler(_uuid_text.validate_python(value))
    except ValidationError:
        raise PydanticCustomError("invalid_format", invalid)


# ---------------------------------------------------------------------------
# Admin: listings
# ---------------------------------------------------------------------------
class ApproveBookRequest(BaseModel):
    book_id: UUID = Field(None, alias="bookId", validate_default=True)
    token_price: StrictPositiveInt = Field(None, alias="tokenPrice", validate_default=True)
    price_ksh: Optional[Annotated[float, Field(strict=True, ge=0, allow_inf_nan=False)]] = Field(
        None, alias="priceKsh"
    )

    @field_validator("book_id", mode="wrap")
    @classmethod
    def check_book_id(cls, value: Any, handler: ValidatorFunctionWrapHandler) -> UUID:
        return _identifier(value, handler, "Book ID is required", "Invalid book ID format")

    @field_validator("token_price", mode="wrap")
    @classmethod
    def check_token_price(cls, value: Any, handler: ValidatorFunctionWrapHandler) -> int:
        return _reworded(value, handler, "Valid token price is required")

    @field_validator("price_ksh", mode="wrap")
    @classmethod
    def check_price_ksh(cls, value: Any, handler: ValidatorFunctionWrapHandler) -> Optional[float]:
        return _reworded(value, handler, "Invalid KSH price")


class DeleteBookRequest(BaseModel):
    book_id: UUID = Field(None, alias="bookId", validate_default=True)

    @field_validator("book_id", mode="wrap")
    @classmethod
    def check_book_id(cls, value: Any, handler: ValidatorFunctionWrapHandler) -> UUID:
        return _identifier(value, handler, "Book ID is required", "Invalid book ID format")


class UpdateStatusRequest(BaseModel):
    book_id: UUID = Field(alias="bookId")
    status: ListingStatus

    @model_validator(mode="before")
    @classmethod
    def require_both(cls, data: Any) -> Any:
        if isinstance(data, dict) and (not data.get("bookId") or not data.get("status")):
            raise PydanticCustomError("missing", "Book ID and status are required")
        return data

    @field_validator("book_id", mode="wrap")
    @classmethod
    def check_book_id(cls, value: Any, handler: ValidatorFunctionWrapHandler) -> UUID:
        return _identifier(value, handler, "Book ID is required", "Invalid book ID format")

    @field_validator("status", mode="wrap")
    @classmethod
    def check_status(cls, value: Any, handler: ValidatorFunctionWrapHandler) -> ListingStatus:
        return _reworded(value, handler, "Invalid status value")


# ---------------------------------------------------------------------------
# Admin: users
# ---------------------------------------------------------------------------
class AdjustTokensRequest(BaseModel):
    user_id: UUID = Field(None, alias="userId", validate_default=True)
    amount: StrictPositiveInt = Field(None, validate_default=True)
    action: Literal["add", "subtract"] = Field(None, validate_default=True)

    @field_validator("user_id", mode="wrap")
    @classmethod
    def check_user_id(cls, value: Any, handler: ValidatorFunctionWrapHandler) -> UUID:
        return _identifier(value, handler, "User ID is required", "Invalid user ID format")

    @field_validator("amount", mode="wrap")
    @classmethod
    def check_amount(cls, value: Any, handler: ValidatorFunctionWrapHandler) -> int:
        return _reworded(value, handler, "Valid token amount is required")

    @field_validator("action", mode="wrap")
    @classmethod
    def check_action(cls, value: Any, handler: ValidatorFunctionWrapHandler) -> str:
        return _reworded(value, handler, "Action must be 'add' or 'subtract'")


class SetRoleRequest(BaseModel):
    user_id: UUID = Field(None, alias="userId", validate_default=True)
    role: Role = Field(None, validate_default=True)

    @field_validator("user_id", mode="wrap")
    @classmethod
    def check_user_id(cls, value: Any, handler: ValidatorFunctionWrapHandler) -> UUID:
        return _identifier(value, handler, "User ID is required", "Invalid user ID format")

    @field_validator("role", mode="wrap")
    @classmethod
    def check_role(cls, value: Any, handler: ValidatorFunctionWrapHandler) -> Role:
        return _reworded(value, handler, "Invalid role value")


# ---------------------------------------------------------------------------
# Checkout and payments
# ---------------------------------------------------------------------------
class CheckoutLine(BaseModel):
    """One listing to buy; its price is read from storage, never from here."""

    book_id: UUID = Field(None, alias="bookId", validate_default=True)
    quantity: StrictPositiveInt = 1

    @field_validator("book_id", mode="wrap")
    @classmethod
    def check_book_id(cls, value: Any, handler: ValidatorFunctionWrapHandler) -> UUID:
        return _identifier(value, handler, "Book ID is required", "Invalid book ID format")

    @field_validator("quantity", mode="wrap")
    @classmethod
    def check_quantity(cls, value: Any, handler: ValidatorFunctionWrapHandler) -> int:
        return _reworded(value, handler, "Invalid quantity")


class CheckoutRequest(BaseModel):
    items: list[CheckoutLine] = Field(None, validate_default=True)

    @field_validator("items", mode="before")
    @classmethod
    def check_size(cls, value: Any) -> Any:
        if not isinstance(value, list) or not value:
            raise PydanticCustomError("cart_empty", "Cart is empty")
        if len(value) > MAX_CHECKOUT_LINES:
            raise PydanticCustomError("cart_too_long", "Too many items in cart")
        return value


class StkPushRequest(BaseModel):
    amount: StrictPositiveInt = Field(None, validate_default=True)
    phone_number: str = Field(None, alias="phoneNumber", validate_default=True, strict=True)

    @field_validator("amount", mode="wrap")
    @classmethod
    def check_amount(cls, value: Any, handler: ValidatorFunctionWrapHandler) -> int:
        amount = _reworded(value, handler, "Valid amount is required")
        if amount > MAX_STK_AMOUNT:
            raise PydanticCustomError("amount_too_large", "Amount exceeds the payment limit")
        return amount

    @field_validator("phone_number", mode="wrap")
    @classmethod
    def normalize_phone_number(cls, value: Any, handler: ValidatorFunctionWrapHandler) -> str:
        """Return the ``2547XXXXXXXX`` form the gateway expects."""
        phone = _reworded(value, handler, "Phone number is required")
        match = KENYAN_MSISDN.fullmatch(phone.replace(" ", ""))
        if not match:
            raise PydanticCustomError("invalid_phone", "Invalid phone number")
        return f"254{match.group(1)}"


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------
class BookResponse(BaseModel):
    """A listing, using the column names the clients already know."""

    id: UUID
    user_id: UUID
    title: str
    author: str
    genre: str
    condition: str
    availability_status: str
    token_price: int
    price_ksh: Optional[float] = None
    description: Optional[str] = None
    isbn: Optional[str] = None
    location: Optional[str] = None
    image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_listing(cls, listing: Listing) -> "BookResponse":
        return cls(
            id=listing.id,
            user_id=listing.owner_id,
            title=listing.title,
            author=listing.author,
            genre=listing.genre,
            condition=listing.condition,
            availability_status=listing.status.value,
            token_price=listing.token_price,
            price_ksh=listing.price_ksh,
            description=listing.description,
            isbn=listing.isbn,
            location=listing.location,
            image_url=listing.image_url,
            created_at=listing.created_at,
            updated_at=listing.updated_at,
        )


class BookActionResponse(BaseModel):
    success: bool = True
    book: BookResponse


class DeleteResponse(BaseModel):
    success: bool = True
    book_id: UUID


class BookListResponse(BaseModel):
    books: list[BookResponse]
    total: int
    page: int
    limit: int


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------
class TokenAccountResponse(BaseModel):
    user_id: UUID
    token_balance: int
    total_earned: int
    total_spent: int

    model_config = ConfigDict(from_attributes=True)


class TokenActionResponse(BaseModel):
    success: bool = True
    account: TokenAccountResponse


class TransactionResponse(BaseModel):
    id: UUID
    transaction_type: str
    payment_method: str
    token_amount: Optional[int] = None
    amount_ksh: Optional[float] = None
    book_id: Optional[UUID] = None
    status: str
    created_at: datetime

    @classmethod
    def from_transaction(cls, tx: Transaction) -> "TransactionResponse":
        return cls(
            id=tx.id,
            transaction_type=tx.transaction_type.value,
            payment_method=tx.payment_method,
            token_amount=tx.token_amount,
            amount_ksh=tx.amount_ksh,
            book_id=tx.book_id,
            status=tx.status,
            created_at=tx.created_at,
        )


class TransactionListResponse(BaseModel):
    transactions: list[TransactionResponse]
    total: int = Field(0, description="Number of transactions returned")


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class RoleResponse(BaseModel):
    success: bool = True
    user_id: UUID
    role: str


class AdminUserResponse(BaseModel):
    user_id: UUID
    role: str
    token_balance: int
    total_earned: int
    total_spent: int

    @classmethod
    def from_overview(cls, user: UserOverview) -> "AdminUserResponse":
        return cls(
            user_id=user.user_id,
            role=user.role.value,
            token_balance=user.token_balance,
            total_earned=user.total_earned,
            total_spent=user.total_spent,
        )


class AdminUserListResponse(BaseModel):
    users: list[AdminUserResponse]
    total: int
    page: int
    limit: int


# ---------------------------------------------------------------------------
# System
# ---------------------------------------------------------------------------
class AdminStatsResponse(BaseModel):
    user_count: int
    book_count: int
    books_by_status: dict[str, int]
    transaction_count: int
    token_account_count: int
    tokens_in_circulation: int

    model_config = ConfigDict(from_attributes=True)
