"""SQLAlchemy database models."""

import uuid
from datetime import datetime

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class UserRoleModel(Base):
    """One active role per user; no row means the default ``user`` role."""

    __tablename__ = "user_roles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, unique=True, index=True)
    role = Column(String(20), nullable=False, default="user")  # admin|moderator|user
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class BookModel(Base):
    __tablename__ = "books"
    __table_args__ = (Index("ix_books_status_created", "availability_status", "created_at"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)  # owner
    title = Column(String(255), nullable=False, index=True)
    author = Column(String(255), nullable=False)
    genre = Column(String(100), nullable=False, default="general")
    condition = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)
    isbn = Column(String(32), nullable=True)
    location = Column(String(255), nullable=True)
    image_url = Column(String(512), nullable=True)
    availability_status = Column(String(20), nullable=False, default="pending")
    token_price = Column(Integer, nullable=False, default=0)
    price_ksh = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class UserTokensModel(Base):
    __tablename__ = "user_tokens"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, unique=True, index=True)
    token_balance = Column(Integer, nullable=False, default=0)
    total_earned = Column(Integer, nullable=False, default=0)
    total_spent = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class RateLimitTrackerModel(Base):
    """Append-only attempt log.  Only the maintenance purge deletes rows."""

    __tablename__ = "rate_limit_tracker"
    __table_args__ = (Index("ix_rate_limit_user_op_created", "user_id", "operation_type", "created_at"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=True)
    operation_type = Column(String(50), nullable=False)
    operation_count = Column(Integer, nullable=True, default=1)  # NULL counts as 1
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class TransactionModel(Base):
    __tablename__ = "transactions"
    __table_args__ = (Index("ix_transactions_user_created", "user_id", "created_at"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False)
    # Kept when the listing is later deleted, so history survives.
    book_id = Column(Uuid, ForeignKey("books.id", ondelete="SET NULL"), nullable=True)
    transaction_type = Column(String(30), nullable=False)  # token_purchase|book_purchase|admin_adjustment
    payment_method = Column(String(20), nullable=False)  # tokens|mpesa|card|admin
    token_amount = Column(Integer, nullable=True)
    amount_ksh = Column(Float, nullable=True)
    status = Column(String(20), nullable=False, default="completed")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
