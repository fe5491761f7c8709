"""Repository implementations."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import case, delete, func, select, union, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.entities import (
    Listing,
    ListingStatus,
    RateLimitRecord,
    Role,
    SystemStats,
    TokenAccount,
    Transaction,
    TransactionType,
    UserOverview,
)
from app.domain.repositories import (
    IAdminReportRepository,
    IListingRepository,
    IRateLimitRepository,
    IRoleRepository,
    ITokenAccountRepository,
    ITransactionRepository,
)
from app.infrastructure.database.models import (
    BookModel,
    RateLimitTrackerModel,
    TransactionModel,
    UserRoleModel,
    UserTokensModel,
)


# ---------------------------------------------------------------------------
# Role Repository
# ---------------------------------------------------------------------------
class RoleRepository(IRoleRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_role(self, user_id: UUID) -> Role:
        result = await self.session.execute(
            select(UserRoleModel.role).where(UserRoleModel.user_id == user_id).limit(1)
        )
        role = result.scalar_one_or_none()
        return Role(role) if role else Role.USER

    async def has_role(self, user_id: UUID, role: Role) -> bool:
        result = await self.session.execute(
            select(UserRoleModel.id)
            .where(UserRoleModel.user_id == user_id, UserRoleModel.role == role.value)
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def set_role(self, user_id: UUID, role: Role) -> Role:
        result = await self.session.execute(
            select(UserRoleModel).where(UserRoleModel.user_id == user_id)
        )
        db_role = result.scalar_one_or_none()
        if db_role is None:
            self.session.add(UserRoleModel(user_id=user_id, role=role.value))
        else:
            db_role.role = role.value
        await self.session.commit()
        return role


# ---------------------------------------------------------------------------
# Listing Repository
# ---------------------------------------------------------------------------
class ListingRepository(IListingRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, book_id: UUID) -> Optional[Listing]:
        result = await self.session.execute(
            select(BookModel)
            .where(BookModel.id == book_id)
            .execution_options(populate_existing=True)
        )
        db_book = result.scalar_one_or_none()
        return self._to_entity(db_book) if db_book else None

    async def list_by_status(
        self, status: Optional[ListingStatus], skip: int = 0, limit: int = 100
    ) -> list[Listing]:
        query = select(BookModel)
        if status is not None:
            query = query.where(BookModel.availability_status == status.value)
        result = await self.session.execute(
            query.order_by(BookModel.created_at.desc()).offset(skip).limit(limit)
        )
        return [self._to_entity(book) for book in result.scalars().all()]

    async def count_by_status(self, status: Optional[ListingStatus]) -> int:
        query = select(func.count()).select_from(BookModel)
        if status is not None:
            query = query.where(BookModel.availability_status == status.value)
        result = await self.session.execute(query)
        return result.scalar_one()

    async def approve(
        self, book_id: UUID, token_price: int, price_ksh: Optional[float] = None
    ) -> Optional[Listing]:
        values = {
            "availability_status": ListingStatus.AVAILABLE.value,
            "token_price": token_price,
            "updated_at": datetime.utcnow(),
        }
        if price_ksh is not None:
            values["price_ksh"] = price_ksh
        return await self._update(book_id, values)

    async def update_status(self, book_id: UUID, status: ListingStatus) -> Optional[Listing]:
        return await self._update(
            book_id, {"availability_status": status.value, "updated_at": datetime.utcnow()}
        )

    async def delete(self, book_id: UUID) -> bool:
        result = await self.session.execute(
            delete(BookModel)
            .where(BookModel.id == book_id)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount > 0

    async def _update(self, book_id: UUID, values: dict) -> Optional[Listing]:
        """Apply ``values`` in one UPDATE statement, then read the row back."""
        result = await self.session.execute(
            update(BookModel)
            .where(BookModel.id == book_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        if result.rowcount == 0:
            return None
        return await self.get_by_id(book_id)

    @staticmethod
    def _to_entity(model: BookModel) -> Listing:
        return Listing(
            id=model.id,
            owner_id=model.user_id,
            title=model.title,
            author=model.author,
            genre=model.genre,
            condition=model.condition,
            status=ListingStatus(model.availability_status),
            token_price=model.token_price,
            price_ksh=model.price_ksh,
            description=model.description,
            isbn=model.isbn,
            location=model.location,
            image_url=model.image_url,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


# ---------------------------------------------------------------------------
# Token Account Repository
# ---------------------------------------------------------------------------
class TokenAccountRepository(ITokenAccountRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, user_id: UUID) -> Optional[TokenAccount]:
        result = await self.session.execute(
            select(UserTokensModel)
            .where(UserTokensModel.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        db_account = result.scalar_one_or_none()
        return self._to_entity(db_account) if db_account else None

    async def credit(self, user_id: UUID, amount: int) -> TokenAccount:
        result = await self._apply(
            user_id,
            token_balance=UserTokensModel.token_balance + amount,
            total_earned=UserTokensModel.total_earned + amount,
        )
        if result.rowcount == 0:
            self.session.add(
                UserTokensModel(
                    user_id=user_id, token_balance=amount, total_earned=amount, total_spent=0
                )
            )
        await self.session.commit()
        return await self.get(user_id)

    async def debit(self, user_id: UUID, amount: int) -> Optional[TokenAccount]:
        result = await self._apply(
            user_id,
            UserTokensModel.token_balance >= amount,
            token_balance=UserTokensModel.token_balance - amount,
            total_spent=UserTokensModel.total_spent + amount,
        )
        await self.session.commit()
        if result.rowcount == 0:
            return None
        return await self.get(user_id)

    async def deduct(self, user_id: UUID, amount: int) -> Optional[TokenAccount]:
        result = await self._apply(
            user_id,
            token_balance=case(
                (UserTokensModel.token_balance > amount, UserTokensModel.token_balance - amount),
                else_=0,
            ),
            total_spent=UserTokensModel.total_spent + amount,
        )
        await self.session.commit()
        if result.rowcount == 0:
            return None
        return await self.get(user_id)

    async def _apply(self, user_id: UUID, *conditions, **values):
        return await self.session.execute(
            update(UserTokensModel)
            .where(UserTokensModel.user_id == user_id, *conditions)
            .values(updated_at=datetime.utcnow(), **values)
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    def _to_entity(model: UserTokensModel) -> TokenAccount:
        return TokenAccount(
            user_id=model.user_id,
            token_balance=model.token_balance,
            total_earned=model.total_earned,
            total_spent=model.total_spent,
            updated_at=model.updated_at,
        )


# ---------------------------------------------------------------------------
# Rate Limit Repository
# ---------------------------------------------------------------------------
class RateLimitRepository(IRateLimitRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def sum_attempts(self, user_id: UUID, operation_type: str, since: datetime) -> int:
        result = await self.session.execute(
            select(func.coalesce(func.sum(func.coalesce(RateLimitTrackerModel.operation_count, 1)), 0))
            .where(
                RateLimitTrackerModel.user_id == user_id,
                RateLimitTrackerModel.operation_type == operation_type,
                RateLimitTrackerModel.created_at >= since,
            )
        )
        return int(result.scalar_one())

    async def add(self, record: RateLimitRecord) -> None:
        self.session.add(
            RateLimitTrackerModel(
                user_id=record.user_id,
                operation_type=record.operation_type,
                operation_count=record.operation_count,
                created_at=record.created_at,
            )
        )
        await self.session.commit()

    async def purge_older_than(self, cutoff: datetime) -> int:
        result = await self.session.execute(
            delete(RateLimitTrackerModel)
            .where(RateLimitTrackerModel.created_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount


# ---------------------------------------------------------------------------
# Transaction Repository
# ---------------------------------------------------------------------------
class TransactionRepository(ITransactionRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add_many(self, transactions: list[Transaction]) -> list[Transaction]:
        self.session.add_all([
            TransactionModel(
                id=tx.id,
                user_id=tx.user_id,
                book_id=tx.book_id,
                transaction_type=tx.transaction_type.value,
                payment_method=tx.payment_method,
                token_amount=tx.token_amount,
                amount_ksh=tx.amount_ksh,
                status=tx.status,
                created_at=tx.created_at,
            )
            for tx in transactions
        ])
        await self.session.commit()
        return transactions

    async def list_for_user(self, user_id: UUID, limit: int = 100) -> list[Transaction]:
        result = await self.session.execute(
            select(TransactionModel)
            .where(TransactionModel.user_id == user_id)
            .order_by(TransactionModel.created_at.desc())
            .limit(limit)
        )
        return [self._to_entity(tx) for tx in result.scalars().all()]

    @staticmethod
    def _to_entity(model: TransactionModel) -> Transaction:
        return Transaction(
            id=model.id,
            user_id=model.user_id,
            transaction_type=TransactionType(model.transaction_type),
            payment_method=model.payment_method,
            token_amount=model.token_amount,
            amount_ksh=model.amount_ksh,
            book_id=model.book_id,
            status=model.status,
            created_at=model.created_at,
        )


# ---------------------------------------------------------------------------
# Admin Report Repository
# ---------------------------------------------------------------------------
class AdminReportRepository(IAdminReportRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _known_users():
        # A user exists for us once they hold a role row or a token account.
        return union(
            select(UserRoleModel.user_id), select(UserTokensModel.user_id)
        ).subquery("known_users")

    async def list_users(self, skip: int = 0, limit: int = 100) -> list[UserOverview]:
        users = self._known_users()
        balance = func.coalesce(UserTokensModel.token_balance, 0)
        result = await self.session.execute(
            select(
                users.c.user_id,
                UserRoleModel.role,
                balance.label("token_balance"),
                func.coalesce(UserTokensModel.total_earned, 0).label("total_earned"),
                func.coalesce(UserTokensModel.total_spent, 0).label("total_spent"),
            )
            .select_from(users)
            .outerjoin(UserRoleModel, UserRoleModel.user_id == users.c.user_id)
            .outerjoin(UserTokensModel, UserTokensModel.user_id == users.c.user_id)
            .order_by(balance.desc(), users.c.user_id)
            .offset(skip)
            .limit(limit)
        )
        return [
            UserOverview(
                user_id=row.user_id,
                role=Role(row.role) if row.role else Role.USER,
                token_balance=row.token_balance,
                total_earned=row.total_earned,
                total_spent=row.total_spent,
            )
            for row in result.all()
        ]

    async def count_users(self) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(self._known_users())
        )
        return result.scalar_one()

    async def stats(self) -> SystemStats:
        by_status = await self.session.execute(
            select(BookModel.availability_status, func.count()).group_by(
                BookModel.availability_status
            )
        )
        books_by_status = {status: count for status, count in by_status.all()}

        transaction_count = await self.session.execute(
            select(func.count()).select_from(TransactionModel)
        )
        accounts = await self.session.execute(
            select(func.count(), func.coalesce(func.sum(UserTokensModel.token_balance), 0))
        )
        token_account_count, tokens_in_circulation = accounts.one()

        return SystemStats(
            user_count=await self.count_users(),
            book_count=sum(books_by_status.values()),
            books_by_status=books_by_status,
            transaction_count=transaction_count.scalar_one(),
            token_account_count=token_account_count,
            tokens_in_circulation=tokens_in_circulation,
        )
