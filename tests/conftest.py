"""
Pytest fixtures for the BookSwap test suite.

Unit fixtures wire services to in-memory repositories and a controllable
clock.  The ``client`` fixture serves the real FastAPI app through httpx's
ASGI transport with every storage-backed dependency overridden, so no
database or Redis is needed (the lifespan hook does not run either).
"""

from __future__ import annotations

from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core import dependencies
from app.domain.entities import Listing, ListingStatus, Role, TokenAccount
from app.infrastructure.database.connection import build_session_maker, init_db
from app.main import app
from app.services.rate_limiter import RateLimiter
from tests.factories import ADMIN_ID, MODERATOR_ID, READER_ID, make_listing
from tests.fakes import (
    FakeAdminReportRepository,
    FakeClock,
    FakeListingRepository,
    FakePaymentGateway,
    FakeRateLimitRepository,
    FakeRevocationList,
    FakeRoleRepository,
    FakeTokenAccountRepository,
    FakeTransactionRepository,
)


# ============================================================================
# UNIT FIXTURES
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rate_limit_repo() -> FakeRateLimitRepository:
    return FakeRateLimitRepository()


@pytest.fixture
def rate_limiter(rate_limit_repo, clock) -> RateLimiter:
    return RateLimiter(rate_limit_repo, clock=clock)


@pytest.fixture
def role_repo() -> FakeRoleRepository:
    return FakeRoleRepository({ADMIN_ID: Role.ADMIN, MODERATOR_ID: Role.MODERATOR})


@pytest.fixture
def pending_listing() -> Listing:
    return make_listing()


@pytest.fixture
def available_listing() -> Listing:
    return make_listing(
        title="Weep Not, Child", status=ListingStatus.AVAILABLE, token_price=20, price_ksh=5.0
    )


@pytest.fixture
def listing_repo(pending_listing, available_listing) -> FakeListingRepository:
    return FakeListingRepository([pending_listing, available_listing])


@pytest.fixture
def token_repo() -> FakeTokenAccountRepository:
    return FakeTokenAccountRepository([TokenAccount(user_id=READER_ID, token_balance=100)])


@pytest.fixture
def transaction_repo() -> FakeTransactionRepository:
    return FakeTransactionRepository()


@pytest.fixture
def gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def revocation_list() -> FakeRevocationList:
    return FakeRevocationList()


# ============================================================================
# API FIXTURES
# ============================================================================


@pytest_asyncio.fixture
async def client(
    role_repo,
    listing_repo,
    token_repo,
    rate_limit_repo,
    transaction_repo,
    gateway,
    revocation_list,
    clock,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """The application with all storage swapped for in-memory doubles."""
    overrides = {
        dependencies.get_role_repository: lambda: role_repo,
        dependencies.get_listing_repository: lambda: listing_repo,
        dependencies.get_token_repository: lambda: token_repo,
        dependencies.get_rate_limit_repository: lambda: rate_limit_repo,
        dependencies.get_transaction_repository: lambda: transaction_repo,
        dependencies.get_admin_report_repository: lambda: FakeAdminReportRepository(
            role_repo, listing_repo, token_repo, transaction_repo
        ),
        dependencies.get_payment_gateway: lambda: gateway,
        dependencies.get_revocation_list: lambda: revocation_list,
        dependencies.get_rate_limiter: lambda: RateLimiter(rate_limit_repo, clock=clock),
    }
    app.dependency_overrides.update(overrides)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(db_engine):
    return build_session_maker(db_engine)


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session
