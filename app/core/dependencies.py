"""Dependency injection container."""

import json
from typing import Annotated, Any, Callable, Optional, TypeVar

import redis.asyncio as aioredis
from fastapi import Depends, Header, Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.redis_client import RevocationList, get_redis
from app.core.security import extract_bearer
from app.domain.entities import Principal, Role
from app.domain.exceptions import BadRequest
from app.domain.repositories import (
    IAdminReportRepository,
    IListingRepository,
    IPaymentGateway,
    IRateLimitRepository,
    IRoleRepository,
    ITokenAccountRepository,
    ITransactionRepository,
)
from app.domain.services import (
    IListingAdminService,
    IPaymentService,
    IRateLimiter,
    ITokenLedgerService,
    IUserAdminService,
)
from app.infrastructure.database.connection import get_db
from app.infrastructure.database.repository import (
    AdminReportRepository,
    ListingRepository,
    RateLimitRepository,
    RoleRepository,
    TokenAccountRepository,
    TransactionRepository,
)
from app.infrastructure.payments.mpesa import MpesaGateway
from app.services.authorization import AuthorizationGuard
from app.services.listing_admin_service import ListingAdminService
from app.services.payment_service import PaymentService
from app.services.rate_limiter import RateLimiter
from app.services.token_ledger import TokenLedgerService
from app.services.user_admin_service import UserAdminService


# ---------------------------------------------------------------------------
# Infrastructure providers
# ---------------------------------------------------------------------------
def get_payment_gateway() -> IPaymentGateway:
    return MpesaGateway(
        consumer_key=settings.mpesa_consumer_key,
        consumer_secret=settings.mpesa_consumer_secret,
        shortcode=settings.mpesa_shortcode,
        passkey=settings.mpesa_passkey,
        base_url=settings.mpesa_base_url,
        timeout=settings.mpesa_timeout,
    )


async def get_revocation_list(
    client: aioredis.Redis = Depends(get_redis),
) -> RevocationList:
    return RevocationList(client)


async def json_body(request: Request) -> Any:
    """Decode the request body as JSON, reporting garbage as a bad request."""
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise BadRequest("Invalid JSON body")


RequestModel = TypeVar("RequestModel", bound=BaseModel)


def validated_body(model: type[RequestModel]) -> Callable[..., Any]:
    """Dependency parsing the JSON body into ``model``.

    The body is only read once the dependencies declared before it (the
    credential and role checks) have passed, so a bad body never outranks
    a 401 or 403.
    """

    async def dependency(body: Annotated[Any, Depends(json_body)]) -> RequestModel:
        try:
            return model.model_validate(body)
        except ValidationError as exc:
            raise RequestValidationError(exc.errors())

    return dependency


# ---------------------------------------------------------------------------
# Repository providers
# ---------------------------------------------------------------------------
async def get_role_repository(session: AsyncSession = Depends(get_db)) -> IRoleRepository:
    return RoleRepository(session)


async def get_listing_repository(session: AsyncSession = Depends(get_db)) -> IListingRepository:
    return ListingRepository(session)


async def get_token_repository(
    session: AsyncSession = Depends(get_db),
) -> ITokenAccountRepository:
    return TokenAccountRepository(session)


async def get_rate_limit_repository(
    session: AsyncSession = Depends(get_db),
) -> IRateLimitRepository:
    return RateLimitRepository(session)


async def get_transaction_repository(
    session: AsyncSession = Depends(get_db),
) -> ITransactionRepository:
    return TransactionRepository(session)


async def get_admin_report_repository(
    session: AsyncSession = Depends(get_db),
) -> IAdminReportRepository:
    return AdminReportRepository(session)


# ---------------------------------------------------------------------------
# Service providers
# ---------------------------------------------------------------------------
async def get_rate_limiter(
    repo: IRateLimitRepository = Depends(get_rate_limit_repository),
) -> IRateLimiter:
    return RateLimiter(repo)


async def get_authorization_guard(
    role_repo: IRoleRepository = Depends(get_role_repository),
    revocation_list: RevocationList = Depends(get_revocation_list),
) -> AuthorizationGuard:
    return AuthorizationGuard(role_repo, revocation_list)


async def get_listing_admin_service(
    listing_repo: IListingRepository = Depends(get_listing_repository),
    rate_limiter: IRateLimiter = Depends(get_rate_limiter),
) -> IListingAdminService:
    return ListingAdminService(listing_repo, rate_limiter)


async def get_user_admin_service(
    token_repo: ITokenAccountRepository = Depends(get_token_repository),
    role_repo: IRoleRepository = Depends(get_role_repository),
    transaction_repo: ITransactionRepository = Depends(get_transaction_repository),
    rate_limiter: IRateLimiter = Depends(get_rate_limiter),
) -> IUserAdminService:
    return UserAdminService(token_repo, role_repo, transaction_repo, rate_limiter)


async def get_token_ledger_service(
    token_repo: ITokenAccountRepository = Depends(get_token_repository),
    transaction_repo: ITransactionRepository = Depends(get_transaction_repository),
    listing_repo: IListingRepository = Depends(get_listing_repository),
    rate_limiter: IRateLimiter = Depends(get_rate_limiter),
) -> ITokenLedgerService:
    return TokenLedgerService(token_repo, transaction_repo, listing_repo, rate_limiter)


async def get_payment_service(
    gateway: IPaymentGateway = Depends(get_payment_gateway),
    ledger: ITokenLedgerService = Depends(get_token_ledger_service),
    rate_limiter: IRateLimiter = Depends(get_rate_limiter),
) -> IPaymentService:
    return PaymentService(
        gateway=gateway,
        ledger=ledger,
        rate_limiter=rate_limiter,
        public_base_url=settings.public_base_url,
        tokens_per_ksh=settings.tokens_per_ksh,
    )


# ---------------------------------------------------------------------------
# Auth dependencies
# ---------------------------------------------------------------------------
async def get_current_principal(
    guard: Annotated[AuthorizationGuard, Depends(get_authorization_guard)],
    authorization: Annotated[Optional[str], Header()] = None,
) -> Principal:
    """Resolve the bearer credential, or fail with 401."""
    return await guard.resolve(extract_bearer(authorization))


async def require_admin(
    guard: Annotated[AuthorizationGuard, Depends(get_authorization_guard)],
    authorization: Annotated[Optional[str], Header()] = None,
) -> Principal:
    """Resolve the caller and demand an exact ``admin`` role assignment."""
    return await guard.require_role(extract_bearer(authorization), Role.ADMIN)
