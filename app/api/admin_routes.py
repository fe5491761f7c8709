"""Admin API routes.

Every mutation runs the same chain: bearer credential -> exact ``admin``
role -> body validation -> ``admin_operation`` rate limit -> one mutation ->
attempt recorded.  A failure at any step stops the chain with nothing written.
The read routes behind the admin console only need the first two steps.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from app.api.schemas import (
    AdjustTokensRequest,
    AdminStatsResponse,
    AdminUserListResponse,
    AdminUserResponse,
    ApproveBookRequest,
    BookActionResponse,
    BookListResponse,
    BookResponse,
    DeleteBookRequest,
    DeleteResponse,
    RoleResponse,
    SetRoleRequest,
    TokenAccountResponse,
    TokenActionResponse,
    UpdateStatusRequest,
)
from app.core.dependencies import (
    get_admin_report_repository,
    get_listing_admin_service,
    get_listing_repository,
    get_user_admin_service,
    require_admin,
    validated_body,
)
from app.domain.entities import ListingStatus, Principal
from app.domain.repositories import IAdminReportRepository, IListingRepository
from app.domain.services import IListingAdminService, IUserAdminService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------
@router.get("/books", response_model=BookListResponse)
async def list_books(
    admin: Annotated[Principal, Depends(require_admin)],
    listing_repo: Annotated[IListingRepository, Depends(get_listing_repository)],
    status: Optional[ListingStatus] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> BookListResponse:
    """All listings, newest first; ``?status=pending`` feeds the approval queue."""
    skip = (page - 1) * limit
    books = await listing_repo.list_by_status(status, skip=skip, limit=limit)
    total = await listing_repo.count_by_status(status)
    return BookListResponse(
        books=[BookResponse.from_listing(b) for b in books],
        total=total,
        page=page,
        limit=limit,
    )


@router.post("/books/approve", response_model=BookActionResponse)
async def approve_book(
    admin: Annotated[Principal, Depends(require_admin)],
    body: Annotated[ApproveBookRequest, Depends(validated_body(ApproveBookRequest))],
    service: Annotated[IListingAdminService, Depends(get_listing_admin_service)],
) -> BookActionResponse:
    """Publish a pending listing with its token price and optional KSH price."""
    listing = await service.approve_listing(
        admin.id, body.book_id, body.token_price, body.price_ksh
    )
    return BookActionResponse(book=BookResponse.from_listing(listing))


@router.post("/books/delete", response_model=DeleteResponse)
async def delete_book(
    admin: Annotated[Principal, Depends(require_admin)],
    body: Annotated[DeleteBookRequest, Depends(validated_body(DeleteBookRequest))],
    service: Annotated[IListingAdminService, Depends(get_listing_admin_service)],
) -> DeleteResponse:
    """Hard-delete a listing.  Repeating the call for the same id also succeeds."""
    await service.delete_listing(admin.id, body.book_id)
    return DeleteResponse(book_id=body.book_id)


@router.post("/books/status", response_model=BookActionResponse)
async def update_book_status(
    admin: Annotated[Principal, Depends(require_admin)],
    body: Annotated[UpdateStatusRequest, Depends(validated_body(UpdateStatusRequest))],
    service: Annotated[IListingAdminService, Depends(get_listing_admin_service)],
) -> BookActionResponse:
    listing = await service.update_listing_status(admin.id, body.book_id, body.status)
    return BookActionResponse(book=BookResponse.from_listing(listing))


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
@router.get("/users", response_model=AdminUserListResponse)
async def list_users(
    admin: Annotated[Principal, Depends(require_admin)],
    reports: Annotated[IAdminReportRepository, Depends(get_admin_report_repository)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
) -> AdminUserListResponse:
    """Users with their role and token account, largest balance first."""
    users = await reports.list_users(skip=(page - 1) * limit, limit=limit)
    total = await reports.count_users()
    return AdminUserListResponse(
        users=[AdminUserResponse.from_overview(u) for u in users],
        total=total,
        page=page,
        limit=limit,
    )


@router.post("/tokens/adjust", response_model=TokenActionResponse)
async def adjust_user_tokens(
    admin: Annotated[Principal, Depends(require_admin)],
    body: Annotated[AdjustTokensRequest, Depends(validated_body(AdjustTokensRequest))],
    service: Annotated[IUserAdminService, Depends(get_user_admin_service)],
) -> TokenActionResponse:
    """Add tokens to, or remove tokens from, a user's account."""
    account = await service.adjust_tokens(admin.id, body.user_id, body.amount, body.action)
    return TokenActionResponse(account=TokenAccountResponse.model_validate(account))


@router.post("/users/role", response_model=RoleResponse)
async def set_user_role(
    admin: Annotated[Principal, Depends(require_admin)],
    body: Annotated[SetRoleRequest, Depends(validated_body(SetRoleRequest))],
    service: Annotated[IUserAdminService, Depends(get_user_admin_service)],
) -> RoleResponse:
    role = await service.set_role(admin.id, body.user_id, body.role)
    return RoleResponse(user_id=body.user_id, role=role.value)


# ---------------------------------------------------------------------------
# System
# ---------------------------------------------------------------------------
@router.get("/stats", response_model=AdminStatsResponse)
async def system_stats(
    admin: Annotated[Principal, Depends(require_admin)],
    reports: Annotated[IAdminReportRepository, Depends(get_admin_report_repository)],
) -> AdminStatsResponse:
    """Row counts for the system overview panel."""
    stats = await reports.stats()
    return AdminStatsResponse.model_validate(stats)
