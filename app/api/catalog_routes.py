"""Public catalog of listings open for trade."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.api.schemas import BookListResponse, BookResponse
from app.core.dependencies import get_listing_repository
from app.domain.entities import ListingStatus
from app.domain.repositories import IListingRepository

router = APIRouter(prefix="/books", tags=["books"])


@router.get("/", response_model=BookListResponse)
async def list_available_books(
    listing_repo: Annotated[IListingRepository, Depends(get_listing_repository)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> BookListResponse:
    """Available listings, newest first."""
    skip = (page - 1) * limit
    books = await listing_repo.list_by_status(ListingStatus.AVAILABLE, skip=skip, limit=limit)
    total = await listing_repo.count_by_status(ListingStatus.AVAILABLE)
    return BookListResponse(
        books=[BookResponse.from_listing(b) for b in books],
        total=total,
        page=page,
        limit=limit,
    )
