"""Admin mutations on book listings: approve, delete, change status."""

import logging
from typing import Optional
from uuid import UUID

from app.domain.entities import Listing, ListingStatus
from app.domain.exceptions import NotFound
from app.domain.repositories import IListingRepository
from app.domain.services import IListingAdminService, IRateLimiter
from app.services.privileged import PrivilegedMutation

logger = logging.getLogger(__name__)


class ListingAdminService(IListingAdminService):
    """The caller has already been authorized as an admin by the guard."""

    def __init__(self, listing_repository: IListingRepository, rate_limiter: IRateLimiter):
        self.listing_repository = listing_repository
        self.mutation = PrivilegedMutation(rate_limiter)

    async def approve_listing(
        self, admin_id: UUID, book_id: UUID, token_price: int, price_ksh: Optional[float] = None
    ) -> Listing:
        """pending -> available, fixing the token price and optionally the cash price."""

        async def mutate() -> Listing:
            listing = await self.listing_repository.approve(book_id, token_price, price_ksh)
            if listing is None:
                raise NotFound("Book not found")
            return listing

        listing = await self.mutation.run(admin_id, mutate, "Failed to approve book")
        logger.info("Book approved successfully: %s (token_price=%d)", book_id, token_price)
        return listing

    async def delete_listing(self, admin_id: UUID, book_id: UUID) -> bool:
        """Hard delete.  Deleting an id that is already gone succeeds as a no-op."""
        existed = await self.mutation.run(
            admin_id, lambda: self.listing_repository.delete(book_id), "Failed to delete book"
        )
        if existed:
            logger.info("Book deleted successfully: %s", book_id)
        else:
            logger.info("Delete requested for missing book %s; nothing to do", book_id)
        return existed

    async def update_listing_status(
        self, admin_id: UUID, book_id: UUID, status: ListingStatus
    ) -> Listing:

        async def mutate() -> Listing:
            listing = await self.listing_repository.update_status(book_id, status)
            if listing is None:
                raise NotFound("Book not found")
            return listing

        listing = await self.mutation.run(admin_id, mutate, "Failed to update book status")
        logger.info("Book status updated successfully: %s -> %s", book_id, status.value)
        return listing
