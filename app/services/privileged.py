"""Shared tail of every privileged mutation: rate limit, mutate once, record."""

import logging
from typing import Awaitable, Callable, TypeVar
from uuid import UUID

from app.domain.entities import OperationType
from app.domain.exceptions import BookSwapError, InternalError
from app.domain.services import IRateLimiter

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PrivilegedMutation:
    """Runs the post-validation steps of an admin handler in fixed order.

    Callers authorize and validate first; this then checks the caller's
    ``admin_operation`` budget, performs exactly one mutation, and records
    the attempt only when the mutation succeeded.  Storage failures surface
    as ``InternalError`` carrying ``failure_message`` and are not retried.
    """

    def __init__(
        self,
        rate_limiter: IRateLimiter,
        operation: OperationType = OperationType.ADMIN_OPERATION,
    ):
        self.rate_limiter = rate_limiter
        self.operation = operation

    async def run(
        self,
        actor_id: UUID,
        mutate: Callable[[], Awaitable[T]],
        failure_message: str,
    ) -> T:
        await self.rate_limiter.enforce(actor_id, self.operation)
        try:
            result = await mutate()
        except BookSwapError:
            raise
        except Exception as exc:
            logger.error("%s (actor=%s): %s", failure_message, actor_id, exc, exc_info=True)
            raise InternalError(failure_message) from exc
        await self.rate_limiter.record(actor_id, self.operation.value)
        return result
