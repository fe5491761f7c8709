"""Fixed trailing-window rate limiter backed by the ``rate_limit_tracker`` table.

Every guarded operation appends one record per successful attempt; a check
sums the records for (principal, operation) whose timestamp falls inside the
trailing window.  Denied checks never append, and callers record only after
their operation has succeeded.

Two checks for the same principal that run before either records are both
admitted.  There is no atomic check-and-increment; for abuse prevention this
under-count is accepted.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable
from uuid import UUID

from app.domain.entities import (
    RATE_LIMITS,
    OperationType,
    RateLimitDecision,
    RateLimitRecord,
)
from app.domain.exceptions import RateLimited
from app.domain.repositories import IRateLimitRepository
from app.domain.services import IRateLimiter

logger = logging.getLogger(__name__)


class RateLimiter(IRateLimiter):

    def __init__(
        self,
        rate_limit_repository: IRateLimitRepository,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.rate_limit_repository = rate_limit_repository
        self.clock = clock

    async def check(
        self, user_id: UUID, operation_type: str, max_attempts: int, window: timedelta
    ) -> RateLimitDecision:
        window_start = self.clock() - window
        try:
            attempts = await self.rate_limit_repository.sum_attempts(
                user_id, operation_type, window_start
            )
        except Exception as exc:
            # Fail open: a storage outage must not block legitimate traffic.
            logger.error("Rate limit check failed for %s/%s: %s", user_id, operation_type, exc)
            return RateLimitDecision(allowed=True, remaining_attempts=max_attempts)

        if attempts >= max_attempts:
            logger.warning(
                "Rate limit hit: user=%s op=%s attempts=%d max=%d",
                user_id, operation_type, attempts, max_attempts,
            )
            return RateLimitDecision(allowed=False, remaining_attempts=0)
        return RateLimitDecision(allowed=True, remaining_attempts=max_attempts - attempts - 1)

    async def record(self, user_id: UUID, operation_type: str) -> None:
        record = RateLimitRecord(
            user_id=user_id,
            operation_type=operation_type,
            created_at=self.clock(),
            operation_count=1,
        )
        try:
            await self.rate_limit_repository.add(record)
        except Exception as exc:
            # The guarded operation already committed; losing one record only
            # loosens the limit.
            logger.warning("Failed to record %s attempt for %s: %s", operation_type, user_id, exc)

    async def enforce(self, user_id: UUID, operation: OperationType) -> RateLimitDecision:
        policy = RATE_LIMITS[operation]
        decision = await self.check(user_id, operation.value, policy.max_attempts, policy.window)
        if not decision.allowed:
            raise RateLimited()
        return decision
