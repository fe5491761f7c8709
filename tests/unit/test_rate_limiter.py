"""
Unit tests for the trailing-window rate limiter.
"""

import asyncio
from datetime import timedelta

import pytest

from app.domain.entities import RATE_LIMITS, OperationType, RateLimitRecord
from app.domain.exceptions import RateLimited
from tests.factories import ADMIN_ID, READER_ID

WINDOW = timedelta(minutes=1)


@pytest.mark.asyncio
class TestCheck:
    """Counting attempts inside the window."""

    async def test_first_attempt_allowed_with_full_budget_minus_one(self, rate_limiter):
        decision = await rate_limiter.check(READER_ID, "login", 3, WINDOW)

        assert decision.allowed is True
        assert decision.remaining_attempts == 2

    async def test_denied_once_max_attempts_recorded(self, rate_limiter, clock):
        for _ in range(3):
            assert (await rate_limiter.check(READER_ID, "login", 3, WINDOW)).allowed
            await rate_limiter.record(READER_ID, "login")
            clock.advance(seconds=5)

        decision = await rate_limiter.check(READER_ID, "login", 3, WINDOW)

        assert decision.allowed is False
        assert decision.remaining_attempts == 0

    async def test_denied_check_does_not_append(self, rate_limiter, rate_limit_repo):
        for _ in range(3):
            await rate_limiter.record(READER_ID, "login")

        await rate_limiter.check(READER_ID, "login", 3, WINDOW)
        await rate_limiter.check(READER_ID, "login", 3, WINDOW)

        assert len(rate_limit_repo.records) == 3

    async def test_allowed_again_after_window_passes(self, rate_limiter, clock):
        for _ in range(3):
            await rate_limiter.record(READER_ID, "login")

        clock.advance(seconds=61)
        decision = await rate_limiter.check(READER_ID, "login", 3, WINDOW)

        assert decision.allowed is True
        assert decision.remaining_attempts == 2

    async def test_counts_are_per_user_and_operation(self, rate_limiter):
        for _ in range(3):
            await rate_limiter.record(READER_ID, "login")

        other_user = await rate_limiter.check(ADMIN_ID, "login", 3, WINDOW)
        other_op = await rate_limiter.check(READER_ID, "book_upload", 3, WINDOW)

        assert other_user.allowed and other_op.allowed

    async def test_missing_operation_count_counts_as_one(self, rate_limiter, rate_limit_repo, clock):
        rate_limit_repo.records.append(
            RateLimitRecord(READER_ID, "login", clock(), operation_count=None)
        )
        rate_limit_repo.records.append(
            RateLimitRecord(READER_ID, "login", clock(), operation_count=None)
        )

        decision = await rate_limiter.check(READER_ID, "login", 3, WINDOW)

        assert decision.remaining_attempts == 0
        assert decision.allowed is True

    async def test_operation_count_is_summed(self, rate_limiter, rate_limit_repo, clock):
        rate_limit_repo.records.append(
            RateLimitRecord(READER_ID, "login", clock(), operation_count=3)
        )

        decision = await rate_limiter.check(READER_ID, "login", 3, WINDOW)

        assert decision.allowed is False

    async def test_read_failure_fails_open(self, rate_limiter, rate_limit_repo):
        rate_limit_repo.fail_reads = True

        decision = await rate_limiter.check(READER_ID, "login", 3, WINDOW)

        assert decision.allowed is True
        assert decision.remaining_attempts == 3

    async def test_record_failure_is_swallowed(self, rate_limiter, rate_limit_repo):
        rate_limit_repo.fail_writes = True

        await rate_limiter.record(READER_ID, "login")

        assert rate_limit_repo.records == []


@pytest.mark.asyncio
class TestConcurrency:
    """Check and record are separate steps."""

    async def test_concurrent_checks_both_admitted_at_last_slot(self, rate_limiter, rate_limit_repo):
        await rate_limiter.record(READER_ID, "login")
        await rate_limiter.record(READER_ID, "login")

        first, second = await asyncio.gather(
            rate_limiter.check(READER_ID, "login", 3, WINDOW),
            rate_limiter.check(READER_ID, "login", 3, WINDOW),
        )
        await rate_limiter.record(READER_ID, "login")
        await rate_limiter.record(READER_ID, "login")

        assert first.allowed and second.allowed
        assert len(rate_limit_repo.records) == 4


@pytest.mark.asyncio
class TestEnforce:
    """Policy lookup for the named operations."""

    async def test_admin_operation_budget_is_fifty_per_minute(self, rate_limiter):
        policy = RATE_LIMITS[OperationType.ADMIN_OPERATION]
        for _ in range(policy.max_attempts):
            await rate_limiter.record(ADMIN_ID, OperationType.ADMIN_OPERATION.value)

        with pytest.raises(RateLimited) as exc_info:
            await rate_limiter.enforce(ADMIN_ID, OperationType.ADMIN_OPERATION)

        assert exc_info.value.status_code == 429
        assert exc_info.value.to_dict() == {"error": "Rate limit exceeded. Please try again later."}

    async def test_enforce_returns_decision_when_allowed(self, rate_limiter):
        decision = await rate_limiter.enforce(READER_ID, OperationType.TOKEN_PURCHASE)

        assert decision.allowed is True
        assert decision.remaining_attempts == 9


class TestPolicies:
    """Configured limits per operation."""

    def test_policies(self):
        assert RATE_LIMITS[OperationType.LOGIN].max_attempts == 5
        assert RATE_LIMITS[OperationType.LOGIN].window == timedelta(minutes=15)
        assert RATE_LIMITS[OperationType.BOOK_UPLOAD].window == timedelta(hours=1)
        assert RATE_LIMITS[OperationType.TOKEN_PURCHASE].max_attempts == 10
