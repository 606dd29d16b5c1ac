"""Integration tests for SQLAlchemyRateLimiter."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from infrastructure.database.repositories.sqlalchemy_rate_limiter import SQLAlchemyRateLimiter


class Clock:
    def __init__(self) -> None:
        self.now = 1_700_000_000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def limiter(session_factory: async_sessionmaker[AsyncSession], clock: Clock) -> SQLAlchemyRateLimiter:
    return SQLAlchemyRateLimiter(session_factory, clock=clock)


class TestCheckAndRecord:
    async def test_first_action_allowed(self, limiter: SQLAlchemyRateLimiter):
        assert (await limiter.check_and_record("join_request_u1_g1", 10)).allowed is True

    async def test_second_action_inside_window_denied(self, limiter: SQLAlchemyRateLimiter, clock: Clock):
        await limiter.check_and_record("join_request_u1_g1", 10)
        clock.now += 9.5

        assert (await limiter.check_and_record("join_request_u1_g1", 10)).allowed is False

    async def test_allowed_once_window_elapsed(self, limiter: SQLAlchemyRateLimiter, clock: Clock):
        await limiter.check_and_record("join_request_u1_g1", 10)
        clock.now += 10

        assert (await limiter.check_and_record("join_request_u1_g1", 10)).allowed is True
        clock.now += 1
        assert (await limiter.check_and_record("join_request_u1_g1", 10)).allowed is False

    async def test_denied_attempt_does_not_extend_window(
        self, limiter: SQLAlchemyRateLimiter, clock: Clock
    ):
        await limiter.check_and_record("group_create_u1", 60)
        clock.now += 30
        await limiter.check_and_record("group_create_u1", 60)
        clock.now += 30

        assert (await limiter.check_and_record("group_create_u1", 60)).allowed is True

    async def test_keys_are_independent(self, limiter: SQLAlchemyRateLimiter):
        await limiter.check_and_record("join_request_u1_g1", 10)

        assert (await limiter.check_and_record("join_request_u1_g2", 10)).allowed is True
        assert (await limiter.check_and_record("join_request_u2_g1", 10)).allowed is True

    async def test_denied_reports_seconds_left(self, limiter: SQLAlchemyRateLimiter, clock: Clock):
        await limiter.check_and_record("join_request_u1_g1", 10)
        clock.now += 9.2

        decision = await limiter.check_and_record("join_request_u1_g1", 10)

        assert decision.allowed is False
        assert decision.retry_after == 1

    async def test_allowed_has_no_retry_after(self, limiter: SQLAlchemyRateLimiter):
        decision = await limiter.check_and_record("group_create_u1", 60)

        assert decision.allowed is True
        assert decision.retry_after == 0
