"""SQLAlchemy implementation of the cooldown rate limiter."""

import math
import time
from collections.abc import Callable

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.exceptions import StoreUnavailableError
from domain.repositories.rate_limiter import RateLimitDecision
from infrastructure.database.models import RateLimitModel


class SQLAlchemyRateLimiter:
    """SQLAlchemy implementation of IRateLimiter.

    One row per key holds the time of the last allowed action. The check and
    the record happen in a single conditional UPDATE, so two concurrent
    callers cannot both pass the same window.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    async def check_and_record(self, key: str, window_seconds: int) -> RateLimitDecision:
        """Allow and record the action if the window has elapsed."""
        now = self._clock()
        try:
            async with self._session_factory() as session:
                stmt = (
                    update(RateLimitModel)
                    .where(
                        RateLimitModel.key == key,
                        RateLimitModel.last_action_at <= now - window_seconds,
                    )
                    .values(last_action_at=now)
                    .execution_options(synchronize_session=False)
                )
                result = await session.execute(stmt)
                if result.rowcount == 1:
                    await session.commit()
                    return RateLimitDecision(allowed=True)

                existing = await session.get(RateLimitModel, key)
                if existing is not None:
                    return self._denied(window_seconds, now - existing.last_action_at)

                session.add(RateLimitModel(key=key, last_action_at=now))
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    return self._denied(window_seconds, 0.0)
                return RateLimitDecision(allowed=True)
        except SQLAlchemyError as e:
            raise StoreUnavailableError() from e

    @staticmethod
    def _denied(window_seconds: int, elapsed: float) -> RateLimitDecision:
        return RateLimitDecision(
            allowed=False,
            retry_after=max(1, math.ceil(window_seconds - elapsed)),
        )
