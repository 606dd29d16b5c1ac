"""SQLAlchemy implementation of the user-group index."""

from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import structlog

from core.exceptions import StoreUnavailableError
from infrastructure.database.models import UserGroupModel

logger = structlog.get_logger()


class SQLAlchemyUserGroupIndex:
    """SQLAlchemy implementation of IUserGroupIndex.

    ``set`` is a pure set-membership assertion, so repeating it converges.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def set(self, user_id: str, group_id: str, present: bool) -> None:
        """Insert-if-absent or delete-if-present."""
        try:
            async with self._session_factory() as session:
                if not present:
                    await session.execute(
                        delete(UserGroupModel).where(
                            UserGroupModel.user_id == user_id,
                            UserGroupModel.group_id == group_id,
                        )
                    )
                    await session.commit()
                    return

                existing = await session.get(UserGroupModel, (user_id, group_id))
                if existing:
                    return
                session.add(UserGroupModel(user_id=user_id, group_id=group_id))
                try:
                    await session.commit()
                except IntegrityError:
                    # Another writer inserted the same row first
                    await session.rollback()
        except SQLAlchemyError as e:
            logger.error("user_group_index_error", operation="set", error=str(e))
            raise StoreUnavailableError() from e

    async def get_group_ids(self, user_id: str) -> set[str]:
        """Get the IDs of every group the user is indexed under."""
        try:
            async with self._session_factory() as session:
                stmt = select(UserGroupModel.group_id).where(UserGroupModel.user_id == user_id)
                result = await session.execute(stmt)
                return set(result.scalars())
        except SQLAlchemyError as e:
            logger.error("user_group_index_error", operation="get_group_ids", error=str(e))
            raise StoreUnavailableError() from e

    async def purge_group(self, group_id: str) -> int:
        """Remove every entry for a group."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(UserGroupModel).where(UserGroupModel.group_id == group_id)
                )
                await session.commit()
                return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error("user_group_index_error", operation="purge_group", error=str(e))
            raise StoreUnavailableError() from e

    async def replace_for_group(self, group_id: str, user_ids: set[str]) -> None:
        """Make the group's entries exactly ``user_ids`` in one transaction."""
        try:
            async with self._session_factory() as session:
                stmt = select(UserGroupModel.user_id).where(UserGroupModel.group_id == group_id)
                result = await session.execute(stmt)
                indexed = set(result.scalars())

                stale = indexed - user_ids
                if stale:
                    await session.execute(
                        delete(UserGroupModel).where(
                            UserGroupModel.group_id == group_id,
                            UserGroupModel.user_id.in_(stale),
                        )
                    )
                for user_id in sorted(user_ids - indexed):
                    session.add(UserGroupModel(user_id=user_id, group_id=group_id))
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("user_group_index_error", operation="replace_for_group", error=str(e))
            raise StoreUnavailableError() from e
