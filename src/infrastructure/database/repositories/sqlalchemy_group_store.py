"""SQLAlchemy implementation of the group store."""

import asyncio

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.exceptions import (
    ConcurrentModificationError,
    GroupNotFoundError,
    StoreUnavailableError,
)
from domain.entities.group import Group, GroupPrivacy, utcnow
from domain.repositories.group_store import Abort, TransactionFn
from infrastructure.database.models import GroupModel
from infrastructure.database.request_ledger import (
    decode_members,
    decode_requests,
    encode_members,
    encode_requests,
)

logger = structlog.get_logger()

MAX_ATTEMPTS = 3
BACKOFF_SECONDS = 0.05


class SQLAlchemyGroupStore:
    """SQLAlchemy implementation of IGroupStore.

    ``transact`` uses optimistic concurrency: the write is an UPDATE guarded by
    the version that was read, and zero affected rows means another writer
    committed first. The callback is then re-run against a fresh read.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_attempts: int = MAX_ATTEMPTS,
        backoff_seconds: float = BACKOFF_SECONDS,
    ) -> None:
        self._session_factory = session_factory
        self._max_attempts = max(1, max_attempts)
        self._backoff_seconds = backoff_seconds

    async def get(self, group_id: str) -> Group | None:
        """Get a group by ID."""
        try:
            async with self._session_factory() as session:
                model = await self._load(session, group_id)
                return self._to_entity(model) if model else None
        except SQLAlchemyError as e:
            raise self._unavailable("get", e) from e

    async def get_many(self, group_ids: list[str]) -> list[Group]:
        """Get every existing group among the given IDs."""
        if not group_ids:
            return []
        try:
            async with self._session_factory() as session:
                stmt = (
                    select(GroupModel)
                    .where(GroupModel.id.in_(group_ids))
                    .order_by(GroupModel.created_at)
                )
                result = await session.execute(stmt)
                return [self._to_entity(model) for model in result.scalars()]
        except SQLAlchemyError as e:
            raise self._unavailable("get_many", e) from e

    async def create(self, group: Group) -> Group:
        """Create a new group."""
        try:
            async with self._session_factory() as session:
                model = self._to_model(group)
                session.add(model)
                await session.commit()
                await session.refresh(model)
                return self._to_entity(model)
        except SQLAlchemyError as e:
            raise self._unavailable("create", e) from e

    async def delete(self, group_id: str) -> Group | None:
        """Delete a group, returning the deleted record."""
        try:
            async with self._session_factory() as session:
                model = await self._load(session, group_id)
                if not model:
                    return None
                deleted = self._to_entity(model)
                await session.execute(delete(GroupModel).where(GroupModel.id == group_id))
                await session.commit()
                return deleted
        except SQLAlchemyError as e:
            raise self._unavailable("delete", e) from e

    async def transact(self, group_id: str, fn: TransactionFn) -> Group | Abort:
        """Atomically read-modify-write one group, retrying on conflicts."""
        for attempt in range(1, self._max_attempts + 1):
            try:
                async with self._session_factory() as session:
                    model = await self._load(session, group_id)
                    if not model:
                        raise GroupNotFoundError(group_id)

                    current = self._to_entity(model)
                    outcome = fn(current)
                    if isinstance(outcome, Abort):
                        return outcome

                    if await self._compare_and_swap(session, current.version, outcome):
                        await session.commit()
                        outcome.version = current.version + 1
                        return outcome

                    await session.rollback()
            except SQLAlchemyError as e:
                raise self._unavailable("transact", e) from e

            logger.info(
                "group_transaction_conflict",
                group_id=group_id,
                attempt=attempt,
                max_attempts=self._max_attempts,
            )
            if attempt < self._max_attempts:
                await asyncio.sleep(self._backoff_seconds * 2 ** (attempt - 1))

        logger.warning("group_transaction_exhausted", group_id=group_id, attempts=self._max_attempts)
        raise ConcurrentModificationError(group_id, self._max_attempts)

    async def _load(self, session: AsyncSession, group_id: str) -> GroupModel | None:
        stmt = select(GroupModel).where(GroupModel.id == group_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def _compare_and_swap(
        self, session: AsyncSession, expected_version: int, group: Group
    ) -> bool:
        """Write ``group`` only if the row still carries ``expected_version``."""
        stmt = (
            update(GroupModel)
            .where(GroupModel.id == group.id, GroupModel.version == expected_version)
            .values(
                name=group.name,
                description=group.description,
                category=group.category,
                privacy=group.privacy.value,
                admins=sorted(group.admins),
                members=encode_members(group.members),
                member_count=len(group.members),
                requests=encode_requests(group.requests),
                version=expected_version + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount == 1

    @staticmethod
    def _unavailable(operation: str, error: SQLAlchemyError) -> StoreUnavailableError:
        logger.error("group_store_error", operation=operation, error=str(error))
        return StoreUnavailableError()

    def _to_entity(self, model: GroupModel) -> Group:
        """Convert ORM model to domain entity.

        ``member_count`` is derived from the decoded members; the stored column
        is only trusted by readers outside the domain.
        """
        members = decode_members(model.members)
        return Group(
            id=model.id,
            name=model.name,
            description=model.description,
            category=model.category,
            privacy=GroupPrivacy(model.privacy),
            creator_id=model.creator_id,
            admins=set(model.admins or []),
            members=members,
            member_count=len(members),
            requests=decode_requests(model.requests),
            version=model.version,
            created_at=model.created_at,
        )

    def _to_model(self, entity: Group) -> GroupModel:
        """Convert domain entity to ORM model."""
        return GroupModel(
            id=entity.id,
            name=entity.name,
            description=entity.description,
            category=entity.category,
            privacy=entity.privacy.value,
            creator_id=entity.creator_id,
            admins=sorted(entity.admins),
            members=encode_members(entity.members),
            member_count=len(entity.members),
            requests=encode_requests(entity.requests),
            version=entity.version,
            created_at=entity.created_at,
        )
