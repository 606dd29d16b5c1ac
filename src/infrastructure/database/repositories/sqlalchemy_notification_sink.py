"""SQLAlchemy notification sink: persists events as in-app inbox rows."""

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.exceptions import StoreUnavailableError
from domain.entities.event import MembershipEvent
from infrastructure.database.models import NotificationModel

logger = structlog.get_logger()


class SQLAlchemyNotificationSink:
    """SQLAlchemy implementation of INotificationSink and INotificationInbox."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def deliver(self, event: MembershipEvent) -> None:
        """Write one inbox row for the event's recipient."""
        async with self._session_factory() as session:
            session.add(
                NotificationModel(
                    recipient_id=event.recipient_id,
                    type=event.type,
                    group_id=event.group_id,
                    actor_id=event.actor_id,
                    payload=dict(event.payload),
                    created_at=event.created_at,
                )
            )
            await session.commit()

    async def list_for_recipient(self, recipient_id: str, limit: int = 50) -> list[MembershipEvent]:
        """Get a recipient's notifications, newest first."""
        try:
            async with self._session_factory() as session:
                stmt = (
                    select(NotificationModel)
                    .where(NotificationModel.recipient_id == recipient_id)
                    .order_by(NotificationModel.created_at.desc())
                    .limit(limit)
                )
                result = await session.execute(stmt)
                return [
                    MembershipEvent(
                        type=model.type,
                        recipient_id=model.recipient_id,
                        group_id=model.group_id,
                        actor_id=model.actor_id,
                        payload=model.payload or {},
                        created_at=model.created_at,
                    )
                    for model in result.scalars()
                ]
        except SQLAlchemyError as e:
            logger.error("notification_inbox_error", recipient_id=recipient_id, error=str(e))
            raise StoreUnavailableError() from e
