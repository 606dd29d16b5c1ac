"""Notification service: the caller's inbox of membership events."""

from domain.entities.event import MembershipEvent
from domain.repositories.notification_dispatcher import INotificationInbox

DEFAULT_LIMIT = 50


class NotificationService:
    """Service layer for reading delivered notifications."""

    def __init__(self, inbox: INotificationInbox) -> None:
        self._inbox = inbox

    async def list_for_user(self, user_id: str, limit: int = DEFAULT_LIMIT) -> list[MembershipEvent]:
        """Get a user's most recent notifications, newest first."""
        return await self._inbox.list_for_recipient(user_id, limit=limit)
