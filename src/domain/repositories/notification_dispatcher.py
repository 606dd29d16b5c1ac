"""Notification dispatcher and sink protocols."""

from typing import Protocol

from domain.entities.event import MembershipEvent


class INotificationDispatcher(Protocol):
    """Fire-and-forget outbound event queue."""

    def emit(self, event: MembershipEvent) -> None:
        """Enqueue an event without waiting for delivery."""
        ...


class INotificationSink(Protocol):
    """Final delivery target for membership events."""

    async def deliver(self, event: MembershipEvent) -> None:
        """Deliver one event. May raise; callers log and move on."""
        ...


class INotificationInbox(Protocol):
    """Read side of delivered notifications."""

    async def list_for_recipient(self, recipient_id: str, limit: int = 50) -> list[MembershipEvent]:
        """Get a recipient's notifications, newest first."""
        ...
