"""Pydantic schemas for Notification API."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from domain.entities.event import MembershipEvent


class NotificationResponse(BaseModel):
    """Single notification in the inbox."""

    type: str  # e.g. "request_approved"
    group_id: str
    actor_id: str
    payload: dict[str, Any]
    created_at: datetime

    @classmethod
    def from_entity(cls, event: MembershipEvent) -> "NotificationResponse":
        return cls(
            type=event.type,
            group_id=event.group_id,
            actor_id=event.actor_id,
            payload=dict(event.payload),
            created_at=event.created_at,
        )


class NotificationListResponse(BaseModel):
    """Notification inbox response."""

    success: bool = True
    data: list[NotificationResponse]
    meta: dict[str, Any] = Field(default_factory=dict)
