"""Membership notification events and type constants."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from domain.entities.group import utcnow


class EventTypes:
    """Notification event type constants."""

    MEMBER_JOINED = "member_joined"
    JOIN_REQUESTED = "join_requested"
    REQUEST_APPROVED = "request_approved"
    REQUEST_REJECTED = "request_rejected"
    MEMBER_REMOVED = "member_removed"


@dataclass(frozen=True)
class MembershipEvent:
    """A typed event addressed to a single recipient."""

    type: str
    recipient_id: str
    group_id: str
    actor_id: str
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
