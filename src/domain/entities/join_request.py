"""Join request ledger entities."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class RequestStatus(str, Enum):
    """Lifecycle of a single join request.

    ``PENDING`` is the only non-terminal status.
    """

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not RequestStatus.PENDING


@dataclass
class JoinRequest:
    """Domain entity for one user's attempt to join a gated group."""

    status: RequestStatus
    requested_at: datetime | None = None
    processed_at: datetime | None = None
    processed_by: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING


@dataclass(frozen=True, slots=True)
class PendingRequest:
    """Read-only value object: a pending request awaiting an admin decision."""

    user_id: str
    requested_at: datetime | None
