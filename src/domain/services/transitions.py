"""Membership state machine.

Each transition takes the latest committed ``Group`` and returns either a new
``Group`` to commit or an ``Abort`` for an idempotent no-op. Precondition
failures raise. Transitions never mutate their input; they work on a clone
and keep ``member_count`` equal to ``len(members)`` in the same step.
"""

from datetime import datetime

from core.exceptions import (
    InvalidStateError,
    LastAdminProtectedError,
    NotAuthorizedError,
)
from domain.entities.group import Group, GroupPrivacy, GroupRole, MembershipState
from domain.entities.join_request import JoinRequest, RequestStatus
from domain.repositories.group_store import Abort

ALREADY_MEMBER = "already_member"
ALREADY_PENDING = "already_pending"
NOT_A_MEMBER = "not_member"
ALREADY_ADMIN = "already_admin"
NOT_AN_ADMIN = "not_admin"


def join_public(group: Group, user_id: str, now: datetime) -> Group | Abort:
    """NOT_MEMBER -> MEMBER on a public group."""
    if group.privacy != GroupPrivacy.PUBLIC:
        raise InvalidStateError(
            "This group requires approval to join", state=group.state_of(user_id).value
        )

    state = group.state_of(user_id)
    if state == MembershipState.MEMBER:
        return Abort(group, ALREADY_MEMBER)
    if state == MembershipState.PENDING:
        raise InvalidStateError("A join request is already pending", state=state.value)

    draft = group.clone()
    draft.add_member(user_id, GroupRole.MEMBER, now)
    return draft


def request_join(group: Group, user_id: str, now: datetime) -> Group | Abort:
    """NOT_MEMBER -> PENDING on a private or restricted group.

    A new request replaces any terminal ledger entry for the same user.
    """
    if not group.privacy.requires_approval:
        raise InvalidStateError(
            "Public groups can be joined directly", state=group.state_of(user_id).value
        )

    state = group.state_of(user_id)
    if state == MembershipState.MEMBER:
        return Abort(group, ALREADY_MEMBER)
    if state == MembershipState.PENDING:
        return Abort(group, ALREADY_PENDING)

    draft = group.clone()
    draft.requests[user_id] = JoinRequest(status=RequestStatus.PENDING, requested_at=now)
    return draft


def cancel_request(group: Group, user_id: str, actor_id: str, now: datetime) -> Group | Abort:
    """PENDING -> NOT_MEMBER, by the requester only."""
    if actor_id != user_id:
        raise NotAuthorizedError("Only the requester can cancel a join request", actor_id)

    request = group.requests.get(user_id)
    if request is None:
        raise InvalidStateError("No join request to cancel", state=group.state_of(user_id).value)
    if request.status in (RequestStatus.CANCELLED, RequestStatus.REJECTED):
        return Abort(group, request.status.value)
    if request.status == RequestStatus.ACCEPTED:
        raise InvalidStateError(
            "Join request was already accepted",
            state=group.state_of(user_id).value,
            request_status=request.status.value,
        )

    return _resolve(group, user_id, RequestStatus.CANCELLED, actor_id, now)


def approve(group: Group, user_id: str, actor_id: str, now: datetime) -> Group | Abort:
    """PENDING -> MEMBER, by an admin."""
    _require_admin(group, actor_id)

    request = _require_request(group, user_id, "approve")
    if request.status == RequestStatus.ACCEPTED:
        return Abort(group, request.status.value)
    if request.status.is_terminal:
        raise InvalidStateError(
            "No pending join request to approve",
            state=group.state_of(user_id).value,
            request_status=request.status.value,
        )

    # A requester who is already a member keeps their current role.
    draft = _resolve(group, user_id, RequestStatus.ACCEPTED, actor_id, now)
    draft.add_member(user_id, GroupRole.MEMBER, now)
    return draft


def reject(group: Group, user_id: str, actor_id: str, now: datetime) -> Group | Abort:
    """PENDING -> NOT_MEMBER, by an admin."""
    _require_admin(group, actor_id)

    request = _require_request(group, user_id, "reject")
    if request.status == RequestStatus.REJECTED:
        return Abort(group, request.status.value)
    if request.status.is_terminal:
        raise InvalidStateError(
            "No pending join request to reject",
            state=group.state_of(user_id).value,
            request_status=request.status.value,
        )

    return _resolve(group, user_id, RequestStatus.REJECTED, actor_id, now)


def leave(group: Group, user_id: str) -> Group | Abort:
    """MEMBER -> NOT_MEMBER, by the member."""
    if user_id not in group.members:
        return Abort(group, NOT_A_MEMBER)
    _protect_admin(group, user_id)

    draft = group.clone()
    draft.remove_member(user_id)
    return draft


def remove_member(group: Group, user_id: str, actor_id: str) -> Group | Abort:
    """MEMBER -> NOT_MEMBER, by an admin."""
    _require_admin(group, actor_id)
    if user_id not in group.members:
        return Abort(group, NOT_A_MEMBER)
    _protect_admin(group, user_id)

    draft = group.clone()
    draft.remove_member(user_id)
    return draft


def promote(group: Group, user_id: str, actor_id: str) -> Group | Abort:
    """member role -> admin role."""
    _require_admin(group, actor_id)
    _require_member(group, user_id, "promote")
    if group.is_admin(user_id):
        return Abort(group, ALREADY_ADMIN)

    draft = group.clone()
    draft.set_role(user_id, GroupRole.ADMIN)
    return draft


def demote(group: Group, user_id: str, actor_id: str) -> Group | Abort:
    """admin role -> member role."""
    _require_admin(group, actor_id)
    _require_member(group, user_id, "demote")
    if not group.is_admin(user_id):
        return Abort(group, NOT_AN_ADMIN)
    _protect_admin(group, user_id)

    draft = group.clone()
    draft.set_role(user_id, GroupRole.MEMBER)
    return draft


# --- Internal helpers ---


def _resolve(
    group: Group, user_id: str, status: RequestStatus, actor_id: str, now: datetime
) -> Group:
    draft = group.clone()
    request = draft.requests[user_id]
    request.status = status
    request.processed_at = now
    request.processed_by = actor_id
    return draft


def _require_admin(group: Group, actor_id: str) -> None:
    if not group.is_admin(actor_id):
        raise NotAuthorizedError(actor_id=actor_id)


def _require_request(group: Group, user_id: str, action: str) -> JoinRequest:
    request = group.requests.get(user_id)
    if request is None:
        raise InvalidStateError(
            f"No pending join request to {action}", state=group.state_of(user_id).value
        )
    return request


def _require_member(group: Group, user_id: str, action: str) -> None:
    if user_id not in group.members:
        raise InvalidStateError(
            f"Only members can be {action}d", state=group.state_of(user_id).value
        )


def _protect_admin(group: Group, user_id: str) -> None:
    """The creator and the sole remaining admin keep their admin seat."""
    if user_id == group.creator_id:
        raise LastAdminProtectedError(user_id, reason="creator")
    if group.is_sole_admin(user_id):
        raise LastAdminProtectedError(user_id)
