"""Codec for the JSON member and request maps stored on a group row.

Two historical shapes of a join request coexist in stored data:

* canonical: ``{"status": "pending", "requested_at": "...", ...}``
* legacy: the same object without ``status`` (camelCase timestamps such as
  ``createdAt``), or a bare ``true`` flag from the old per-group requests
  node. A missing status means ``pending``.

Reads accept every shape. Writes always produce the canonical one. Nothing
outside the group store adapter sees raw stored values.
"""

from datetime import datetime, timezone
from typing import Any

import structlog

from domain.entities.group import GroupRole, Member
from domain.entities.join_request import JoinRequest, RequestStatus

logger = structlog.get_logger()

_REQUESTED_AT_KEYS = ("requested_at", "requestedAt", "createdAt", "created_at")
_PROCESSED_AT_KEYS = ("processed_at", "processedAt")
_PROCESSED_BY_KEYS = ("processed_by", "processedBy")
_JOINED_AT_KEYS = ("joined_at", "joinedAt")


def decode_requests(raw: dict[str, Any] | None) -> dict[str, JoinRequest]:
    """Decode a stored requests map into canonical ``JoinRequest`` values."""
    requests: dict[str, JoinRequest] = {}
    for user_id, record in (raw or {}).items():
        request = decode_request(record)
        if request is None:
            logger.warning("join_request_dropped", user_id=user_id, record=repr(record)[:200])
            continue
        requests[user_id] = request
    return requests


def decode_request(record: Any) -> JoinRequest | None:
    """Decode one stored request, or None if it cannot be read."""
    if isinstance(record, bool):
        return JoinRequest(status=RequestStatus.PENDING) if record else None
    if not isinstance(record, dict):
        return None

    raw_status = record.get("status")
    if raw_status is None:
        status = RequestStatus.PENDING
    else:
        try:
            status = RequestStatus(raw_status)
        except ValueError:
            return None

    return JoinRequest(
        status=status,
        requested_at=_parse_time(_first(record, _REQUESTED_AT_KEYS)),
        processed_at=_parse_time(_first(record, _PROCESSED_AT_KEYS)),
        processed_by=_first(record, _PROCESSED_BY_KEYS),
    )


def encode_requests(requests: dict[str, JoinRequest]) -> dict[str, dict[str, Any]]:
    """Encode requests in the canonical stored shape."""
    return {
        user_id: {
            "status": request.status.value,
            "requested_at": _format_time(request.requested_at),
            "processed_at": _format_time(request.processed_at),
            "processed_by": request.processed_by,
        }
        for user_id, request in requests.items()
    }


def decode_members(raw: dict[str, Any] | None) -> dict[str, Member]:
    """Decode a stored members map. Unknown roles read as plain members."""
    members: dict[str, Member] = {}
    for user_id, record in (raw or {}).items():
        if isinstance(record, dict):
            try:
                role = GroupRole(record.get("role") or GroupRole.MEMBER.value)
            except ValueError:
                role = GroupRole.MEMBER
            joined_at = _parse_time(_first(record, _JOINED_AT_KEYS))
        elif record:
            role, joined_at = GroupRole.MEMBER, None
        else:
            continue
        members[user_id] = Member(role=role, joined_at=joined_at)
    return members


def encode_members(members: dict[str, Member]) -> dict[str, dict[str, Any]]:
    """Encode members in the canonical stored shape."""
    return {
        user_id: {"role": member.role.value, "joined_at": _format_time(member.joined_at)}
        for user_id, member in members.items()
    }


def _first(record: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def _parse_time(value: Any) -> datetime | None:
    """Parse ISO-8601 strings or epoch milliseconds; naive values are UTC."""
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _format_time(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
