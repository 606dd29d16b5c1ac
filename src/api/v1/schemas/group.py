"""Pydantic schemas for Group and membership API."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from domain.entities.group import Group, GroupPrivacy, GroupRole, MembershipState
from domain.entities.join_request import PendingRequest


class GroupCreate(BaseModel):
    """Schema for creating a group."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    category: str | None = Field(None, max_length=50)
    privacy: GroupPrivacy = GroupPrivacy.PUBLIC


class GroupResponse(BaseModel):
    """Schema for Group response."""

    id: str
    name: str
    description: str | None
    category: str | None
    privacy: GroupPrivacy
    creator_id: str
    admins: list[str]
    member_count: int
    created_at: datetime | None

    @classmethod
    def from_entity(cls, group: Group) -> "GroupResponse":
        return cls(
            id=group.id,
            name=group.name,
            description=group.description,
            category=group.category,
            privacy=group.privacy,
            creator_id=group.creator_id,
            admins=sorted(group.admins),
            member_count=group.member_count,
            created_at=group.created_at,
        )


class GroupDetailResponse(BaseModel):
    """Schema for single Group response."""

    success: bool = True
    data: GroupResponse


class GroupListResponse(BaseModel):
    """Schema for list of Groups response."""

    success: bool = True
    data: list[GroupResponse]
    meta: dict[str, Any] = Field(default_factory=dict)


class GroupMemberResponse(BaseModel):
    """Schema for Group Member response."""

    user_id: str
    role: GroupRole
    joined_at: datetime | None


class GroupMemberListResponse(BaseModel):
    """Schema for list of Group Members response."""

    success: bool = True
    data: list[GroupMemberResponse]
    meta: dict[str, Any] = Field(default_factory=dict)


class PendingRequestResponse(BaseModel):
    """Schema for a pending join request."""

    user_id: str
    requested_at: datetime | None

    @classmethod
    def from_entity(cls, request: PendingRequest) -> "PendingRequestResponse":
        return cls(user_id=request.user_id, requested_at=request.requested_at)


class PendingRequestListResponse(BaseModel):
    """Schema for list of pending join requests, oldest first."""

    success: bool = True
    data: list[PendingRequestResponse]
    meta: dict[str, Any] = Field(default_factory=dict)


class MembershipResponse(BaseModel):
    """Result of a membership operation.

    ``changed`` is false when the call was a replay of one already applied.
    ``state`` is the subject user's state afterwards.
    """

    success: bool = True
    changed: bool
    state: MembershipState
    data: GroupResponse


class MembershipStateResponse(BaseModel):
    """The caller's standing with a group."""

    success: bool = True
    state: MembershipState
