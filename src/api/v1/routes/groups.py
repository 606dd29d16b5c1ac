"""Group and membership API routes."""

from fastapi import APIRouter, Depends, Request, status

from api.dependencies.auth import CurrentUser
from api.v1.dependencies import get_group_service, get_membership_service
from api.v1.schemas.group import (
    GroupCreate,
    GroupDetailResponse,
    GroupMemberListResponse,
    GroupMemberResponse,
    GroupResponse,
    MembershipResponse,
    MembershipStateResponse,
    PendingRequestListResponse,
    PendingRequestResponse,
)
from core.exceptions import NotAuthorizedError
from core.rate_limit import limiter
from domain.services.group_service import GroupService
from domain.services.membership_service import MembershipResult, MembershipService

router = APIRouter(prefix="/groups", tags=["groups"])


def _membership_response(result: MembershipResult) -> MembershipResponse:
    return MembershipResponse(
        changed=result.changed,
        state=result.state,
        data=GroupResponse.from_entity(result.group),
    )


# --- Groups ---


@router.post(
    "",
    response_model=GroupDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a group",
    responses={
        201: {"description": "Group created; the caller is its admin"},
        429: {"description": "Group creation cooldown active"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def create_group(
    request: Request,
    body: GroupCreate,
    user: CurrentUser,
    service: GroupService = Depends(get_group_service),
) -> GroupDetailResponse:
    """Create a new group with the caller as creator and sole admin."""
    group = await service.create(
        creator_id=user.id,
        name=body.name,
        privacy=body.privacy,
        description=body.description,
        category=body.category,
    )
    return GroupDetailResponse(data=GroupResponse.from_entity(group))


@router.get(
    "/{group_id}",
    response_model=GroupDetailResponse,
    summary="Get a group",
    responses={404: {"description": "Group not found"}},
)
@limiter.limit("30/minute")  # type: ignore[untyped-decorator]
async def get_group(
    request: Request,
    group_id: str,
    user: CurrentUser,
    service: GroupService = Depends(get_group_service),
) -> GroupDetailResponse:
    """Get a group by ID."""
    group = await service.get(group_id)
    return GroupDetailResponse(data=GroupResponse.from_entity(group))


@router.delete(
    "/{group_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a group",
    responses={
        204: {"description": "Group deleted"},
        403: {"description": "Not a group admin"},
        404: {"description": "Group not found"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def delete_group(
    request: Request,
    group_id: str,
    user: CurrentUser,
    service: GroupService = Depends(get_group_service),
) -> None:
    """Delete a group. Requires group admin."""
    await service.delete(group_id, user.id)
    return None


# --- Membership ---


@router.get(
    "/{group_id}/membership",
    response_model=MembershipStateResponse,
    summary="Get the caller's membership state",
    responses={404: {"description": "Group not found"}},
)
@limiter.limit("30/minute")  # type: ignore[untyped-decorator]
async def get_membership_state(
    request: Request,
    group_id: str,
    user: CurrentUser,
    service: MembershipService = Depends(get_membership_service),
) -> MembershipStateResponse:
    """Get whether the caller is a member, pending, or neither."""
    state = await service.get_membership_state(group_id, user.id)
    return MembershipStateResponse(state=state)


@router.post(
    "/{group_id}/join",
    response_model=MembershipResponse,
    summary="Join a public group",
    responses={
        404: {"description": "Group not found"},
        409: {"description": "Group requires approval, or a request is pending"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def join_group(
    request: Request,
    group_id: str,
    user: CurrentUser,
    service: MembershipService = Depends(get_membership_service),
) -> MembershipResponse:
    """Join a public group. Joining a group already joined is a no-op."""
    result = await service.join_public(group_id, user.id)
    return _membership_response(result)


# --- Join requests ---


@router.post(
    "/{group_id}/requests",
    response_model=MembershipResponse,
    summary="Request to join a group",
    responses={
        404: {"description": "Group not found"},
        409: {"description": "Group is public"},
        429: {"description": "Join request cooldown active"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def request_join(
    request: Request,
    group_id: str,
    user: CurrentUser,
    service: MembershipService = Depends(get_membership_service),
) -> MembershipResponse:
    """Ask to join a private or restricted group."""
    result = await service.request_join(group_id, user.id)
    return _membership_response(result)


@router.get(
    "/{group_id}/requests",
    response_model=PendingRequestListResponse,
    summary="List pending join requests",
    responses={
        403: {"description": "Not a group admin"},
        404: {"description": "Group not found"},
    },
)
@limiter.limit("30/minute")  # type: ignore[untyped-decorator]
async def list_pending_requests(
    request: Request,
    group_id: str,
    user: CurrentUser,
    groups: GroupService = Depends(get_group_service),
    service: MembershipService = Depends(get_membership_service),
) -> PendingRequestListResponse:
    """Get pending requests, oldest first. Requires group admin."""
    group = await groups.get(group_id)
    if not group.is_admin(user.id):
        raise NotAuthorizedError(actor_id=user.id)

    pending = await service.list_pending_requests(group_id)
    data = [PendingRequestResponse.from_entity(p) for p in pending]
    return PendingRequestListResponse(data=data, meta={"total": len(data)})


@router.delete(
    "/{group_id}/requests/me",
    response_model=MembershipResponse,
    summary="Cancel the caller's join request",
    responses={
        404: {"description": "Group not found"},
        409: {"description": "Request already decided"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def cancel_request(
    request: Request,
    group_id: str,
    user: CurrentUser,
    service: MembershipService = Depends(get_membership_service),
) -> MembershipResponse:
    """Withdraw the caller's pending join request."""
    result = await service.cancel_request(group_id, user.id, actor_id=user.id)
    return _membership_response(result)


@router.post(
    "/{group_id}/requests/{user_id}/approve",
    response_model=MembershipResponse,
    summary="Approve a join request",
    responses={
        403: {"description": "Not a group admin"},
        404: {"description": "Group not found"},
        409: {"description": "No such request, or already decided"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def approve_request(
    request: Request,
    group_id: str,
    user_id: str,
    user: CurrentUser,
    service: MembershipService = Depends(get_membership_service),
) -> MembershipResponse:
    """Accept a pending request. Requires group admin."""
    result = await service.approve(group_id, user_id, actor_id=user.id)
    return _membership_response(result)


@router.post(
    "/{group_id}/requests/{user_id}/reject",
    response_model=MembershipResponse,
    summary="Reject a join request",
    responses={
        403: {"description": "Not a group admin"},
        404: {"description": "Group not found"},
        409: {"description": "No such request, or already decided"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def reject_request(
    request: Request,
    group_id: str,
    user_id: str,
    user: CurrentUser,
    service: MembershipService = Depends(get_membership_service),
) -> MembershipResponse:
    """Decline a pending request. Requires group admin."""
    result = await service.reject(group_id, user_id, actor_id=user.id)
    return _membership_response(result)


# --- Members ---


@router.get(
    "/{group_id}/members",
    response_model=GroupMemberListResponse,
    summary="List group members",
    responses={404: {"description": "Group not found"}},
)
@limiter.limit("30/minute")  # type: ignore[untyped-decorator]
async def list_group_members(
    request: Request,
    group_id: str,
    user: CurrentUser,
    service: GroupService = Depends(get_group_service),
) -> GroupMemberListResponse:
    """Get all members of a group, admins first."""
    group = await service.get(group_id)
    data = [
        GroupMemberResponse(user_id=uid, role=member.role, joined_at=member.joined_at)
        for uid, member in sorted(
            group.members.items(), key=lambda item: (item[1].role.value, item[0])
        )
    ]
    return GroupMemberListResponse(data=data, meta={"total": len(data)})


@router.delete(
    "/{group_id}/members/me",
    response_model=MembershipResponse,
    summary="Leave a group",
    responses={
        404: {"description": "Group not found"},
        409: {"description": "Creator or sole admin cannot leave"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def leave_group(
    request: Request,
    group_id: str,
    user: CurrentUser,
    service: MembershipService = Depends(get_membership_service),
) -> MembershipResponse:
    """Leave a group. Leaving a group not joined is a no-op."""
    result = await service.leave(group_id, user.id)
    return _membership_response(result)


@router.delete(
    "/{group_id}/members/{user_id}",
    response_model=MembershipResponse,
    summary="Remove a group member",
    responses={
        403: {"description": "Not a group admin"},
        404: {"description": "Group not found"},
        409: {"description": "Creator or sole admin cannot be removed"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def remove_member(
    request: Request,
    group_id: str,
    user_id: str,
    user: CurrentUser,
    service: MembershipService = Depends(get_membership_service),
) -> MembershipResponse:
    """Remove a member. Requires group admin."""
    result = await service.remove_member(group_id, user_id, actor_id=user.id)
    return _membership_response(result)


@router.post(
    "/{group_id}/members/{user_id}/promote",
    response_model=MembershipResponse,
    summary="Promote a member to admin",
    responses={
        403: {"description": "Not a group admin"},
        404: {"description": "Group not found"},
        409: {"description": "Not a member"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def promote_member(
    request: Request,
    group_id: str,
    user_id: str,
    user: CurrentUser,
    service: MembershipService = Depends(get_membership_service),
) -> MembershipResponse:
    """Make a member an admin. Requires group admin."""
    result = await service.promote(group_id, user_id, actor_id=user.id)
    return _membership_response(result)


@router.post(
    "/{group_id}/members/{user_id}/demote",
    response_model=MembershipResponse,
    summary="Demote an admin to member",
    responses={
        403: {"description": "Not a group admin"},
        404: {"description": "Group not found"},
        409: {"description": "Not a member, or creator or sole admin"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def demote_member(
    request: Request,
    group_id: str,
    user_id: str,
    user: CurrentUser,
    service: MembershipService = Depends(get_membership_service),
) -> MembershipResponse:
    """Return an admin to the member role. Requires group admin."""
    result = await service.demote(group_id, user_id, actor_id=user.id)
    return _membership_response(result)
