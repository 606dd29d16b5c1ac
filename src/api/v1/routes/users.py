"""Current-user API routes."""

from fastapi import APIRouter, Depends, Request

from api.dependencies.auth import CurrentUser
from api.v1.dependencies import get_group_service
from api.v1.schemas.group import GroupListResponse, GroupResponse
from core.rate_limit import limiter
from domain.services.group_service import GroupService

router = APIRouter(prefix="/users", tags=["users"])


@router.get(
    "/me/groups",
    response_model=GroupListResponse,
    summary="List the caller's groups",
)
@limiter.limit("30/minute")  # type: ignore[untyped-decorator]
async def list_my_groups(
    request: Request,
    user: CurrentUser,
    service: GroupService = Depends(get_group_service),
) -> GroupListResponse:
    """Get every group the caller is a member of."""
    groups = await service.list_for_user(user.id)
    data = [GroupResponse.from_entity(g) for g in groups]
    return GroupListResponse(data=data, meta={"total": len(data)})
