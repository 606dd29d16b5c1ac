"""Notification inbox API routes."""

from fastapi import APIRouter, Depends, Query, Request

from api.dependencies.auth import CurrentUser
from api.v1.dependencies import get_notification_service
from api.v1.schemas.notification import NotificationListResponse, NotificationResponse
from core.rate_limit import limiter
from domain.services.notification_service import NotificationService

router = APIRouter(prefix="/users/me", tags=["notifications"])


@router.get(
    "/notifications",
    response_model=NotificationListResponse,
    summary="List the caller's notifications",
    responses={
        200: {"description": "Newest notifications first"},
        401: {"description": "Not authenticated"},
    },
)
@limiter.limit("30/minute")  # type: ignore[untyped-decorator]
async def list_my_notifications(
    request: Request,
    user: CurrentUser,
    limit: int = Query(50, ge=1, le=100, description="Maximum notifications to return"),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationListResponse:
    """Get the membership events addressed to the caller."""
    events = await service.list_for_user(user.id, limit=limit)
    data = [NotificationResponse.from_entity(e) for e in events]
    return NotificationListResponse(data=data, meta={"total": len(data)})
