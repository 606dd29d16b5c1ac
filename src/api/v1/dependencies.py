"""Dependency injection factories for API v1."""

from functools import lru_cache
from typing import Optional

from core.config import settings
from domain.services.group_service import GroupService
from domain.services.membership_service import MembershipService
from domain.services.notification_service import NotificationService
from infrastructure.database.repositories.sqlalchemy_group_store import SQLAlchemyGroupStore
from infrastructure.database.repositories.sqlalchemy_notification_sink import (
    SQLAlchemyNotificationSink,
)
from infrastructure.database.repositories.sqlalchemy_rate_limiter import SQLAlchemyRateLimiter
from infrastructure.database.repositories.sqlalchemy_user_group_index import (
    SQLAlchemyUserGroupIndex,
)
from infrastructure.database.session import async_session_factory
from infrastructure.notifications.dispatcher import QueuedNotificationDispatcher


@lru_cache
def get_group_store() -> SQLAlchemyGroupStore:
    """Get Group store instance."""
    return SQLAlchemyGroupStore(
        async_session_factory,
        max_attempts=settings.transact_max_attempts,
        backoff_seconds=settings.transact_backoff_seconds,
    )


@lru_cache
def get_user_group_index() -> SQLAlchemyUserGroupIndex:
    """Get user-group index instance."""
    return SQLAlchemyUserGroupIndex(async_session_factory)


@lru_cache
def get_rate_limiter() -> Optional[SQLAlchemyRateLimiter]:
    """Get the cooldown rate limiter, or None when rate limiting is disabled."""
    if not settings.rate_limit_enabled:
        return None
    return SQLAlchemyRateLimiter(async_session_factory)


@lru_cache
def get_notification_dispatcher() -> QueuedNotificationDispatcher:
    """Get the notification dispatcher singleton."""
    return QueuedNotificationDispatcher(
        SQLAlchemyNotificationSink(async_session_factory),
        maxsize=settings.notification_queue_size,
    )


@lru_cache
def get_membership_service() -> MembershipService:
    """Get Membership service instance."""
    return MembershipService(
        get_group_store(),
        get_user_group_index(),
        notification_dispatcher=get_notification_dispatcher(),
        rate_limiter=get_rate_limiter(),
        join_request_cooldown_seconds=settings.join_request_cooldown_seconds,
        index_sync_attempts=settings.index_sync_attempts,
    )


@lru_cache
def get_group_service() -> GroupService:
    """Get Group service instance."""
    return GroupService(
        get_group_store(),
        get_user_group_index(),
        rate_limiter=get_rate_limiter(),
        group_create_cooldown_seconds=settings.group_create_cooldown_seconds,
    )


@lru_cache
def get_notification_service() -> NotificationService:
    """Get Notification service instance."""
    return NotificationService(SQLAlchemyNotificationSink(async_session_factory))
