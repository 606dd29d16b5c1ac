"""Membership service: the join-request and membership lifecycle engine."""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import structlog

from core.exceptions import GroupNotFoundError, RateLimitedError, StoreUnavailableError
from domain.entities.event import EventTypes, MembershipEvent
from domain.entities.group import Group, MembershipState, utcnow
from domain.entities.join_request import PendingRequest
from domain.repositories.group_store import Abort, IGroupStore
from domain.repositories.notification_dispatcher import INotificationDispatcher
from domain.repositories.rate_limiter import IRateLimiter, rate_limit_key
from domain.repositories.user_group_index import IUserGroupIndex
from domain.services import transitions

logger = structlog.get_logger()

JOIN_REQUEST_COOLDOWN_SECONDS = 10
INDEX_SYNC_ATTEMPTS = 3


@dataclass(frozen=True)
class MembershipResult:
    """Outcome of a successful membership operation.

    ``changed`` is False when the call was an idempotent replay.
    """

    group: Group
    state: MembershipState
    changed: bool

    @property
    def success(self) -> bool:
        return True


class MembershipService:
    """Service layer for group membership transitions.

    Every mutating operation is exactly one ``IGroupStore.transact`` call.
    The user-group index is asserted after the commit and notifications are
    queued last; neither can fail an operation that has committed.
    """

    def __init__(
        self,
        group_store: IGroupStore,
        user_group_index: IUserGroupIndex,
        notification_dispatcher: Optional[INotificationDispatcher] = None,
        rate_limiter: Optional[IRateLimiter] = None,
        join_request_cooldown_seconds: int = JOIN_REQUEST_COOLDOWN_SECONDS,
        index_sync_attempts: int = INDEX_SYNC_ATTEMPTS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = group_store
        self._index = user_group_index
        self._dispatcher = notification_dispatcher
        self._rate_limiter = rate_limiter
        self._join_request_cooldown = join_request_cooldown_seconds
        self._index_sync_attempts = max(1, index_sync_attempts)
        self._clock = clock

    # --- Joining ---

    async def join_public(self, group_id: str, user_id: str) -> MembershipResult:
        """Join a public group immediately."""
        now = self._clock()
        outcome = await self._store.transact(
            group_id, lambda g: transitions.join_public(g, user_id, now)
        )
        result = self._finish("join_public", outcome, user_id, actor_id=user_id)
        if result.changed:
            await self._sync_index(user_id, group_id, present=True)
            self._notify_admins(
                EventTypes.MEMBER_JOINED,
                result.group,
                actor_id=user_id,
                payload={"user_id": user_id, "privacy": result.group.privacy.value},
            )
        return result

    async def request_join(self, group_id: str, user_id: str) -> MembershipResult:
        """Ask to join a private or restricted group.

        Replays (already pending, already a member) return before the rate
        limiter is consulted, so they never consume a cooldown window.
        """
        snapshot = await self._store.get(group_id)
        if snapshot is None:
            raise GroupNotFoundError(group_id)

        now = self._clock()
        preview = transitions.request_join(snapshot, user_id, now)
        if isinstance(preview, Abort):
            return self._finish("request_join", preview, user_id, actor_id=user_id)

        await self._check_rate_limit(
            rate_limit_key("join_request", user_id, group_id), self._join_request_cooldown
        )

        outcome = await self._store.transact(
            group_id, lambda g: transitions.request_join(g, user_id, now)
        )
        result = self._finish("request_join", outcome, user_id, actor_id=user_id)
        if result.changed:
            self._notify_admins(
                EventTypes.JOIN_REQUESTED,
                result.group,
                actor_id=user_id,
                payload={"user_id": user_id, "privacy": result.group.privacy.value},
            )
        return result

    async def cancel_request(self, group_id: str, user_id: str, actor_id: str) -> MembershipResult:
        """Withdraw a pending request. Admins are not notified."""
        now = self._clock()
        outcome = await self._store.transact(
            group_id, lambda g: transitions.cancel_request(g, user_id, actor_id, now)
        )
        return self._finish("cancel_request", outcome, user_id, actor_id=actor_id)

    # --- Admin decisions ---

    async def approve(self, group_id: str, user_id: str, actor_id: str) -> MembershipResult:
        """Accept a pending request and add the requester as a member."""
        now = self._clock()
        outcome = await self._store.transact(
            group_id, lambda g: transitions.approve(g, user_id, actor_id, now)
        )
        result = self._finish("approve", outcome, user_id, actor_id=actor_id)
        if result.changed:
            await self._sync_index(user_id, group_id, present=True)
            self._notify(EventTypes.REQUEST_APPROVED, user_id, result.group, actor_id)
        return result

    async def reject(self, group_id: str, user_id: str, actor_id: str) -> MembershipResult:
        """Decline a pending request."""
        now = self._clock()
        outcome = await self._store.transact(
            group_id, lambda g: transitions.reject(g, user_id, actor_id, now)
        )
        result = self._finish("reject", outcome, user_id, actor_id=actor_id)
        if result.changed:
            self._notify(EventTypes.REQUEST_REJECTED, user_id, result.group, actor_id)
        return result

    # --- Leaving ---

    async def leave(self, group_id: str, user_id: str) -> MembershipResult:
        """Leave a group. The creator and the sole admin cannot leave."""
        outcome = await self._store.transact(group_id, lambda g: transitions.leave(g, user_id))
        result = self._finish("leave", outcome, user_id, actor_id=user_id)
        if result.changed:
            await self._sync_index(user_id, group_id, present=False)
        return result

    async def remove_member(self, group_id: str, user_id: str, actor_id: str) -> MembershipResult:
        """Remove a member from a group. Requires group admin."""
        outcome = await self._store.transact(
            group_id, lambda g: transitions.remove_member(g, user_id, actor_id)
        )
        result = self._finish("remove_member", outcome, user_id, actor_id=actor_id)
        if result.changed:
            await self._sync_index(user_id, group_id, present=False)
            self._notify(EventTypes.MEMBER_REMOVED, user_id, result.group, actor_id)
        return result

    # --- Roles ---

    async def promote(self, group_id: str, user_id: str, actor_id: str) -> MembershipResult:
        """Make a member an admin. Requires group admin."""
        outcome = await self._store.transact(
            group_id, lambda g: transitions.promote(g, user_id, actor_id)
        )
        return self._finish("promote", outcome, user_id, actor_id=actor_id)

    async def demote(self, group_id: str, user_id: str, actor_id: str) -> MembershipResult:
        """Return an admin to the member role. Requires group admin."""
        outcome = await self._store.transact(
            group_id, lambda g: transitions.demote(g, user_id, actor_id)
        )
        return self._finish("demote", outcome, user_id, actor_id=actor_id)

    # --- Read accessors ---

    async def get_membership_state(self, group_id: str, user_id: str) -> MembershipState:
        """Get where a user stands with a group."""
        group = await self._store.get(group_id)
        if group is None:
            raise GroupNotFoundError(group_id)
        return group.state_of(user_id)

    async def list_pending_requests(self, group_id: str) -> list[PendingRequest]:
        """Get pending requests, oldest first. Requests without a timestamp sort last."""
        group = await self._store.get(group_id)
        if group is None:
            raise GroupNotFoundError(group_id)

        pending = [
            PendingRequest(user_id=uid, requested_at=request.requested_at)
            for uid, request in group.requests.items()
            if request.is_pending and uid not in group.members
        ]
        pending.sort(
            key=lambda p: (
                p.requested_at is None,
                p.requested_at.timestamp() if p.requested_at else 0.0,
                p.user_id,
            )
        )
        return pending

    # --- Internal helpers ---

    def _finish(
        self, operation: str, outcome: Group | Abort, user_id: str, actor_id: str
    ) -> MembershipResult:
        """Build the result and log the outcome."""
        if isinstance(outcome, Abort):
            logger.info(
                "membership_noop",
                operation=operation,
                group_id=outcome.group.id,
                user_id=user_id,
                actor_id=actor_id,
                reason=outcome.reason,
            )
            return MembershipResult(
                group=outcome.group, state=outcome.group.state_of(user_id), changed=False
            )

        logger.info(
            "membership_changed",
            operation=operation,
            group_id=outcome.id,
            user_id=user_id,
            actor_id=actor_id,
            member_count=outcome.member_count,
        )
        return MembershipResult(group=outcome, state=outcome.state_of(user_id), changed=True)

    async def _check_rate_limit(self, key: str, window_seconds: int) -> None:
        if self._rate_limiter is None:
            return
        decision = await self._rate_limiter.check_and_record(key, window_seconds)
        if not decision.allowed:
            logger.info(
                "rate_limited",
                key=key,
                window_seconds=window_seconds,
                retry_after=decision.retry_after,
            )
            raise RateLimitedError(key, window_seconds, decision.retry_after)

    async def _sync_index(self, user_id: str, group_id: str, present: bool) -> None:
        """Assert the index entry after commit, retrying to convergence.

        The membership change has already committed; a persistent index failure
        is logged for ``GroupService.reconcile_index`` to repair.
        """
        for attempt in range(1, self._index_sync_attempts + 1):
            try:
                await self._index.set(user_id, group_id, present)
                return
            except StoreUnavailableError:
                logger.warning(
                    "user_group_index_sync_retry",
                    user_id=user_id,
                    group_id=group_id,
                    present=present,
                    attempt=attempt,
                )
        logger.error(
            "user_group_index_sync_failed",
            user_id=user_id,
            group_id=group_id,
            present=present,
            attempts=self._index_sync_attempts,
        )

    def _notify_admins(
        self, type_name: str, group: Group, actor_id: str, payload: dict[str, str]
    ) -> None:
        for admin_id in sorted(group.admins):
            self._notify(type_name, admin_id, group, actor_id, payload)

    def _notify(
        self,
        type_name: str,
        recipient_id: str,
        group: Group,
        actor_id: str,
        payload: Optional[dict[str, str]] = None,
    ) -> None:
        """Queue one event. Never raises into the calling operation."""
        if self._dispatcher is None or recipient_id == actor_id:
            return

        event = MembershipEvent(
            type=type_name,
            recipient_id=recipient_id,
            group_id=group.id,
            actor_id=actor_id,
            payload={"group_name": group.name, **(payload or {})},
        )
        try:
            self._dispatcher.emit(event)
        except Exception:
            logger.exception(
                "notification_emit_failed",
                type=type_name,
                group_id=group.id,
                recipient_id=recipient_id,
            )
