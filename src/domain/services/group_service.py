"""Group service layer: creation, lookup, deletion and the user-group index."""

from typing import Optional

import structlog

from core.exceptions import GroupNotFoundError, NotAuthorizedError, RateLimitedError
from domain.entities.group import Group, GroupPrivacy
from domain.repositories.group_store import IGroupStore
from domain.repositories.rate_limiter import IRateLimiter, rate_limit_key
from domain.repositories.user_group_index import IUserGroupIndex

logger = structlog.get_logger()

GROUP_CREATE_COOLDOWN_SECONDS = 60


class GroupService:
    """Service layer for group records outside the membership state machine."""

    def __init__(
        self,
        group_store: IGroupStore,
        user_group_index: IUserGroupIndex,
        rate_limiter: Optional[IRateLimiter] = None,
        group_create_cooldown_seconds: int = GROUP_CREATE_COOLDOWN_SECONDS,
    ) -> None:
        self._store = group_store
        self._index = user_group_index
        self._rate_limiter = rate_limiter
        self._create_cooldown = group_create_cooldown_seconds

    async def create(
        self,
        creator_id: str,
        name: str,
        privacy: GroupPrivacy = GroupPrivacy.PUBLIC,
        description: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Group:
        """Create a group with its creator as the only member and admin."""
        if self._rate_limiter is not None:
            key = rate_limit_key("group_create", creator_id)
            decision = await self._rate_limiter.check_and_record(key, self._create_cooldown)
            if not decision.allowed:
                raise RateLimitedError(key, self._create_cooldown, decision.retry_after)

        group = Group.new(
            name=name,
            creator_id=creator_id,
            privacy=privacy,
            description=description,
            category=category,
        )
        created = await self._store.create(group)
        await self._index.set(creator_id, created.id, True)

        logger.info("group_created", group_id=created.id, creator_id=creator_id, privacy=privacy.value)
        return created

    async def get(self, group_id: str) -> Group:
        """Get a group by ID."""
        group = await self._store.get(group_id)
        if group is None:
            raise GroupNotFoundError(group_id)
        return group

    async def delete(self, group_id: str, actor_id: str) -> bool:
        """Delete a group and purge its index entries. Requires group admin."""
        group = await self.get(group_id)
        if not group.is_admin(actor_id):
            raise NotAuthorizedError(actor_id=actor_id)

        deleted = await self._store.delete(group_id)
        purged = await self._index.purge_group(group_id)

        logger.info("group_deleted", group_id=group_id, actor_id=actor_id, index_rows_purged=purged)
        return deleted is not None

    async def list_for_user(self, user_id: str) -> list[Group]:
        """Get the groups a user belongs to, via the user-group index.

        Index rows pointing at groups where the user is no longer a member are
        filtered out here rather than trusted.
        """
        group_ids = await self._index.get_group_ids(user_id)
        if not group_ids:
            return []

        groups = await self._store.get_many(sorted(group_ids))
        return [g for g in groups if user_id in g.members]

    async def reconcile_index(self, group_id: str) -> Group:
        """Rebuild a group's index entries from its authoritative member map."""
        group = await self.get(group_id)
        await self._index.replace_for_group(group_id, set(group.members))
        logger.info("user_group_index_reconciled", group_id=group_id, members=len(group.members))
        return group
