"""Group domain entities."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from domain.entities.join_request import JoinRequest, RequestStatus


def utcnow() -> datetime:
    """Timezone-aware current time used for every membership timestamp."""
    return datetime.now(timezone.utc)


class GroupPrivacy(str, Enum):
    """Who may join without approval."""

    PUBLIC = "public"
    PRIVATE = "private"
    RESTRICTED = "restricted"

    @property
    def requires_approval(self) -> bool:
        return self is not GroupPrivacy.PUBLIC


class GroupRole(str, Enum):
    """Role within a group."""

    ADMIN = "admin"
    MEMBER = "member"


class MembershipState(str, Enum):
    """Position of a (group, user) pair in the membership lifecycle."""

    NOT_MEMBER = "NOT_MEMBER"
    PENDING = "PENDING"
    MEMBER = "MEMBER"


@dataclass
class Member:
    """Domain entity for a group membership."""

    role: GroupRole = GroupRole.MEMBER
    joined_at: datetime | None = None


@dataclass
class Group:
    """Domain entity for a community group.

    ``members`` is authoritative. ``member_count`` is a cached ``len(members)``
    and ``admins`` mirrors the members whose role is admin.
    """

    name: str
    creator_id: str
    id: str = field(default_factory=lambda: uuid4().hex)
    description: str | None = None
    category: str | None = None
    privacy: GroupPrivacy = GroupPrivacy.PUBLIC
    admins: set[str] = field(default_factory=set)
    members: dict[str, Member] = field(default_factory=dict)
    member_count: int = 0
    requests: dict[str, JoinRequest] = field(default_factory=dict)
    version: int = 0
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def new(
        cls,
        name: str,
        creator_id: str,
        privacy: GroupPrivacy = GroupPrivacy.PUBLIC,
        description: str | None = None,
        category: str | None = None,
        group_id: str | None = None,
    ) -> "Group":
        """Build a fresh group whose only member is its creator, as admin."""
        now = utcnow()
        group = cls(
            name=name,
            creator_id=creator_id,
            description=description,
            category=category,
            privacy=privacy,
            created_at=now,
        )
        if group_id:
            group.id = group_id
        group.add_member(creator_id, GroupRole.ADMIN, now)
        return group

    def clone(self) -> "Group":
        """Deep enough copy for a transition to mutate without touching self."""
        return replace(
            self,
            admins=set(self.admins),
            members={uid: replace(m) for uid, m in self.members.items()},
            requests={uid: replace(r) for uid, r in self.requests.items()},
        )

    def state_of(self, user_id: str) -> MembershipState:
        if user_id in self.members:
            return MembershipState.MEMBER
        request = self.requests.get(user_id)
        if request is not None and request.status == RequestStatus.PENDING:
            return MembershipState.PENDING
        return MembershipState.NOT_MEMBER

    def is_admin(self, user_id: str) -> bool:
        return user_id in self.admins

    def is_sole_admin(self, user_id: str) -> bool:
        return self.admins == {user_id}

    def add_member(self, user_id: str, role: GroupRole, joined_at: datetime) -> None:
        """Add a member. An existing member keeps their role; use ``set_role``."""
        if user_id not in self.members:
            self.members[user_id] = Member(role=role, joined_at=joined_at)
            if role == GroupRole.ADMIN:
                self.admins.add(user_id)
        self.member_count = len(self.members)

    def remove_member(self, user_id: str) -> None:
        self.members.pop(user_id, None)
        self.admins.discard(user_id)
        self.member_count = len(self.members)

    def set_role(self, user_id: str, role: GroupRole) -> None:
        self.members[user_id].role = role
        if role == GroupRole.ADMIN:
            self.admins.add(user_id)
        else:
            self.admins.discard(user_id)
