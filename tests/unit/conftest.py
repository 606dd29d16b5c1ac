"""Shared fixtures for unit tests."""

from __future__ import annotations

import asyncio
import math
from datetime import datetime, timedelta, timezone

import pytest

from core.exceptions import (
    ConcurrentModificationError,
    GroupNotFoundError,
    StoreUnavailableError,
)
from domain.entities.event import MembershipEvent
from domain.entities.group import Group, GroupPrivacy
from domain.repositories.group_store import Abort, TransactionFn
from domain.repositories.rate_limiter import RateLimitDecision


class FakeGroupStore:
    """In-memory IGroupStore with the same optimistic-concurrency contract.

    ``transact`` yields to the event loop between reading and writing, so
    transactions started with ``asyncio.gather`` genuinely interleave and
    the loser of a race re-runs its callback against the winner's commit.
    """

    def __init__(self, max_attempts: int = 5) -> None:
        self.records: dict[str, Group] = {}
        self.max_attempts = max_attempts
        self.conflicts = 0
        self.commits = 0
        self._lock = asyncio.Lock()

    def put(self, group: Group) -> Group:
        self.records[group.id] = group.clone()
        return group

    async def get(self, group_id: str) -> Group | None:
        group = self.records.get(group_id)
        return group.clone() if group else None

    async def get_many(self, group_ids: list[str]) -> list[Group]:
        return [self.records[gid].clone() for gid in group_ids if gid in self.records]

    async def create(self, group: Group) -> Group:
        return self.put(group)

    async def delete(self, group_id: str) -> Group | None:
        return self.records.pop(group_id, None)

    async def transact(self, group_id: str, fn: TransactionFn) -> Group | Abort:
        for _ in range(self.max_attempts):
            current = self.records.get(group_id)
            if current is None:
                raise GroupNotFoundError(group_id)
            snapshot = current.clone()

            await asyncio.sleep(0)
            outcome = fn(snapshot)
            if isinstance(outcome, Abort):
                return outcome

            async with self._lock:
                if self.records[group_id].version != snapshot.version:
                    self.conflicts += 1
                    continue
                outcome.version = snapshot.version + 1
                self.records[group_id] = outcome.clone()
                self.commits += 1
                return outcome

        raise ConcurrentModificationError(group_id, self.max_attempts)


class FakeUserGroupIndex:
    """In-memory IUserGroupIndex. ``fail_times`` makes the next N sets fail."""

    def __init__(self) -> None:
        self.entries: set[tuple[str, str]] = set()
        self.fail_times = 0
        self.calls = 0

    async def set(self, user_id: str, group_id: str, present: bool) -> None:
        self.calls += 1
        if self.fail_times > 0:
            self.fail_times -= 1
            raise StoreUnavailableError()
        if present:
            self.entries.add((user_id, group_id))
        else:
            self.entries.discard((user_id, group_id))

    async def get_group_ids(self, user_id: str) -> set[str]:
        return {gid for uid, gid in self.entries if uid == user_id}

    async def purge_group(self, group_id: str) -> int:
        stale = {e for e in self.entries if e[1] == group_id}
        self.entries -= stale
        return len(stale)

    async def replace_for_group(self, group_id: str, user_ids: set[str]) -> None:
        await self.purge_group(group_id)
        self.entries |= {(uid, group_id) for uid in user_ids}

    def users_of(self, group_id: str) -> set[str]:
        return {uid for uid, gid in self.entries if gid == group_id}


class FakeRateLimiter:
    """Cooldown limiter driven by a manual clock."""

    def __init__(self) -> None:
        self.now = 0.0
        self.last: dict[str, float] = {}
        self.checked: list[str] = []

    async def check_and_record(self, key: str, window_seconds: int) -> RateLimitDecision:
        self.checked.append(key)
        last = self.last.get(key)
        if last is not None and self.now - last < window_seconds:
            return RateLimitDecision(
                allowed=False, retry_after=math.ceil(window_seconds - (self.now - last))
            )
        self.last[key] = self.now
        return RateLimitDecision(allowed=True)


class RecordingDispatcher:
    """INotificationDispatcher that keeps emitted events in a list."""

    def __init__(self, fail: bool = False) -> None:
        self.events: list[MembershipEvent] = []
        self.fail = fail

    def emit(self, event: MembershipEvent) -> None:
        if self.fail:
            raise RuntimeError("dispatcher down")
        self.events.append(event)

    def of_type(self, type_name: str) -> list[MembershipEvent]:
        return [e for e in self.events if e.type == type_name]


class ManualClock:
    """Deterministic clock; every call advances one second."""

    def __init__(self) -> None:
        self.current = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def store() -> FakeGroupStore:
    return FakeGroupStore()


@pytest.fixture
def index() -> FakeUserGroupIndex:
    return FakeUserGroupIndex()


@pytest.fixture
def rate_limiter() -> FakeRateLimiter:
    return FakeRateLimiter()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def creator_id() -> str:
    return "creator"


@pytest.fixture
def public_group(store: FakeGroupStore, index: FakeUserGroupIndex, creator_id: str) -> Group:
    group = store.put(Group.new("Hikers", creator_id, GroupPrivacy.PUBLIC, group_id="g-public"))
    index.entries.add((creator_id, group.id))
    return group


@pytest.fixture
def private_group(store: FakeGroupStore, index: FakeUserGroupIndex, creator_id: str) -> Group:
    group = store.put(Group.new("Book Club", creator_id, GroupPrivacy.PRIVATE, group_id="g-private"))
    index.entries.add((creator_id, group.id))
    return group
