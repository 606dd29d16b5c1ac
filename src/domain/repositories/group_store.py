"""Group store protocol."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from domain.entities.group import Group


@dataclass(frozen=True)
class Abort:
    """Returned by a transaction callback to end it without writing.

    ``group`` is the committed value the callback observed.
    """

    group: Group
    reason: str = ""


TransactionFn = Callable[[Group], Group | Abort]


class IGroupStore(Protocol):
    """Durable keyed storage of group records."""

    async def get(self, group_id: str) -> Group | None:
        """Get the latest committed group, or None."""
        ...

    async def get_many(self, group_ids: list[str]) -> list[Group]:
        """Get every existing group among the given IDs."""
        ...

    async def create(self, group: Group) -> Group:
        """Persist a new group."""
        ...

    async def delete(self, group_id: str) -> Group | None:
        """Delete a group, returning the deleted record if it existed."""
        ...

    async def transact(self, group_id: str, fn: TransactionFn) -> Group | Abort:
        """Atomically read-modify-write one group.

        ``fn`` observes the latest committed value and returns either the new
        record to commit or an ``Abort``. Domain errors raised by ``fn``
        propagate and nothing is written.
        """
        ...
