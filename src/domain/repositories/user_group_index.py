"""User-group index protocol."""

from __future__ import annotations

from typing import Protocol


class IUserGroupIndex(Protocol):
    """Reverse mapping from a user to the groups they belong to.

    Not authoritative; always derivable from ``Group.members``.
    """

    async def set(self, user_id: str, group_id: str, present: bool) -> None:
        """Assert that ``group_id`` is (or is not) in the user's set."""
        ...

    async def get_group_ids(self, user_id: str) -> set[str]:
        """Get the IDs of every group the user is indexed under."""
        ...

    async def purge_group(self, group_id: str) -> int:
        """Remove every entry for a group. Returns rows removed."""
        ...

    async def replace_for_group(self, group_id: str, user_ids: set[str]) -> None:
        """Make the group's entries exactly ``user_ids``."""
        ...
