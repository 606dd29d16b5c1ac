"""Rate limiter protocol."""

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a cooldown check.

    ``retry_after`` is the whole number of seconds left in the window when the
    action is denied, and 0 when it was allowed.
    """

    allowed: bool
    retry_after: int = 0


class IRateLimiter(Protocol):
    """Cooldown-window limiter keyed by action."""

    async def check_and_record(self, key: str, window_seconds: int) -> RateLimitDecision:
        """Allow and record the action if the window has elapsed."""
        ...


def rate_limit_key(action: str, *parts: str) -> str:
    """Build a limiter key whose parts cannot run into each other."""
    return ":".join((action, *(f"{len(p)}.{p}" for p in parts)))
