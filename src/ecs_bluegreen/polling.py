"""
ecs_bluegreen.polling — Bounded polling with an injectable sleep.

poll_until() calls fetch() at most policy.max_attempts times, sleeping
policy.interval_seconds between calls, and returns the first value the
terminal predicate accepts. It never sleeps after the final attempt.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class PollPolicy:
    """At most max_attempts checks, interval_seconds apart."""

    interval_seconds: float
    max_attempts: int

    def __post_init__(self) -> None:
        if self.interval_seconds < 0:
            raise ValueError(f"interval_seconds must be >= 0, got {self.interval_seconds!r}")
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts!r}")

    @property
    def budget_seconds(self) -> float:
        """Longest time a full run of attempts can take."""
        return self.interval_seconds * self.max_attempts


class PollTimeout(Exception):
    """Raised when the attempt budget runs out without a terminal value."""

    def __init__(self, *, attempts: int, last_value: Any) -> None:
        super().__init__(f"No terminal result after {attempts} attempts")
        self.attempts = attempts
        self.last_value = last_value


def poll_until(
    fetch: Callable[[], T],
    policy: PollPolicy,
    *,
    is_terminal: Callable[[T], bool],
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    last_value: T | None = None
    for attempt in range(1, policy.max_attempts + 1):
        value = fetch()
        if is_terminal(value):
            return value
        last_value = value
        if attempt < policy.max_attempts:
            sleep(policy.interval_seconds)
    raise PollTimeout(attempts=policy.max_attempts, last_value=last_value)
