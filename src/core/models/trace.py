"""
Tracing models — progress, traced lines and authentication outcome.

These are hot-path objects (one per output line), so they are
plain dataclasses rather than pydantic models.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal

StreamOrigin = Literal["stdout", "stderr"]


class AuthenticationOutcome(str, Enum):
    """Result of confirming privilege elevation on a session."""

    AUTHENTICATED = "authenticated"
    DENIED = "denied"
    TIMED_OUT = "timed_out"

    @property
    def granted(self) -> bool:
        return self is AuthenticationOutcome.AUTHENTICATED


@dataclass(frozen=True)
class TracedLine:
    """One line of child output, tagged with the stream it came from."""

    origin: StreamOrigin
    text: str


@dataclass
class ProgressState:
    """Bounded, monotonically non-decreasing progress counter.

    ``tick()`` never lets ``current`` reach ``ceiling``: the last
    step is reserved for ``complete()``, which callers invoke only
    once the traced process has exited successfully.
    """

    ceiling: int = 100
    current: int = 0

    def __post_init__(self) -> None:
        if self.ceiling < 1:
            raise ValueError(f"progress ceiling must be >= 1, got {self.ceiling}")
        self.current = max(0, min(self.current, self.ceiling - 1))

    @property
    def done(self) -> bool:
        return self.current >= self.ceiling

    def tick(self, step: int = 1) -> int:
        """Advance by *step*, clamped to ``ceiling - 1``."""
        if self.current < self.ceiling - 1:
            self.current = min(self.current + step, self.ceiling - 1)
        return self.current

    def advance_to(self, value: int) -> int:
        """Raise the counter to *value* (never lowers it, never completes it)."""
        self.current = max(self.current, min(value, self.ceiling - 1))
        return self.current

    def complete(self) -> int:
        """Mark the traced work as successfully finished."""
        self.current = self.ceiling
        return self.current
