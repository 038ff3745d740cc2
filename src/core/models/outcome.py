"""
Process outcome model — the result contract of a traced operation.

The worker never lets exceptions cross into the foreground loop:
whatever happens during an install attempt ends up in one of these.
Modeled on the ``Receipt`` pattern (``success`` / ``failure``
constructors, ``ok`` / ``failed`` properties).
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class ProcessOutcome(BaseModel):
    """Outcome of an install/uninstall attempt or a single traced process."""

    status: Literal["ok", "failed"] = "ok"
    exit_status: int | None = None
    manager: str | None = None

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    stdout_lines: int = 0
    stderr_lines: int = 0

    error: str | None = None
    error_kind: str | None = None    # exception class name on failure
    help_text: str | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the operation succeeded."""
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        """Whether the operation failed."""
        return self.status == "failed"

    @classmethod
    def success(cls, exit_status: int | None = 0, **kwargs: Any) -> ProcessOutcome:
        """Create a success outcome."""
        return cls(status="ok", exit_status=exit_status, **kwargs)

    @classmethod
    def failure(cls, error: str, **kwargs: Any) -> ProcessOutcome:
        """Create a failure outcome."""
        return cls(status="failed", error=error, **kwargs)
