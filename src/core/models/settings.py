"""
Installer settings — validated configuration for the install engine.

Loaded from ``privinstall.yml`` by ``src.core.config.loader``.  Every
field has a default, so an absent file is a valid configuration.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class InstallerSettings(BaseModel):
    """Tunables for sessions, authentication and tracing."""

    auth_timeout_s: float = Field(default=5.0, gt=0)
    poll_interval_s: float = Field(default=0.1, gt=0)
    progress_ceiling: int = Field(default=100, ge=1, le=100)
    trace_timeout_s: float | None = Field(default=None, gt=0)
    close_grace_s: float = Field(default=5.0, ge=0)

    shell: list[str] = Field(default_factory=lambda: ["sh"])
    elevation: list[str] = Field(default_factory=lambda: ["su", "-c", "sh"])
    probe_command: str = "whoami"

    # Optional allow-list of manager names (catalog order is kept)
    managers: list[str] | None = None

    @field_validator("shell", "elevation")
    @classmethod
    def _non_empty_argv(cls, value: list[str]) -> list[str]:
        if not value or not value[0]:
            raise ValueError("command must have at least a program name")
        return value
