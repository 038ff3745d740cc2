"""
Install engine error taxonomy.

Every failure the engine can surface derives from ``InstallError``.
Nothing here is retried inside the engine; the caller decides whether
to re-prompt for a password or give up.
"""

from __future__ import annotations


class InstallError(Exception):
    """Base class for all install engine failures."""


class InstallIOError(InstallError):
    """A pipe or process-level operation failed (spawn, read, write)."""


class PermissionDeniedError(InstallError):
    """Elevation was refused, timed out, or is unavailable."""


class NotSupportedError(InstallError):
    """No recognized package manager was found on PATH."""

    def __init__(self, message: str = "Unsupported package manager or platform") -> None:
        super().__init__(message)


class InvalidPackageError(InstallError, ValueError):
    """A package name is not a single shell-safe token."""


class ProcessFailedError(InstallError):
    """A traced child process exited with a non-zero status."""

    def __init__(
        self,
        exit_status: int,
        *,
        manager: str | None = None,
        help_text: str = "",
        cancelled: bool = False,
        timed_out: bool = False,
    ) -> None:
        self.exit_status = exit_status
        self.manager = manager
        self.help_text = help_text
        self.cancelled = cancelled
        self.timed_out = timed_out
        super().__init__(self._describe())

    def _describe(self) -> str:
        if self.cancelled:
            head = "Cancelled"
        elif self.timed_out:
            head = "Timed out"
        else:
            head = f"Exit status {self.exit_status}"
        if self.manager:
            head = f"Package manager {self.manager}: {head.lower()}"
        if self.help_text:
            return f"{head}\n\n{self.help_text}"
        return head
