"""
L4 Execution — Privileged shell session.

The SINGLE PLACE where the long-lived (possibly elevated) shell is
spawned.  The session exclusively owns the child and its three pipes
and always reaps the child on ``close()``.

Security invariants:
- The secret is piped via stdin only, never placed in argv or env.
- The secret is never logged; it is registered with the logging
  redaction filter before it is written and released on close().
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass, field

from src.core.observability.logging_config import forget_secret, register_secret
from src.core.services.pkg_install.errors import InstallIOError, PermissionDeniedError
from src.core.services.pkg_install.execution.readiness import (
    StreamMultiplexer,
    create_multiplexer,
)

logger = logging.getLogger(__name__)


def is_privileged() -> bool:
    """Whether the current process already runs as root / administrator."""
    if os.name == "nt":
        import ctypes

        try:
            return bool(ctypes.windll.shell32.IsUserAnAdmin())  # type: ignore[attr-defined]
        except (AttributeError, OSError):
            return False
    return os.geteuid() == 0


@dataclass(frozen=True)
class ElevationRequest:
    """How to open the session.

    ``privileged`` is normally ``is_privileged()``; the two argv lists
    come from settings.
    """

    privileged: bool
    shell: list[str] = field(default_factory=lambda: ["sh"])
    elevation: list[str] = field(default_factory=lambda: ["su", "-c", "sh"])
    close_grace_s: float = 5.0

    def argv(self) -> list[str]:
        """The command line to spawn for this request."""
        if os.name == "nt":
            if not self.privileged:
                raise PermissionDeniedError(
                    "Administrator rights are required, please rerun as Administrator"
                )
            return [os.environ.get("COMSPEC", "cmd.exe"), "/Q"]
        return list(self.shell if self.privileged else self.elevation)


class PrivilegedShellSession:
    """One interactive shell child process plus its pipes.

    Usage::

        with PrivilegedShellSession.open(request) as session:
            ...authenticate...
            session.write_command(cmd, final=True)
            tracer.trace(session.process, 100, multiplexer=session.multiplexer)

    Writes are single-writer: the caller must not write concurrently.
    """

    def __init__(
        self,
        process: subprocess.Popen,
        *,
        elevated: bool,
        close_grace_s: float = 5.0,
    ) -> None:
        self._process = process
        self._elevated = elevated
        self._close_grace_s = close_grace_s
        self._mux: StreamMultiplexer | None = None
        self._secrets: list[str] = []
        self._closed = False

    @classmethod
    def open(cls, request: ElevationRequest) -> PrivilegedShellSession:
        """Spawn the shell described by *request*.

        Raises:
            InstallIOError: If the child cannot be spawned.
            PermissionDeniedError: If elevation is impossible on this platform.
        """
        argv = request.argv()
        logger.debug("Opening %s session: %s", "root" if request.privileged else "elevated", argv)
        try:
            process = subprocess.Popen(
                argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                bufsize=0,
            )
        except OSError as e:
            raise InstallIOError(f"Cannot start {argv[0]}: {e}") from e
        return cls(process, elevated=request.privileged, close_grace_s=request.close_grace_s)

    # ── Properties ──────────────────────────────────────────────

    @property
    def process(self) -> subprocess.Popen:
        return self._process

    @property
    def elevated(self) -> bool:
        """True when the shell was spawned directly as root (no password needed)."""
        return self._elevated

    @property
    def stdin_open(self) -> bool:
        stdin = self._process.stdin
        return stdin is not None and not stdin.closed

    @property
    def multiplexer(self) -> StreamMultiplexer:
        """Readiness view over stdout/stderr, shared by every reader of this session."""
        if self._mux is None:
            self._mux = create_multiplexer(self._process.stdout, self._process.stderr)
        return self._mux

    # ── Writing ─────────────────────────────────────────────────

    def write_command(self, text: str, *, final: bool = False) -> None:
        """Write *text* plus a newline to the shell.

        With ``final=True`` stdin is closed afterwards, so the shell sees
        EOF once the command chain is done.

        Raises:
            InstallIOError: If stdin is closed or the write fails.
        """
        logger.debug("→ shell: %s", text)
        self._write(text, final=final)

    def write_secret(self, secret: str) -> None:
        """Write the elevation secret.  Never logged."""
        register_secret(secret)
        self._secrets.append(secret)
        self._write(secret, final=False)

    def _write(self, text: str, *, final: bool) -> None:
        stdin = self._process.stdin
        if stdin is None or stdin.closed:
            raise InstallIOError("Session stdin is already closed")
        try:
            stdin.write(f"{text}\n".encode())
            stdin.flush()
        except OSError as e:
            raise InstallIOError(f"Cannot write to shell: {e}") from e
        finally:
            if final:
                self._close_stdin()

    def _close_stdin(self) -> None:
        stdin = self._process.stdin
        if stdin is not None and not stdin.closed:
            try:
                stdin.close()
            except OSError:
                logger.debug("stdin already broken on close")

    # ── Teardown ────────────────────────────────────────────────

    def kill(self) -> None:
        """Kill the child (external cancellation)."""
        if self._process.poll() is None:
            logger.info("Killing session process %s", self._process.pid)
            self._process.kill()

    def close(self) -> int | None:
        """Close stdin, wait for the child, kill it if it lingers.

        Idempotent.  Returns the child's exit status.
        """
        if self._closed:
            return self._process.returncode
        self._closed = True

        self._close_stdin()
        try:
            self._process.wait(timeout=self._close_grace_s)
        except subprocess.TimeoutExpired:
            logger.warning(
                "Session process %s still alive after %.1fs, killing",
                self._process.pid, self._close_grace_s,
            )
            self._process.kill()
            self._process.wait()

        if self._mux is not None:
            self._mux.close()
        for pipe in (self._process.stdout, self._process.stderr):
            if pipe is not None:
                pipe.close()
        for secret in self._secrets:
            forget_secret(secret)
        self._secrets.clear()
        return self._process.returncode

    def __enter__(self) -> PrivilegedShellSession:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__} pid={self._process.pid} "
            f"elevated={self._elevated} closed={self._closed}>"
        )
