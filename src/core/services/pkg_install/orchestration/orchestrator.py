"""
L5 Orchestration — Install / uninstall use case.

    select manager → open session → authenticate → write command → trace

Every step propagates its own error type; nothing is retried here.
The session is closed (child reaped) whether the attempt succeeds or
not.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Callable, Literal

from src.core.models.outcome import ProcessOutcome
from src.core.models.package_manager import PackageManagerDescriptor
from src.core.models.trace import AuthenticationOutcome
from src.core.services.pkg_install.domain.remediation import help_for
from src.core.services.pkg_install.domain.rendering import (
    render_install,
    render_uninstall,
    validate_packages,
)
from src.core.services.pkg_install.errors import (
    PermissionDeniedError,
    ProcessFailedError,
)
from src.core.services.pkg_install.execution.authentication import AuthenticationProtocol
from src.core.services.pkg_install.execution.session import (
    ElevationRequest,
    PrivilegedShellSession,
)
from src.core.services.pkg_install.execution.tracer import ProcessTracer, Sink

if TYPE_CHECKING:
    from src.core.context import InstallerContext

logger = logging.getLogger(__name__)

SessionFactory = Callable[[ElevationRequest], PrivilegedShellSession]
Action = Literal["install", "uninstall"]

_RENDERERS = {
    "install": render_install,
    "uninstall": render_uninstall,
}


class InstallOrchestrator:
    """Compose catalog, session, authentication and tracer.

    Args:
        context: Startup context (settings, catalog, privilege flag).
        sink: Progress/output callback, see ``ProcessTracer``.
        session_factory: Opens a session for an ``ElevationRequest``.
    """

    def __init__(
        self,
        context: InstallerContext,
        *,
        sink: Sink | None = None,
        session_factory: SessionFactory = PrivilegedShellSession.open,
    ) -> None:
        self._context = context
        self._session_factory = session_factory
        self._tracer = ProcessTracer(
            sink,
            poll_interval=context.settings.poll_interval_s,
            timeout=context.settings.trace_timeout_s,
        )
        self._lock = threading.Lock()
        self._session: PrivilegedShellSession | None = None
        self._cancelled = False

    def install(self, dependencies: list[str], secret: str | None = None) -> ProcessOutcome:
        """Install *dependencies* with the first package manager on PATH.

        Raises:
            InvalidPackageError: A name is not a safe token.
            NotSupportedError: No known package manager on PATH.
            InstallIOError: Spawning or talking to the shell failed.
            PermissionDeniedError: Elevation was denied or timed out.
            ProcessFailedError: The package manager exited non-zero.
        """
        return self._run("install", dependencies, secret)

    def uninstall(self, dependencies: list[str], secret: str | None = None) -> ProcessOutcome:
        """Remove *dependencies*.  Same pipeline and errors as ``install``."""
        return self._run("uninstall", dependencies, secret)

    def cancel(self) -> None:
        """Kill the running attempt's child; the attempt then fails.

        Called between attempts, it fails the next one.  Each request is
        used up by exactly one attempt.
        """
        with self._lock:
            self._cancelled = True
            session = self._session
        self._tracer.cancel()
        if session is not None:
            session.kill()

    def _run(self, action: Action, dependencies: list[str], secret: str | None) -> ProcessOutcome:
        try:
            return self._attempt(action, dependencies, secret)
        finally:
            with self._lock:
                self._cancelled = False
            self._tracer.reset()

    def _attempt(self, action: Action, dependencies: list[str], secret: str | None) -> ProcessOutcome:
        packages = validate_packages(list(dependencies))
        if not packages:
            logger.info("Nothing to %s", action)
            return ProcessOutcome.success(exit_status=None, metadata={"action": action, "packages": []})

        desc = self._context.catalog.select()
        command = _RENDERERS[action](desc, packages)
        logger.info("%s %s via %s", action.capitalize(), " ".join(packages), desc.name)

        session = self._session_factory(self._context.elevation_request())
        with self._lock:
            self._session = session
            cancelled = self._cancelled
        try:
            with session:
                if cancelled:
                    raise ProcessFailedError(-1, manager=desc.name, cancelled=True)
                self._authenticate(session, secret)
                session.write_command(command, final=True)
                outcome = self._tracer.trace(
                    session.process,
                    self._context.settings.progress_ceiling,
                    self._failure_mapper(desc),
                    multiplexer=session.multiplexer,
                )
        finally:
            with self._lock:
                self._session = None

        return outcome.model_copy(update={
            "manager": desc.name,
            "metadata": {"action": action, "packages": packages},
        })

    def _authenticate(self, session: PrivilegedShellSession, secret: str | None) -> None:
        settings = self._context.settings
        protocol = AuthenticationProtocol(
            session,
            timeout=settings.auth_timeout_s,
            probe=settings.probe_command,
        )
        outcome = protocol.run(secret)
        if not outcome.granted:
            reason = "timed out" if outcome is AuthenticationOutcome.TIMED_OUT else "was denied"
            raise PermissionDeniedError(f"Authentication {reason}")

    @staticmethod
    def _failure_mapper(desc: PackageManagerDescriptor) -> Callable[[int], ProcessFailedError]:
        def mapper(exit_status: int) -> ProcessFailedError:
            return ProcessFailedError(
                exit_status,
                manager=desc.name,
                help_text=help_for(desc.name),
            )

        return mapper
