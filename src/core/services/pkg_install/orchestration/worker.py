"""
L5 Orchestration — Background install worker.

The orchestrator blocks (authentication race, tracer loop), so it runs
on a daemon thread.  Everything it reports crosses back to the
foreground loop through one ``queue.Queue``:

    WorkerMessage(kind="progress", progress, stdout, stderr)   0..N times
    WorkerMessage(kind="done", outcome)                        exactly once

No exception ever leaves the worker thread; failures arrive as a
``ProcessOutcome`` with ``status="failed"``.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, Literal

from src.core.models.outcome import ProcessOutcome
from src.core.services.pkg_install.domain.remediation import help_for
from src.core.services.pkg_install.errors import (
    InstallError,
    NotSupportedError,
    PermissionDeniedError,
    ProcessFailedError,
)
from src.core.services.pkg_install.execution.session import PrivilegedShellSession
from src.core.services.pkg_install.orchestration.orchestrator import (
    Action,
    InstallOrchestrator,
    SessionFactory,
)

if TYPE_CHECKING:
    from src.core.context import InstallerContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkerMessage:
    """One message from the worker thread to the foreground loop."""

    kind: Literal["progress", "done"]
    progress: int = 0
    stdout: str = ""
    stderr: str = ""
    outcome: ProcessOutcome | None = None


def outcome_from_error(exc: BaseException) -> ProcessOutcome:
    """Convert an engine exception into a failure outcome."""
    manager = getattr(exc, "manager", None)
    if isinstance(exc, ProcessFailedError):
        return ProcessOutcome.failure(
            str(exc).split("\n\n", 1)[0],
            exit_status=exc.exit_status,
            manager=manager,
            error_kind=type(exc).__name__,
            help_text=exc.help_text or help_for(manager),
            metadata={"cancelled": exc.cancelled, "timed_out": exc.timed_out},
        )
    help_text = help_for(None) if isinstance(exc, (PermissionDeniedError, NotSupportedError)) else None
    return ProcessOutcome.failure(
        str(exc) or type(exc).__name__,
        error_kind=type(exc).__name__,
        help_text=help_text,
    )


class InstallWorker:
    """Run one orchestrator action on a background thread.

    Usage::

        worker = InstallWorker(ctx, "install", ["curl"], secret=pw)
        worker.start()
        for msg in worker.messages():
            ...update UI...
        outcome = worker.outcome
    """

    def __init__(
        self,
        context: InstallerContext,
        action: Action,
        packages: list[str],
        *,
        secret: str | None = None,
        session_factory: SessionFactory = PrivilegedShellSession.open,
    ) -> None:
        self._action = action
        self._packages = list(packages)
        self._secret = secret
        self._queue: queue.Queue[WorkerMessage] = queue.Queue()
        self._orchestrator = InstallOrchestrator(
            context,
            sink=self._post_progress,
            session_factory=session_factory,
        )
        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name=f"{action}-worker",
        )
        self.outcome: ProcessOutcome | None = None

    def start(self) -> InstallWorker:
        self._thread.start()
        return self

    def cancel(self) -> None:
        """Kill the child of the running attempt; it finishes as failed."""
        self._orchestrator.cancel()

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    @property
    def alive(self) -> bool:
        return self._thread.is_alive()

    def _post_progress(self, progress: int, stdout: str, stderr: str) -> None:
        self._queue.put(WorkerMessage("progress", progress=progress, stdout=stdout, stderr=stderr))

    def _run(self) -> None:
        outcome: ProcessOutcome
        try:
            if self._action == "install":
                outcome = self._orchestrator.install(self._packages, self._secret)
            else:
                outcome = self._orchestrator.uninstall(self._packages, self._secret)
        except InstallError as e:
            logger.info("%s failed: %s", self._action.capitalize(), str(e).split("\n", 1)[0])
            outcome = outcome_from_error(e)
        except Exception as e:
            logger.error("%s crashed: %s", self._action.capitalize(), e, exc_info=True)
            outcome = outcome_from_error(e)
        self._queue.put(WorkerMessage("done", outcome=outcome))

    def messages(self, poll: float = 0.1) -> Iterator[WorkerMessage]:
        """Yield messages until (and including) the final ``done``.

        Meant for the foreground loop; sets ``self.outcome`` on the way.
        """
        while True:
            try:
                msg = self._queue.get(timeout=poll)
            except queue.Empty:
                if not self._thread.is_alive() and self._queue.empty():
                    return
                continue
            if msg.kind == "done":
                self.outcome = msg.outcome
                yield msg
                return
            yield msg
