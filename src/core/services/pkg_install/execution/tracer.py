"""
L4 Execution — Process tracer.

Follows any child process (the privileged shell, a git clone, an
installer script) until it exits, streaming its stdout/stderr lines
to a sink and driving a bounded progress counter.

Sink contract::

    sink(progress, stdout_line, stderr_line)

``progress`` is in ``0..=ceiling``; at most one of the line fields is
non-empty per call.  Progress never reaches ``ceiling`` while the
child could still fail: the final step is only taken after a
successful exit.

The loop blocks, so it belongs on a worker thread (see
``orchestration.worker``).  It talks to the outside world only via
the sink and its return value / exception.
"""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from typing import Callable

from src.core.models.outcome import ProcessOutcome
from src.core.models.trace import ProgressState, TracedLine
from src.core.services.pkg_install.errors import InstallIOError, ProcessFailedError
from src.core.services.pkg_install.execution.readiness import (
    StreamMultiplexer,
    create_multiplexer,
)

logger = logging.getLogger(__name__)

Sink = Callable[[int, str, str], None]
FailureMapper = Callable[[int], BaseException]

DEFAULT_POLL_INTERVAL_S = 0.1

# Upper bound on reading leftovers once the child has exited; a
# grandchild that inherited the pipes could otherwise keep us here.
_FLUSH_BUDGET_S = 2.0


def _discard(progress: int, stdout_line: str, stderr_line: str) -> None:
    pass


def default_failure(exit_status: int) -> ProcessFailedError:
    return ProcessFailedError(exit_status)


class ProcessTracer:
    """Multiplexed reader + progress driver for one child at a time.

    Args:
        sink: Receives ``(progress, stdout_line, stderr_line)``.
        poll_interval: Readiness wait per loop iteration (seconds).
        timeout: Optional overall limit; the child is killed when exceeded.
    """

    def __init__(
        self,
        sink: Sink | None = None,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL_S,
        timeout: float | None = None,
    ) -> None:
        self._sink = sink or _discard
        self._poll_interval = poll_interval
        self._timeout = timeout
        self._lock = threading.Lock()
        self._process: subprocess.Popen | None = None
        self._cancelled = threading.Event()
        self.progress: ProgressState | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Kill the traced child.  The running ``trace()`` then fails.

        With nothing running, the next ``trace()`` fails instead.  Either
        way the request is used up by that one trace.
        """
        self._cancelled.set()
        with self._lock:
            proc = self._process
        if proc is not None and proc.poll() is None:
            logger.info("Cancelling traced process %s", proc.pid)
            proc.kill()

    def reset(self) -> None:
        """Withdraw a cancel request no trace has used up yet."""
        self._cancelled.clear()

    # ── Main loop ───────────────────────────────────────────────

    def trace(
        self,
        process: subprocess.Popen,
        progress_ceiling: int = 100,
        failure_mapper: FailureMapper | None = None,
        *,
        multiplexer: StreamMultiplexer | None = None,
        start: int = 0,
    ) -> ProcessOutcome:
        """Follow *process* until it exits.

        Args:
            process: Child with piped stdout/stderr (binary mode).
            progress_ceiling: Value reported once the child exited with 0.
            failure_mapper: Builds the exception raised for a non-zero exit.
            multiplexer: Reuse an existing readiness view over the child's
                pipes (a session's), instead of creating one.
            start: Initial progress, for callers chaining several stages.

        Returns:
            A success ``ProcessOutcome``.

        Raises:
            InstallIOError: Reading a pipe failed.
            ProcessFailedError: Cancelled or timed out.
            Exception: Whatever *failure_mapper* returns, on non-zero exit.
        """
        progress = ProgressState(ceiling=progress_ceiling)
        progress.advance_to(start)
        self.progress = progress
        counts = {"stdout": 0, "stderr": 0}

        with self._lock:
            self._process = process
        if self._cancelled.is_set() and process.poll() is None:
            process.kill()

        own_mux = multiplexer is None
        mux = multiplexer or create_multiplexer(process.stdout, process.stderr)
        started = time.monotonic()
        timed_out = False

        try:
            while True:
                self._pump(mux, progress, counts, self._poll_interval)

                status = process.poll()
                if status is not None:
                    self._flush(mux, progress, counts)
                    break

                if self._timeout is not None and time.monotonic() - started > self._timeout:
                    logger.warning(
                        "Process %s exceeded %ss, killing", process.pid, self._timeout,
                    )
                    timed_out = True
                    process.kill()
                    status = process.wait()
                    self._flush(mux, progress, counts)
                    break

                if mux.exhausted:
                    # Both pipes closed but the child is still running.
                    try:
                        process.wait(timeout=self._poll_interval)
                    except subprocess.TimeoutExpired:
                        pass
        finally:
            if own_mux:
                mux.close()
            with self._lock:
                self._process = None
            cancelled = self._cancelled.is_set()
            self._cancelled.clear()

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.debug(
            "Process %s exited %s after %dms (%d stdout / %d stderr lines)",
            process.pid, status, duration_ms, counts["stdout"], counts["stderr"],
        )

        if cancelled:
            raise ProcessFailedError(status, cancelled=True)
        if timed_out:
            raise ProcessFailedError(status, timed_out=True)
        if status != 0:
            raise (failure_mapper or default_failure)(status)

        progress.complete()
        self._sink(progress.current, "", "")
        return ProcessOutcome.success(
            exit_status=status,
            duration_ms=duration_ms,
            stdout_lines=counts["stdout"],
            stderr_lines=counts["stderr"],
        )

    # ── Helpers ─────────────────────────────────────────────────

    def _pump(
        self,
        mux: StreamMultiplexer,
        progress: ProgressState,
        counts: dict[str, int],
        timeout: float,
    ) -> bool:
        """One readiness round.  Returns whether anything fired."""
        try:
            ready = mux.wait(timeout)
        except OSError as e:
            raise InstallIOError(f"Cannot read process output: {e}") from e
        if not ready:
            return False

        progress.tick()
        for origin in ready:
            for text in mux.read_lines(origin):
                counts[origin] += 1
                self._emit(TracedLine(origin=origin, text=text), progress.current)
        return True

    def _flush(
        self,
        mux: StreamMultiplexer,
        progress: ProgressState,
        counts: dict[str, int],
    ) -> None:
        """Read what the exited child left in its pipes."""
        deadline = time.monotonic() + _FLUSH_BUDGET_S
        while not mux.exhausted and time.monotonic() < deadline:
            if not self._pump(mux, progress, counts, self._poll_interval):
                break

    def _emit(self, line: TracedLine, progress: int) -> None:
        if line.origin == "stdout":
            self._sink(progress, line.text, "")
        else:
            self._sink(progress, "", line.text)


def trace_process(
    process: subprocess.Popen,
    sink: Sink | None = None,
    *,
    progress_ceiling: int = 100,
    failure_mapper: FailureMapper | None = None,
    poll_interval: float = DEFAULT_POLL_INTERVAL_S,
    timeout: float | None = None,
    start: int = 0,
) -> ProcessOutcome:
    """Trace *process* with a one-off ``ProcessTracer``."""
    tracer = ProcessTracer(sink, poll_interval=poll_interval, timeout=timeout)
    return tracer.trace(process, progress_ceiling, failure_mapper, start=start)
