"""
Tests for the process tracer — line streaming, progress bounds, failure mapping.
"""

import threading

import pytest

from src.core.services.pkg_install.errors import ProcessFailedError
from src.core.services.pkg_install.execution.tracer import ProcessTracer, trace_process
from tests.simulated import spawn


class Recorder:
    """Sink that keeps every call."""

    def __init__(self):
        self.calls: list[tuple[int, str, str]] = []
        self._lock = threading.Lock()

    def __call__(self, progress: int, stdout: str, stderr: str) -> None:
        with self._lock:
            self.calls.append((progress, stdout, stderr))

    @property
    def stdout(self) -> list[str]:
        return [o for _, o, _ in self.calls if o]

    @property
    def stderr(self) -> list[str]:
        return [e for _, _, e in self.calls if e]

    @property
    def progress(self) -> list[int]:
        return [p for p, _, _ in self.calls]


def _lines(n: int, *, code: int = 0, delay: float = 0.0) -> str:
    return (
        "import sys, time\n"
        f"for i in range({n}):\n"
        "    print(f'line {i}', flush=True)\n"
        f"    time.sleep({delay})\n"
        f"sys.exit({code})\n"
    )


class TestSuccess:
    def test_every_stdout_line_once(self):
        sink = Recorder()
        outcome = trace_process(spawn(_lines(5), stdin=False), sink, poll_interval=0.05)
        assert sink.stdout == [f"line {i}" for i in range(5)]
        assert sink.stderr == []
        assert outcome.ok
        assert outcome.exit_status == 0
        assert outcome.stdout_lines == 5

    def test_final_call_is_ceiling(self):
        sink = Recorder()
        trace_process(spawn(_lines(3), stdin=False), sink, progress_ceiling=100, poll_interval=0.05)
        assert sink.calls[-1] == (100, "", "")
        assert all(p <= 99 for p in sink.progress[:-1])

    def test_progress_monotonic_and_bounded(self):
        sink = Recorder()
        trace_process(
            spawn(_lines(10, delay=0.02), stdin=False),
            sink,
            progress_ceiling=3,
            poll_interval=0.01,
        )
        assert sink.progress == sorted(sink.progress)
        assert max(sink.progress[:-1]) <= 2
        assert sink.progress[-1] == 3

    def test_stderr_lines(self):
        script = "import sys\nprint('warn', file=sys.stderr, flush=True)\nprint('ok', flush=True)\n"
        sink = Recorder()
        outcome = trace_process(spawn(script, stdin=False), sink, poll_interval=0.05)
        assert sink.stderr == ["warn"]
        assert sink.stdout == ["ok"]
        assert outcome.stderr_lines == 1
        for _, out, err in sink.calls:
            assert not (out and err)

    def test_partial_trailing_line(self):
        script = "import sys\nsys.stdout.write('no newline')\nsys.stdout.flush()\n"
        sink = Recorder()
        trace_process(spawn(script, stdin=False), sink, poll_interval=0.05)
        assert sink.stdout == ["no newline"]

    def test_silent_child(self):
        sink = Recorder()
        outcome = trace_process(spawn("pass", stdin=False), sink, progress_ceiling=10)
        assert outcome.ok
        assert sink.calls == [(10, "", "")]

    def test_start_offset(self):
        sink = Recorder()
        tracer = ProcessTracer(sink, poll_interval=0.05)
        tracer.trace(spawn(_lines(1), stdin=False), 50, start=20)
        assert min(sink.progress) >= 20
        assert tracer.progress.done

    def test_start_past_ceiling_never_completes_early(self):
        sink = Recorder()
        tracer = ProcessTracer(sink, poll_interval=0.05)
        with pytest.raises(ProcessFailedError):
            tracer.trace(spawn(_lines(2, code=1), stdin=False), 50, start=500)
        assert set(sink.progress) == {49}
        assert not tracer.progress.done


class TestFailure:
    def test_nonzero_exit_raises(self):
        sink = Recorder()
        with pytest.raises(ProcessFailedError) as exc:
            trace_process(spawn(_lines(2, code=1), stdin=False), sink, progress_ceiling=100)
        assert exc.value.exit_status == 1
        assert 100 not in sink.progress
        assert sink.stdout == ["line 0", "line 1"]

    def test_failure_mapper(self):
        class Boom(Exception):
            pass

        def mapper(status):
            return Boom(f"status {status}")

        with pytest.raises(Boom, match="status 7"):
            trace_process(spawn("import sys; sys.exit(7)", stdin=False), failure_mapper=mapper)

    def test_timeout_kills(self):
        tracer = ProcessTracer(poll_interval=0.05, timeout=0.3)
        proc = spawn("import time; time.sleep(30)", stdin=False)
        with pytest.raises(ProcessFailedError) as exc:
            tracer.trace(proc)
        assert exc.value.timed_out
        assert proc.poll() is not None


class TestCancel:
    def test_cancel_before_trace(self):
        tracer = ProcessTracer(poll_interval=0.05)
        tracer.cancel()
        proc = spawn("import time; time.sleep(30)", stdin=False)
        with pytest.raises(ProcessFailedError) as exc:
            tracer.trace(proc)
        assert exc.value.cancelled
        assert not tracer.cancelled

    def test_next_trace_after_cancel_succeeds(self):
        tracer = ProcessTracer(poll_interval=0.05)
        tracer.cancel()
        with pytest.raises(ProcessFailedError):
            tracer.trace(spawn("import time; time.sleep(30)", stdin=False))
        outcome = tracer.trace(spawn(_lines(2), stdin=False))
        assert outcome.ok

    def test_reset_withdraws_cancel(self):
        tracer = ProcessTracer(poll_interval=0.05)
        tracer.cancel()
        tracer.reset()
        assert tracer.trace(spawn(_lines(1), stdin=False)).ok

    def test_cancel_from_another_thread(self):
        sink = Recorder()
        tracer = ProcessTracer(sink, poll_interval=0.05)
        proc = spawn(_lines(1000, delay=0.05), stdin=False)
        timer = threading.Timer(0.3, tracer.cancel)
        timer.start()
        try:
            with pytest.raises(ProcessFailedError) as exc:
                tracer.trace(proc, 100)
        finally:
            timer.cancel()
        assert exc.value.cancelled
        assert 100 not in sink.progress
