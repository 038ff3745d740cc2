"""
Tests for domain models — progress, outcomes, settings, errors.
"""

import pytest
from pydantic import ValidationError

from src.core.models import (
    AuthenticationOutcome,
    InstallerSettings,
    ProcessOutcome,
    ProgressState,
    TracedLine,
)
from src.core.services.pkg_install.errors import (
    InstallError,
    NotSupportedError,
    ProcessFailedError,
)


class TestProgressState:
    def test_defaults(self):
        p = ProgressState()
        assert p.ceiling == 100
        assert p.current == 0
        assert not p.done

    def test_tick_never_reaches_ceiling(self):
        p = ProgressState(ceiling=5)
        values = [p.tick() for _ in range(20)]
        assert max(values) == 4
        assert values == sorted(values)

    def test_tick_step(self):
        p = ProgressState(ceiling=10)
        assert p.tick(3) == 3
        assert p.tick(30) == 9

    def test_complete(self):
        p = ProgressState(ceiling=3)
        p.tick()
        assert p.complete() == 3
        assert p.done

    def test_advance_to_never_lowers(self):
        p = ProgressState(ceiling=10, current=6)
        assert p.advance_to(2) == 6
        assert p.advance_to(50) == 9

    def test_start_clamped(self):
        assert ProgressState(ceiling=10, current=99).current == 9
        assert ProgressState(ceiling=10, current=-4).current == 0

    def test_ceiling_one(self):
        p = ProgressState(ceiling=1)
        assert p.tick() == 0
        assert p.complete() == 1

    def test_invalid_ceiling(self):
        with pytest.raises(ValueError):
            ProgressState(ceiling=0)


class TestProcessOutcome:
    def test_success(self):
        o = ProcessOutcome.success(stdout_lines=3)
        assert o.ok
        assert not o.failed
        assert o.exit_status == 0
        assert o.error is None

    def test_failure(self):
        o = ProcessOutcome.failure("boom", exit_status=2, error_kind="ProcessFailedError")
        assert o.failed
        assert o.error == "boom"
        assert o.exit_status == 2

    def test_serializes(self):
        d = ProcessOutcome.success(manager="apt-get").model_dump()
        assert d["status"] == "ok"
        assert d["manager"] == "apt-get"


class TestAuthenticationOutcome:
    def test_only_authenticated_is_granted(self):
        assert AuthenticationOutcome.AUTHENTICATED.granted
        assert not AuthenticationOutcome.DENIED.granted
        assert not AuthenticationOutcome.TIMED_OUT.granted


class TestTracedLine:
    def test_frozen(self):
        line = TracedLine(origin="stdout", text="hello")
        with pytest.raises(AttributeError):
            line.text = "bye"  # type: ignore[misc]


class TestInstallerSettings:
    def test_defaults(self):
        s = InstallerSettings()
        assert s.auth_timeout_s == 5.0
        assert s.poll_interval_s == 0.1
        assert s.progress_ceiling == 100
        assert s.trace_timeout_s is None
        assert s.shell == ["sh"]
        assert s.elevation == ["su", "-c", "sh"]
        assert s.probe_command == "whoami"
        assert s.managers is None

    @pytest.mark.parametrize("field,value", [
        ("auth_timeout_s", 0),
        ("poll_interval_s", -1),
        ("progress_ceiling", 0),
        ("progress_ceiling", 101),
        ("trace_timeout_s", 0),
        ("shell", []),
        ("elevation", [""]),
    ])
    def test_rejects(self, field, value):
        with pytest.raises(ValidationError):
            InstallerSettings(**{field: value})


class TestErrors:
    def test_hierarchy(self):
        assert issubclass(ProcessFailedError, InstallError)
        assert issubclass(NotSupportedError, InstallError)

    def test_exit_status_message(self):
        e = ProcessFailedError(100)
        assert str(e) == "Exit status 100"
        assert e.exit_status == 100

    def test_manager_and_help(self):
        e = ProcessFailedError(1, manager="dnf", help_text="help: retry")
        assert str(e) == "Package manager dnf: exit status 1\n\nhelp: retry"

    def test_cancelled(self):
        e = ProcessFailedError(-9, cancelled=True)
        assert str(e) == "Cancelled"
        assert e.cancelled
