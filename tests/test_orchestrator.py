"""
Tests for the install orchestrator — end to end against a simulated shell and PATH.
"""

import pytest

from src.core.context import build_context
from src.core.services.pkg_install.errors import (
    InvalidPackageError,
    NotSupportedError,
    PermissionDeniedError,
    ProcessFailedError,
)
from src.core.services.pkg_install.orchestration.orchestrator import InstallOrchestrator
from tests.simulated import PASSWORD, fake_which


class Progress:
    def __init__(self):
        self.calls: list[tuple[int, str, str]] = []

    def __call__(self, progress, stdout, stderr):
        self.calls.append((progress, stdout, stderr))


class TestInstall:
    def test_end_to_end_as_root(self, root_context, session_factory):
        factory = session_factory()
        sink = Progress()
        orch = InstallOrchestrator(root_context, sink=sink, session_factory=factory)

        outcome = orch.install(["curl"])

        assert outcome.ok
        assert outcome.manager == "apt-get"
        assert outcome.metadata == {"action": "install", "packages": ["curl"]}
        assert factory.command == "apt-get update -y && apt-get install -y curl && exit"
        assert [o for _, o, _ in sink.calls if o] == ["step 0", "step 1", "step 2"]
        assert sink.calls[-1] == (100, "", "")
        assert all(p < 100 for p, _, _ in sink.calls[:-1])

    def test_probe_answer_not_forwarded(self, root_context, session_factory):
        sink = Progress()
        InstallOrchestrator(root_context, sink=sink, session_factory=session_factory()).install(["git"])
        assert "root" not in [o for _, o, _ in sink.calls]

    def test_with_password(self, user_context, session_factory):
        factory = session_factory(password=PASSWORD)
        outcome = InstallOrchestrator(user_context, session_factory=factory).install(
            ["curl", "git"], PASSWORD,
        )
        assert outcome.ok
        assert "apt-get install -y curl git && exit" in factory.command
        assert factory.calls[0].privileged is False

    def test_wrong_password(self, user_context, session_factory):
        factory = session_factory(password=PASSWORD)
        orch = InstallOrchestrator(user_context, session_factory=factory)
        with pytest.raises(PermissionDeniedError, match="denied"):
            orch.install(["curl"], "not-it")
        assert not factory.record_file.exists()

    def test_package_manager_failure(self, root_context, session_factory):
        sink = Progress()
        orch = InstallOrchestrator(root_context, sink=sink, session_factory=session_factory(exit_code=100))
        with pytest.raises(ProcessFailedError) as exc:
            orch.install(["curl"])
        assert exc.value.exit_status == 100
        assert exc.value.manager == "apt-get"
        assert exc.value.help_text.startswith("help: ")
        assert 100 not in [p for p, _, _ in sink.calls]

    def test_custom_ceiling(self, settings, session_factory):
        ctx = build_context(
            settings.model_copy(update={"progress_ceiling": 7}),
            privileged=True,
            which=fake_which("pacman"),
        )
        sink = Progress()
        factory = session_factory()
        InstallOrchestrator(ctx, sink=sink, session_factory=factory).install(["vim"])
        assert factory.command == "pacman -Sy --noconfirm && pacman -S --noconfirm vim && exit"
        assert sink.calls[-1][0] == 7


class TestUninstall:
    def test_end_to_end(self, root_context, session_factory):
        factory = session_factory()
        outcome = InstallOrchestrator(root_context, session_factory=factory).uninstall(["cowsay"])
        assert outcome.ok
        assert outcome.metadata["action"] == "uninstall"
        assert factory.command == "apt-get remove -y cowsay && exit"


class TestNoSession:
    def test_empty_list_spawns_nothing(self, root_context, session_factory):
        factory = session_factory()
        outcome = InstallOrchestrator(root_context, session_factory=factory).install([])
        assert outcome.ok
        assert outcome.exit_status is None
        assert factory.calls == []

    def test_no_manager_on_path(self, settings, session_factory):
        ctx = build_context(settings, privileged=True, which=fake_which())
        factory = session_factory()
        with pytest.raises(NotSupportedError):
            InstallOrchestrator(ctx, session_factory=factory).install(["curl"])
        assert factory.calls == []

    def test_invalid_package(self, root_context, session_factory):
        factory = session_factory()
        with pytest.raises(InvalidPackageError):
            InstallOrchestrator(root_context, session_factory=factory).install(["curl; reboot"])
        assert factory.calls == []

    def test_cancel_before_start(self, root_context, session_factory):
        factory = session_factory()
        orch = InstallOrchestrator(root_context, session_factory=factory)
        orch.cancel()
        with pytest.raises(ProcessFailedError) as exc:
            orch.install(["curl"])
        assert exc.value.cancelled

    def test_cancel_used_up_by_one_attempt(self, root_context, session_factory):
        factory = session_factory()
        orch = InstallOrchestrator(root_context, session_factory=factory)
        orch.cancel()
        with pytest.raises(ProcessFailedError):
            orch.install(["curl"])
        assert orch.install(["curl"]).ok
        assert factory.command == "apt-get update -y && apt-get install -y curl && exit"
