"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import logging
import stat
from pathlib import Path
from typing import Callable

import pytest

from src.core.context import InstallerContext, build_context
from src.core.models.settings import InstallerSettings
from src.core.observability.logging_config import clear_secrets
from src.core.services.pkg_install.execution.session import (
    ElevationRequest,
    PrivilegedShellSession,
)
from tests.simulated import FAKE_SHELL, fake_which, spawn


@pytest.fixture(autouse=True)
def _isolate_logging():
    """Restore root handlers and forget registered secrets after each test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in root.handlers:
        if h not in handlers:
            h.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    clear_secrets()


@pytest.fixture
def fake_bin(tmp_path: Path) -> Callable[..., str]:
    """Create executable stubs in a temp dir; returns it as a PATH string."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()

    def make(*names: str) -> str:
        for name in names:
            stub = bin_dir / name
            stub.write_text("#!/bin/sh\nexit 0\n")
            stub.chmod(stub.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(bin_dir)

    return make


@pytest.fixture
def settings() -> InstallerSettings:
    return InstallerSettings(auth_timeout_s=5.0, poll_interval_s=0.05, close_grace_s=2.0)


@pytest.fixture
def record_file(tmp_path: Path) -> Path:
    """Where the fake shell writes the command line it received."""
    return tmp_path / "command.txt"


@pytest.fixture
def root_context(settings: InstallerSettings) -> InstallerContext:
    """Already-root process with apt-get on the simulated PATH."""
    return build_context(settings, privileged=True, which=fake_which("apt-get"))


@pytest.fixture
def user_context(settings: InstallerSettings) -> InstallerContext:
    """Unprivileged process with apt-get on the simulated PATH."""
    return build_context(settings, privileged=False, which=fake_which("apt-get"))


class FakeSessionFactory:
    """Session factory spawning the fake shell; records every request.

    ``exit_code`` is what the simulated package manager returns.  With
    ``password`` set, the fake shell first behaves like ``su``.
    """

    def __init__(self, record_file: Path, exit_code: int = 0, password: str | None = None):
        self.record_file = record_file
        self.exit_code = exit_code
        self.password = password
        self.calls: list[ElevationRequest] = []

    def __call__(self, request: ElevationRequest) -> PrivilegedShellSession:
        self.calls.append(request)
        args = [str(self.record_file), str(self.exit_code)]
        if self.password is not None:
            args.append(self.password)
        return PrivilegedShellSession(
            spawn(FAKE_SHELL, *args),
            elevated=request.privileged,
            close_grace_s=request.close_grace_s,
        )

    @property
    def command(self) -> str:
        return self.record_file.read_text()


@pytest.fixture
def session_factory(record_file: Path) -> Callable[..., FakeSessionFactory]:
    def make(exit_code: int = 0, password: str | None = None) -> FakeSessionFactory:
        return FakeSessionFactory(record_file, exit_code=exit_code, password=password)

    return make
