"""
Package manager descriptor — the static identity of one backend.

A descriptor is pure data: the binary name, its verbs and the flag
that makes it non-interactive.  Rendering a command line from a
descriptor is done by ``pkg_install.domain.rendering``.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class ManagerKind(str, Enum):
    """Closed set of supported package managers."""

    APT = "apt"
    DNF = "dnf"
    PACMAN = "pacman"
    ZYPPER = "zypper"
    APK = "apk"
    PKG = "pkg"


class PackageManagerDescriptor(BaseModel):
    """How to drive one package manager from a shell.

    Instances are frozen: the catalog builds them once at import
    time and hands out the same objects for the life of the process.
    """

    model_config = ConfigDict(frozen=True)

    kind: ManagerKind
    name: str                   # executable probed on PATH
    install: str                # verb for installing
    uninstall: str              # verb for removing
    update: str                 # verb for refreshing the package index
    flags: str = ""             # non-interactive flag(s)
    update_flags: str | None = None  # flags for <update>; None reuses flags
    refresh_index: bool = True  # run <update> before <install>

    def install_command(self, packages: list[str]) -> str:
        """Shell command installing *packages* and exiting the shell."""
        from src.core.services.pkg_install.domain.rendering import render_install

        return render_install(self, packages)

    def uninstall_command(self, packages: list[str]) -> str:
        """Shell command removing *packages* and exiting the shell."""
        from src.core.services.pkg_install.domain.rendering import render_uninstall

        return render_uninstall(self, packages)
