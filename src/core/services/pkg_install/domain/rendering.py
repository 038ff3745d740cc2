"""
L1 Domain — Command rendering (pure).

Turns a descriptor plus a package list into the single line written
into the privileged shell.  No I/O, no subprocess.

Every rendered command ends in ``&& exit``: the interactive shell
terminates exactly when the whole chain finishes, and because ``&&``
short-circuits, the shell's exit status is the status of the first
failing step (or 0).
"""

from __future__ import annotations

import re

from src.core.models.package_manager import PackageManagerDescriptor
from src.core.services.pkg_install.errors import InvalidPackageError

# One token, nothing the shell would expand or split on.
_PACKAGE_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9+._:@/=-]*")


def validate_packages(packages: list[str]) -> list[str]:
    """Return *packages* unchanged if every name is a safe token.

    Raises:
        InvalidPackageError: On the first name that is not.
    """
    for pkg in packages:
        if not isinstance(pkg, str) or not _PACKAGE_RE.fullmatch(pkg):
            raise InvalidPackageError(f"Invalid package name: {pkg!r}")
    return list(packages)


def _join(*parts: str) -> str:
    return " ".join(p for p in parts if p)


def render_install(desc: PackageManagerDescriptor, packages: list[str]) -> str:
    """Render ``[<update> && ]<install> <pkgs> && exit`` for *desc*."""
    pkgs = " ".join(validate_packages(packages))
    install = _join(desc.name, desc.install, desc.flags, pkgs)
    if desc.refresh_index:
        update_flags = desc.flags if desc.update_flags is None else desc.update_flags
        update = _join(desc.name, desc.update, update_flags)
        return f"{update} && {install} && exit"
    return f"{install} && exit"


def render_uninstall(desc: PackageManagerDescriptor, packages: list[str]) -> str:
    """Render ``<uninstall> <pkgs> && exit`` for *desc*."""
    pkgs = " ".join(validate_packages(packages))
    return f"{_join(desc.name, desc.uninstall, desc.flags, pkgs)} && exit"
