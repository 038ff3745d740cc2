"""
L0 Data — Package manager catalog.

Pure data. No logic. The tuple order IS the probe priority:
``select_manager`` walks it front to back and takes the first
manager whose executable is on PATH.
"""

from __future__ import annotations

from src.core.models.package_manager import ManagerKind, PackageManagerDescriptor

# Every update verb only refreshes repository metadata, never upgrades.
# zypper and pkg reject -y on their refresh step.
PACKAGE_MANAGERS: tuple[PackageManagerDescriptor, ...] = (
    PackageManagerDescriptor(
        kind=ManagerKind.APT, name="apt-get",
        install="install", uninstall="remove", update="update",
        flags="-y",
    ),
    PackageManagerDescriptor(
        kind=ManagerKind.DNF, name="dnf",
        install="install", uninstall="remove", update="makecache",
        flags="-y",
    ),
    PackageManagerDescriptor(
        kind=ManagerKind.PACMAN, name="pacman",
        install="-S", uninstall="-Rns", update="-Sy",
        flags="--noconfirm",
    ),
    PackageManagerDescriptor(
        kind=ManagerKind.ZYPPER, name="zypper",
        install="install", uninstall="remove", update="--non-interactive refresh",
        flags="-y", update_flags="",
    ),
    PackageManagerDescriptor(
        kind=ManagerKind.APK, name="apk",
        install="add", uninstall="del", update="update",
        flags="",  # apk never prompts
    ),
    PackageManagerDescriptor(
        kind=ManagerKind.PKG, name="pkg",
        install="install", uninstall="delete", update="update",
        flags="-y", update_flags="",
    ),
)

_CONTACT_US = "if the problem persists please contact us."

GENERIC_HELP = (
    "Please confirm the network settings and that you have the required "
    f"permissions, then try again, {_CONTACT_US}"
)

# User-facing remediation, keyed by descriptor name.
MANAGER_HELP: dict[str, str] = {
    "apt-get": (
        "Check your network and /etc/apt/sources.list, make sure no other "
        "apt/dpkg process holds the lock (try `dpkg --configure -a`), "
        f"then try again, {_CONTACT_US}"
    ),
    "dnf": (
        "Check your network and repository configuration in /etc/yum.repos.d, "
        f"try `dnf clean all`, then try again, {_CONTACT_US}"
    ),
    "pacman": (
        "Check your mirrorlist and network, remove a stale "
        "/var/lib/pacman/db.lck if no pacman is running, "
        f"then try again, {_CONTACT_US}"
    ),
    "zypper": (
        "Check your network and repositories (`zypper repos`), make sure no "
        f"other zypper/YaST process is running, then try again, {_CONTACT_US}"
    ),
    "apk": (
        "Check your network and /etc/apk/repositories, "
        f"then try again, {_CONTACT_US}"
    ),
    "pkg": (
        "Check your network and /etc/pkg/FreeBSD.conf, "
        f"then try again, {_CONTACT_US}"
    ),
}
