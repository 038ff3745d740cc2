"""
L3 Detection — Package manager selection.

Read-only PATH probes.  Selection is deterministic: the catalog is
walked in its fixed priority order and the first executable found
wins, so the same PATH always yields the same manager.
"""

from __future__ import annotations

import logging
import shutil
from typing import Callable

from src.core.models.package_manager import PackageManagerDescriptor
from src.core.services.pkg_install.data.catalog import PACKAGE_MANAGERS
from src.core.services.pkg_install.errors import NotSupportedError

logger = logging.getLogger(__name__)

# shutil.which-compatible probe: (name, path=None) -> resolved path or None
Which = Callable[..., str | None]


class PackageManagerCatalog:
    """Immutable view over the known package managers.

    Safe for unsynchronized concurrent reads: nothing is mutated after
    ``__init__``.

    Args:
        descriptors: Priority-ordered descriptors (default: the built-in table).
        allow: Optional allow-list of manager names; order is not changed.
        which: PATH probe, ``shutil.which`` by default.
        path: PATH string handed to *which* (None = process PATH).
    """

    def __init__(
        self,
        descriptors: tuple[PackageManagerDescriptor, ...] = PACKAGE_MANAGERS,
        *,
        allow: list[str] | None = None,
        which: Which = shutil.which,
        path: str | None = None,
    ) -> None:
        if allow is not None:
            allowed = set(allow)
            descriptors = tuple(d for d in descriptors if d.name in allowed or d.kind.value in allowed)
        self._descriptors = descriptors
        self._which = which
        self._path = path

    @property
    def descriptors(self) -> tuple[PackageManagerDescriptor, ...]:
        return self._descriptors

    def get(self, name: str) -> PackageManagerDescriptor | None:
        """Look up a descriptor by executable name or kind."""
        for desc in self._descriptors:
            if name in (desc.name, desc.kind.value):
                return desc
        return None

    def is_available(self, desc: PackageManagerDescriptor) -> bool:
        """Whether *desc*'s executable resolves on PATH."""
        try:
            return self._which(desc.name, path=self._path) is not None
        except OSError as exc:
            logger.warning("PATH probe failed for %s: %s", desc.name, exc)
            return False

    def available(self) -> list[PackageManagerDescriptor]:
        """All managers present on PATH, in priority order."""
        return [d for d in self._descriptors if self.is_available(d)]

    def select(self) -> PackageManagerDescriptor:
        """First manager on PATH in priority order.

        Raises:
            NotSupportedError: If none of them is installed.
        """
        for desc in self._descriptors:
            if self.is_available(desc):
                logger.debug("Selected package manager: %s", desc.name)
                return desc
        logger.info(
            "No supported package manager on PATH (tried %s)",
            ", ".join(d.name for d in self._descriptors),
        )
        raise NotSupportedError()

    def install(self, packages: list[str]) -> str:
        """Install command for the selected manager."""
        return self.select().install_command(packages)

    def uninstall(self, packages: list[str]) -> str:
        """Uninstall command for the selected manager."""
        return self.select().uninstall_command(packages)
