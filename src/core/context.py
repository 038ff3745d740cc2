"""
Installer context — everything an install attempt needs, built once.

The CLI (or any other entry point) calls ``build_context()`` at
startup and passes the result to ``InstallOrchestrator``.  There is no
module-level state: tests build their own contexts with a simulated
PATH and privilege flag.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass

from src.core.models.settings import InstallerSettings
from src.core.services.pkg_install.detection.package_manager import (
    PackageManagerCatalog,
    Which,
)
from src.core.services.pkg_install.execution.session import (
    ElevationRequest,
    is_privileged,
)


@dataclass(frozen=True)
class InstallerContext:
    """Immutable per-process installer state."""

    settings: InstallerSettings
    catalog: PackageManagerCatalog
    privileged: bool

    def elevation_request(self) -> ElevationRequest:
        """How sessions should be opened for this process."""
        return ElevationRequest(
            privileged=self.privileged,
            shell=list(self.settings.shell),
            elevation=list(self.settings.elevation),
            close_grace_s=self.settings.close_grace_s,
        )


def build_context(
    settings: InstallerSettings | None = None,
    *,
    privileged: bool | None = None,
    which: Which = shutil.which,
    path: str | None = None,
) -> InstallerContext:
    """Assemble the context.

    Args:
        settings: Loaded settings (defaults when None).
        privileged: Override the effective-privilege probe.
        which: PATH probe for the catalog.
        path: PATH string for the probe (None = process PATH).
    """
    settings = settings or InstallerSettings()
    catalog = PackageManagerCatalog(allow=settings.managers, which=which, path=path)
    return InstallerContext(
        settings=settings,
        catalog=catalog,
        privileged=is_privileged() if privileged is None else privileged,
    )
