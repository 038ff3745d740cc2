"""
Domain models — Pydantic types and tracing dataclasses for the installer.

All models are re-exported here for convenient access:

    from src.core.models import PackageManagerDescriptor, ProcessOutcome, ProgressState
"""

from src.core.models.outcome import ProcessOutcome
from src.core.models.package_manager import ManagerKind, PackageManagerDescriptor
from src.core.models.settings import InstallerSettings
from src.core.models.trace import (
    AuthenticationOutcome,
    ProgressState,
    StreamOrigin,
    TracedLine,
)

__all__ = [
    # trace.py
    "AuthenticationOutcome",
    # settings.py
    "InstallerSettings",
    # package_manager.py
    "ManagerKind",
    "PackageManagerDescriptor",
    # outcome.py
    "ProcessOutcome",
    "ProgressState",
    "StreamOrigin",
    "TracedLine",
]
