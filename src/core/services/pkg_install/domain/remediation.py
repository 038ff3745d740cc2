"""
L1 Domain — Failure remediation text (pure).
"""

from __future__ import annotations

from src.core.services.pkg_install.data.catalog import GENERIC_HELP, MANAGER_HELP


def help_for(manager: str | None) -> str:
    """Remediation text for *manager*, or the generic network/permission hint."""
    if manager and manager in MANAGER_HELP:
        return f"help: {MANAGER_HELP[manager]}"
    return f"help: {GENERIC_HELP}"
