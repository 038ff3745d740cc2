"""
Configuration loader — reads privinstall.yml into InstallerSettings.

The file is optional: with no file every setting keeps its default.
An explicit path that does not exist, invalid YAML, or values that
fail validation raise ``ConfigError``.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from src.core.models.settings import InstallerSettings

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "privinstall.yml"


class ConfigError(Exception):
    """Raised when installer configuration is invalid or unreadable."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for privinstall.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to privinstall.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_settings(path: Path | None = None) -> InstallerSettings:
    """Load and validate installer settings.

    Args:
        path: Explicit path to privinstall.yml. If None, searches upward
            and falls back to defaults when nothing is found.

    Returns:
        Validated InstallerSettings.

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid.
    """
    if path is None:
        path = find_config_file()
        if path is None:
            logger.debug("No %s found, using defaults", CONFIG_FILE)
            return InstallerSettings()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading settings from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return InstallerSettings()
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under a "privinstall" key or be flat
    settings_data = data.get("privinstall", data)
    if not isinstance(settings_data, dict):
        raise ConfigError(f"Expected a mapping under 'privinstall' in {path}")

    try:
        settings = InstallerSettings.model_validate(settings_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid installer configuration: {e}") from e

    logger.info("Loaded settings from %s", path)
    return settings
