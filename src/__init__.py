"""privinstall — privileged package installation engine."""

__version__ = "0.1.0"
