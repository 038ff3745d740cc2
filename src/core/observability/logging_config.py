"""
Logging configuration — central setup for all entrypoints.

Called once at startup by main.py.  Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Levels are resolved in precedence order:
    CLI flag  >  PRIVINSTALL_LOG_LEVEL env var  >  WARNING (default)

Optional file output via PRIVINSTALL_LOG_FILE / PRIVINSTALL_LOG_FILE_LEVEL.

Every handler carries a ``SecretFilter``: elevation secrets registered
with ``register_secret()`` are replaced by ``***`` before a record is
formatted, whatever logger emitted it.
"""

from __future__ import annotations

import logging
import sys
import threading

# ── Formats ─────────────────────────────────────────────────────

_CLOCK = "%H:%M:%S"

# (threshold, format, datefmt): the first threshold >= level wins
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s", _CLOCK),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", _CLOCK),
    (logging.CRITICAL, "%(message)s", None),
)

# The log file always gets the full record
_FILE_FORMAT = ("%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s", "%Y-%m-%d %H:%M:%S")

_REDACTED = "***"

# secret -> number of live registrations
_secrets: dict[str, int] = {}
_secrets_lock = threading.Lock()


def register_secret(value: str) -> None:
    """Mark *value* as sensitive: it will never appear in log output."""
    if not value:
        return
    with _secrets_lock:
        _secrets[value] = _secrets.get(value, 0) + 1


def forget_secret(value: str) -> None:
    """Undo one ``register_secret(value)``; the last one unmasks it."""
    with _secrets_lock:
        count = _secrets.pop(value, 0) - 1
        if count > 0:
            _secrets[value] = count


def clear_secrets() -> None:
    """Forget every registered secret at once."""
    with _secrets_lock:
        _secrets.clear()


def redact(text: str) -> str:
    """Replace every registered secret in *text*."""
    with _secrets_lock:
        secrets = sorted(_secrets, key=len, reverse=True)
    for secret in secrets:
        text = text.replace(secret, _REDACTED)
    return text


class SecretFilter(logging.Filter):
    """Rewrite records so registered secrets never reach a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not _secrets:
            return True
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


def _console_format(level: int) -> tuple[str, str | None]:
    for threshold, fmt, datefmt in _CONSOLE_FORMATS:
        if level <= threshold:
            return fmt, datefmt
    return _CONSOLE_FORMATS[-1][1], None


def _redacting(handler: logging.Handler, level: int, fmt: str, datefmt: str | None) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    handler.addFilter(SecretFilter())
    return handler


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Install the console (and optional file) handler on the root logger.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path of a log file to append to.
        log_file_level: Level for the file; the console level when omitted.
    """
    console_level = _parse_level(level)
    handlers = [
        _redacting(logging.StreamHandler(sys.stderr), console_level, *_console_format(console_level)),
    ]

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        handlers.append(
            _redacting(logging.FileHandler(log_file, encoding="utf-8"), file_level, *_FILE_FORMAT),
        )

    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    # Root must let through whatever the most verbose handler wants
    root.setLevel(min(h.level for h in handlers))

    logging.raiseExceptions = False


def _parse_level(level: str | None) -> int:
    """Level name → numeric level; WARNING for anything unknown."""
    numeric = getattr(logging, (level or "").upper(), None)
    return numeric if isinstance(numeric, int) else logging.WARNING
