"""
L4 Execution — Stream readiness multiplexing.

One interface, "wait until some of these pipes are readable, with a
timeout", implemented once per platform:

    SelectorMultiplexer   POSIX. ``selectors`` over the raw pipe fds.
    ThreadedMultiplexer   Windows. ``select`` does not accept pipes
                          there, so one reader thread per pipe pushes
                          chunks into a ``queue.Queue``.

Both read raw bytes with ``os.read`` and keep their own per-stream
line buffer.  Going through a buffered text wrapper would let lines
sit in Python's buffer while the fd itself no longer polls readable.
"""

from __future__ import annotations

import logging
import os
import queue
import selectors
import threading
import time
from abc import ABC, abstractmethod
from typing import IO

logger = logging.getLogger(__name__)

_CHUNK = 65536

# When several streams are ready at once, stdout is reported first.
_ORDER = {"stdout": 0, "stderr": 1}

Chunk = tuple[str, bytes]


def _decode(raw: bytes | bytearray) -> str:
    return bytes(raw).decode("utf-8", errors="replace").rstrip("\r")


class StreamMultiplexer(ABC):
    """Readiness + line framing over a fixed set of readable pipes.

    Streams are keyed by origin (``"stdout"`` / ``"stderr"``).  A stream
    is *ready* when it delivered new bytes or reached EOF since the last
    ``wait()``.  Bytes stay buffered until ``read_lines()`` or
    ``discard()`` consumes them.
    """

    def __init__(self, streams: dict[str, IO[bytes] | None]) -> None:
        self._streams: dict[str, IO[bytes]] = {
            origin: stream for origin, stream in streams.items() if stream is not None
        }
        self._buffers: dict[str, bytearray] = {o: bytearray() for o in self._streams}
        self._open: set[str] = set(self._streams)
        self._ready: list[str] = []

    # ── Platform hook ───────────────────────────────────────────

    @abstractmethod
    def _collect(self, timeout: float | None) -> list[Chunk]:
        """Read whatever is available within *timeout*.

        Returns ``(origin, bytes)`` pairs; empty bytes mean EOF.
        Raises ``OSError`` on read failures.
        """

    def close(self) -> None:
        """Release platform resources (not the pipes themselves)."""

    # ── State ───────────────────────────────────────────────────

    @property
    def origins(self) -> tuple[str, ...]:
        return tuple(self._streams)

    @property
    def exhausted(self) -> bool:
        """All streams hit EOF and every buffered byte was consumed."""
        return not self._open and not any(self._buffers.values())

    def is_open(self, origin: str) -> bool:
        return origin in self._open

    def pending(self, origin: str) -> bool:
        """Whether *origin* has buffered, unconsumed bytes."""
        return bool(self._buffers.get(origin))

    # ── Readiness ───────────────────────────────────────────────

    def wait(self, timeout: float | None) -> list[str]:
        """Block up to *timeout* seconds for readiness.

        Returns the ready origins (stdout before stderr), or an empty
        list on timeout or when every stream is already closed.
        """
        if not self._ready and self._open:
            for origin, chunk in self._collect(timeout):
                self._feed(origin, chunk)
        ready, self._ready = self._ready, []
        return sorted(ready, key=lambda o: _ORDER.get(o, len(_ORDER)))

    def wait_for(self, origin: str, timeout: float) -> bool:
        """Block up to *timeout* seconds until *origin* is ready.

        Unlike ``wait()`` this consumes nothing: every stream that became
        ready meanwhile (including *origin*) is still reported by the
        next ``wait()``.  Returns whether *origin* is ready.
        """
        deadline = time.monotonic() + timeout
        while origin not in self._ready and origin in self._open:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            for o, chunk in self._collect(remaining):
                self._feed(o, chunk)
        return origin in self._ready

    def _feed(self, origin: str, chunk: bytes) -> None:
        if chunk:
            self._buffers[origin].extend(chunk)
        else:
            self._open.discard(origin)
        if origin not in self._ready:
            self._ready.append(origin)

    # ── Consumption ─────────────────────────────────────────────

    def read_lines(self, origin: str) -> list[str]:
        """Pop every complete line buffered for *origin*.

        Once *origin* is at EOF, a trailing partial line is returned too,
        so a last line without a newline is never lost or waited on.
        """
        buf = self._buffers[origin]
        lines: list[str] = []
        while True:
            idx = buf.find(b"\n")
            if idx < 0:
                break
            lines.append(_decode(buf[:idx]))
            del buf[: idx + 1]
        if buf and origin not in self._open:
            lines.append(_decode(buf))
            buf.clear()
        return lines

    def discard(self, origin: str) -> None:
        """Drop everything buffered for *origin*."""
        self._buffers[origin].clear()
        if origin in self._ready:
            self._ready.remove(origin)

    def drain(self, origin: str, max_reads: int = 64) -> None:
        """Throw away whatever *origin* has available right now.

        Non-blocking and best effort.  Bytes that arrive on other
        streams meanwhile are kept.
        """
        self.discard(origin)
        for _ in range(max_reads):
            if origin not in self._open:
                break
            got = False
            for o, chunk in self._collect(0):
                if o != origin:
                    self._feed(o, chunk)
                    continue
                got = True
                if not chunk:
                    self._open.discard(o)
            if not got:
                break

    def __enter__(self) -> StreamMultiplexer:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class SelectorMultiplexer(StreamMultiplexer):
    """POSIX implementation on top of ``selectors.DefaultSelector``."""

    def __init__(self, streams: dict[str, IO[bytes] | None]) -> None:
        super().__init__(streams)
        self._selector = selectors.DefaultSelector()
        for origin, stream in self._streams.items():
            self._selector.register(stream, selectors.EVENT_READ, origin)

    def _collect(self, timeout: float | None) -> list[Chunk]:
        chunks: list[Chunk] = []
        for key, _ in self._selector.select(timeout):
            chunk = os.read(key.fd, _CHUNK)
            if not chunk:
                self._selector.unregister(key.fileobj)
            chunks.append((key.data, chunk))
        return chunks

    def close(self) -> None:
        self._selector.close()


class ThreadedMultiplexer(StreamMultiplexer):
    """Reader-thread implementation for platforms without pipe ``select``."""

    def __init__(self, streams: dict[str, IO[bytes] | None]) -> None:
        super().__init__(streams)
        self._queue: queue.Queue[tuple[str, bytes | OSError]] = queue.Queue()
        self._threads = [
            threading.Thread(
                target=self._pump,
                args=(origin, stream),
                daemon=True,
                name=f"pipe-reader-{origin}",
            )
            for origin, stream in self._streams.items()
        ]
        for t in self._threads:
            t.start()

    def _pump(self, origin: str, stream: IO[bytes]) -> None:
        try:
            fd = stream.fileno()
            while True:
                chunk = os.read(fd, _CHUNK)
                self._queue.put((origin, chunk))
                if not chunk:
                    return
        except OSError as exc:
            self._queue.put((origin, exc))

    def _collect(self, timeout: float | None) -> list[Chunk]:
        items: list[tuple[str, bytes | OSError]] = []
        try:
            if timeout is not None and timeout <= 0:
                items.append(self._queue.get_nowait())
            else:
                items.append(self._queue.get(timeout=timeout))
            while True:
                items.append(self._queue.get_nowait())
        except queue.Empty:
            pass

        chunks: list[Chunk] = []
        for origin, payload in items:
            if isinstance(payload, OSError):
                raise payload
            chunks.append((origin, payload))
        return chunks


def create_multiplexer(
    stdout: IO[bytes] | None,
    stderr: IO[bytes] | None,
) -> StreamMultiplexer:
    """The readiness implementation for the current platform."""
    streams = {"stdout": stdout, "stderr": stderr}
    if os.name == "nt":
        return ThreadedMultiplexer(streams)
    return SelectorMultiplexer(streams)
