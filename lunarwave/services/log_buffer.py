"""
lunarwave.services.log_buffer — Recent Log Lines for the Admin Panel
======================================================================

A bounded, thread-safe ring buffer attached to the root logger so the
super-admin can tail recent API activity (moderation actions, sweep
results, store failures) without shell access.  Nothing is persisted.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import UTC, datetime

DEFAULT_CAPACITY = 2000

_buffer: LogBuffer | None = None
_lock = threading.Lock()


class LogBuffer:
    """Thread-safe ring buffer of formatted log records."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self._entries: deque[dict[str, str]] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def append(self, entry: dict[str, str]) -> None:
        with self._lock:
            self._entries.append(entry)

    def tail(self, count: int = 200, level: str | None = None) -> list[dict[str, str]]:
        """Return up to *count* most recent entries at or above *level*."""
        min_level = logging.getLevelName(level.upper()) if level else 0
        if not isinstance(min_level, int):
            min_level = 0
        with self._lock:
            snapshot = list(self._entries)
        if min_level:
            snapshot = [e for e in snapshot if logging.getLevelName(e["level"]) >= min_level]
        return snapshot[-count:] if count else snapshot

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RingBufferHandler(logging.Handler):
    """Logging handler that appends records to a :class:`LogBuffer`."""

    def __init__(self, buffer: LogBuffer, level: int = logging.INFO) -> None:
        super().__init__(level)
        self._buffer = buffer

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._buffer.append({
                "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "message": self.format(record),
            })
        except Exception:
            self.handleError(record)


def get_buffer() -> LogBuffer:
    """Return (or create) the process-global log buffer."""
    global _buffer
    if _buffer is None:
        with _lock:
            if _buffer is None:
                _buffer = LogBuffer()
    return _buffer


def install_handler(level: int = logging.INFO) -> RingBufferHandler:
    """Attach the ring-buffer handler to the root logger once per process.

    Uvicorn's loggers are switched to propagate so their lines reach root.
    """
    root = logging.getLogger()
    for handler in root.handlers:
        if isinstance(handler, RingBufferHandler):
            return handler

    handler = RingBufferHandler(get_buffer(), level=level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    for name in ("uvicorn", "uvicorn.error"):
        logging.getLogger(name).propagate = True
    return handler


def get_logs(tail: int = 200, level: str | None = None) -> list[dict[str, str]]:
    return get_buffer().tail(tail, level)
