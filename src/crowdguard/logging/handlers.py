"""Log handlers for CrowdGuard."""

import sys
from collections import deque
from typing import Any, Dict, List

from .core import LogEntry, LogHandler, LogLevel


class ConsoleHandler(LogHandler):
    """Writes formatted records to a stream (stderr by default)."""

    def __init__(self, stream: Any = None):
        super().__init__()
        self.stream = stream

    def emit(self, entry: LogEntry) -> None:
        stream = self.stream or sys.stderr
        message = self.formatter.format(entry) if self.formatter else entry.to_json()
        with self._lock:
            stream.write(message + "\n")
            stream.flush()


class MemoryHandler(LogHandler):
    """Keeps the most recent records in memory."""

    def __init__(self, max_size: int = 1000):
        super().__init__()
        self.max_size = max_size
        self.entries: deque = deque(maxlen=max_size)

    def emit(self, entry: LogEntry) -> None:
        with self._lock:
            self.entries.append(entry)

    def get_logs(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [entry.to_dict() for entry in self.entries]

    def find(self, level: LogLevel = None, contains: str = None) -> List[LogEntry]:
        """Return stored entries matching a level and/or message substring."""
        with self._lock:
            return [
                entry
                for entry in self.entries
                if (level is None or entry.level == level)
                and (contains is None or contains in entry.message)
            ]

    def clear_logs(self) -> None:
        with self._lock:
            self.entries.clear()

    def close(self) -> None:
        self.clear_logs()
