"""
Sliding activity window.

Time-bounded buffer of one user's recent vote timestamps, used to derive the
voting velocity and the average gap between consecutive votes.
"""

import bisect
from typing import List, Optional

import numpy as np


class SlidingWindow:
    """Timestamps (seconds) observed within the last ``duration`` seconds.

    The window's notion of "now" is the newest timestamp seen so far. Every
    insert evicts entries strictly older than ``now - duration``; a timestamp
    that is already outside the window when it arrives is not stored.

    The buffer is kept sorted, so late arrivals are placed in order and
    eviction only ever trims the front.
    """

    def __init__(self, duration: float = 60.0):
        if duration <= 0:
            raise ValueError("Window duration must be positive")
        self.duration = float(duration)
        self._timestamps: List[float] = []
        self._latest: Optional[float] = None

    def add_event(self, timestamp: float) -> None:
        """Record an event and evict everything outside the window."""
        timestamp = float(timestamp)
        if self._latest is None or timestamp > self._latest:
            self._latest = timestamp

        if timestamp >= self._cutoff():
            bisect.insort(self._timestamps, timestamp)
        self._evict()

    def cleanup(self, current_time: float) -> None:
        """Evict entries older than ``current_time - duration``."""
        if self._latest is None or current_time > self._latest:
            self._latest = float(current_time)
        self._evict()

    def _cutoff(self) -> float:
        return self._latest - self.duration

    def _evict(self) -> None:
        stale = bisect.bisect_left(self._timestamps, self._cutoff())
        if stale:
            del self._timestamps[:stale]

    @property
    def latest(self) -> Optional[float]:
        return self._latest

    def event_count(self) -> int:
        return len(self._timestamps)

    def timestamps(self) -> List[float]:
        """Stored timestamps, oldest first."""
        return list(self._timestamps)

    def rate(self) -> float:
        """Events per minute over the window duration."""
        if not self._timestamps:
            return 0.0
        return len(self._timestamps) / self.duration * 60.0

    def avg_gap_ms(self) -> float:
        """Mean gap in milliseconds between consecutive events, 0 with fewer than two."""
        if len(self._timestamps) < 2:
            return 0.0
        return float(np.diff(self._timestamps).mean() * 1000.0)

    def clear(self) -> None:
        self._timestamps.clear()
        self._latest = None

    def __len__(self) -> int:
        return len(self._timestamps)
