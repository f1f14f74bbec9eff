"""
Per-user state records.

Each user owns one ``UserState``: activity window, vote history, identity
tokens and cached detector output. A record is only mutated while its own
lock is held, which serialises events for the same user while events for
different users proceed independently.
"""

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from .core import BotDetectionResult, UserCredibilityScore, VoteEvent
from .window import SlidingWindow


@dataclass
class UserState:
    """Everything the engine knows about one user."""

    user_id: str
    window: SlidingWindow
    history: List[VoteEvent] = field(default_factory=list)
    seen_event_ids: Set[str] = field(default_factory=set)  # lifetime, survives pruning
    ip_hashes: Set[str] = field(default_factory=set)
    device_hashes: Set[str] = field(default_factory=set)
    total_votes: int = 0

    bot_result: Optional[BotDetectionResult] = None
    credibility: Optional[UserCredibilityScore] = None
    credibility_dirty: bool = False

    suspicious: bool = False
    suspicion_reasons: List[str] = field(default_factory=list)

    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def prune_history(self, retention_seconds: Optional[float]) -> int:
        """Drop history older than ``retention_seconds`` before the newest event.

        ``seen_event_ids`` is left intact so replays of pruned events are still
        recognised as duplicates.
        """
        if retention_seconds is None or not self.history:
            return 0
        newest = max(event.timestamp for event in self.history)
        cutoff = newest - retention_seconds
        kept = [event for event in self.history if event.timestamp >= cutoff]
        dropped = len(self.history) - len(kept)
        if dropped:
            self.history = kept
        return dropped

    def mark_suspicious(self, reason: str) -> None:
        self.suspicious = True
        if reason and reason not in self.suspicion_reasons:
            self.suspicion_reasons.append(reason)


class UserStateStore:
    """Keyed store of ``UserState`` records."""

    def __init__(self, window_seconds: float = 60.0):
        self.window_seconds = window_seconds
        self._states: Dict[str, UserState] = {}
        self._lock = threading.RLock()

    def get(self, user_id: str) -> Optional[UserState]:
        with self._lock:
            return self._states.get(user_id)

    def get_or_create(self, user_id: str) -> UserState:
        with self._lock:
            state = self._states.get(user_id)
            if state is None:
                state = UserState(
                    user_id=user_id, window=SlidingWindow(self.window_seconds)
                )
                self._states[user_id] = state
            return state

    def remove(self, user_id: str) -> Optional[UserState]:
        with self._lock:
            return self._states.pop(user_id, None)

    def user_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._states)

    def states(self) -> List[UserState]:
        with self._lock:
            return [self._states[user_id] for user_id in sorted(self._states)]

    def clear(self) -> None:
        with self._lock:
            self._states.clear()

    def __contains__(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._states

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)
