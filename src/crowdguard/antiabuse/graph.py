"""
Co-occurrence graph over voters.

Undirected weighted graph where the weight of (a, b) is the number of
proposals both users voted on. Community extraction is a connectivity
partition under an edge-weight threshold, not a density-optimising
clustering: a single strong bridge user merges two cliques into one
community, and a dense group whose edges sit below the threshold is not
reported at all. Alerting downstream depends on exactly this behaviour.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Dict, List, Set

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GraphSnapshot:
    """Point-in-time copy of the adjacency, safe to traverse without locks."""

    adjacency: Dict[str, Dict[str, int]]

    def co_vote_count(self, user_a: str, user_b: str) -> int:
        return self.adjacency.get(user_a, {}).get(user_b, 0)

    def detect_communities(self, min_co_votes: int = 5) -> List[List[str]]:
        """Connected components of size >= 2 using edges with weight >= ``min_co_votes``.

        Users are visited in sorted order and neighbours are expanded in
        sorted order, so the same graph always yields the same communities
        with members in the same order.
        """
        communities: List[List[str]] = []
        visited: Set[str] = set()

        for start in sorted(self.adjacency):
            if start in visited:
                continue

            community = []
            queue = deque([start])
            visited.add(start)

            while queue:
                current = queue.popleft()
                community.append(current)

                for neighbor in sorted(self.adjacency.get(current, {})):
                    if neighbor in visited:
                        continue
                    if self.adjacency[current][neighbor] >= min_co_votes:
                        visited.add(neighbor)
                        queue.append(neighbor)

            if len(community) >= 2:
                communities.append(community)

        return communities


class CoVotingGraph:
    """Thread-safe co-voting graph.

    All mutations go through a single lock, so concurrent ingestion is
    serialised at the graph. Readers that need a consistent whole-graph view
    take a ``snapshot()``.
    """

    def __init__(self):
        self._adjacency: Dict[str, Dict[str, int]] = {}
        self._proposal_voters: Dict[str, Set[str]] = {}
        self._lock = threading.RLock()

    def add_vote(self, user_id: str, proposal_id: str) -> bool:
        """Register a vote and bump co-vote weights with earlier voters.

        Returns ``False`` without touching any weight when the user is
        already a recorded voter for the proposal.
        """
        with self._lock:
            voters = self._proposal_voters.setdefault(proposal_id, set())
            if user_id in voters:
                logger.debug(
                    "Duplicate vote by %s on %s ignored by co-voting graph",
                    user_id,
                    proposal_id,
                )
                return False

            for other in voters:
                self._increment(user_id, other)
                self._increment(other, user_id)

            voters.add(user_id)
            self._adjacency.setdefault(user_id, {})
            return True

    def _increment(self, user_a: str, user_b: str) -> None:
        edges = self._adjacency.setdefault(user_a, {})
        edges[user_b] = edges.get(user_b, 0) + 1

    def get_co_vote_count(self, user_a: str, user_b: str) -> int:
        with self._lock:
            return self._adjacency.get(user_a, {}).get(user_b, 0)

    def get_neighbors(self, user_id: str) -> List[str]:
        """Users sharing at least one proposal with ``user_id``, sorted."""
        with self._lock:
            return sorted(self._adjacency.get(user_id, {}))

    def get_edge_count(self) -> int:
        """Number of undirected edges."""
        with self._lock:
            return sum(len(edges) for edges in self._adjacency.values()) // 2

    def get_voters(self, proposal_id: str) -> List[str]:
        with self._lock:
            return sorted(self._proposal_voters.get(proposal_id, ()))

    def user_count(self) -> int:
        with self._lock:
            return len(self._adjacency)

    def snapshot(self) -> GraphSnapshot:
        with self._lock:
            return GraphSnapshot(
                adjacency={user: dict(edges) for user, edges in self._adjacency.items()}
            )

    def detect_communities(self, min_co_votes: int = 5) -> List[List[str]]:
        """See ``GraphSnapshot.detect_communities``; runs on a fresh snapshot."""
        return self.snapshot().detect_communities(min_co_votes)

    def remove_user(self, user_id: str) -> None:
        """Forget a user: drop their edges and their place in every voter set."""
        with self._lock:
            for other in self._adjacency.pop(user_id, {}):
                edges = self._adjacency.get(other)
                if edges is not None:
                    edges.pop(user_id, None)

            for proposal_id in list(self._proposal_voters):
                voters = self._proposal_voters[proposal_id]
                voters.discard(user_id)
                if not voters:
                    del self._proposal_voters[proposal_id]

    def clear(self) -> None:
        with self._lock:
            self._adjacency.clear()
            self._proposal_voters.clear()
