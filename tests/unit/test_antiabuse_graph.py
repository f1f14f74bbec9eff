"""
Unit tests for the co-voting graph.

This module tests co-vote weighting, idempotent re-votes, neighbour and edge
queries, snapshots, user removal and threshold community extraction.
"""

import pytest

from crowdguard.antiabuse.graph import CoVotingGraph, GraphSnapshot


def _vote_all(graph, users, proposals):
    for proposal in proposals:
        for user in users:
            graph.add_vote(user, proposal)


class TestCoVotingGraph:
    """Test CoVotingGraph class."""

    def test_graph_creation(self):
        """Test creating an empty graph."""
        graph = CoVotingGraph()

        assert graph.get_edge_count() == 0
        assert graph.get_neighbors("alice") == []
        assert graph.get_co_vote_count("alice", "bob") == 0

    def test_first_voter_creates_no_edges(self):
        """Test that a lone voter has no co-votes."""
        graph = CoVotingGraph()

        assert graph.add_vote("alice", "p1") is True
        assert graph.get_edge_count() == 0

    def test_co_vote_is_symmetric(self):
        """Test that co-votes are counted in both directions."""
        graph = CoVotingGraph()
        graph.add_vote("alice", "p1")
        graph.add_vote("bob", "p1")

        assert graph.get_co_vote_count("alice", "bob") == 1
        assert graph.get_co_vote_count("bob", "alice") == 1
        assert graph.get_edge_count() == 1

    def test_co_votes_accumulate_across_proposals(self):
        """Test that each shared proposal adds one co-vote."""
        graph = CoVotingGraph()
        _vote_all(graph, ["alice", "bob"], ["p1", "p2", "p3"])

        assert graph.get_co_vote_count("alice", "bob") == 3

    def test_duplicate_vote_is_ignored(self):
        """Test that re-registering a voter does not change weights."""
        graph = CoVotingGraph()
        graph.add_vote("alice", "p1")
        graph.add_vote("bob", "p1")

        assert graph.add_vote("bob", "p1") is False
        assert graph.add_vote("alice", "p1") is False
        assert graph.get_co_vote_count("alice", "bob") == 1

    def test_new_voter_links_to_all_previous_voters(self):
        """Test that a new voter is linked to every earlier voter."""
        graph = CoVotingGraph()
        _vote_all(graph, ["alice", "bob", "carol"], ["p1"])

        assert graph.get_neighbors("carol") == ["alice", "bob"]
        assert graph.get_edge_count() == 3
        assert graph.get_voters("p1") == ["alice", "bob", "carol"]

    def test_snapshot_is_isolated(self):
        """Test that later writes do not leak into an earlier snapshot."""
        graph = CoVotingGraph()
        _vote_all(graph, ["alice", "bob"], ["p1"])
        snapshot = graph.snapshot()

        graph.add_vote("alice", "p2")
        graph.add_vote("bob", "p2")

        assert isinstance(snapshot, GraphSnapshot)
        assert snapshot.co_vote_count("alice", "bob") == 1
        assert graph.get_co_vote_count("alice", "bob") == 2

    def test_remove_user(self):
        """Test removing a user's edges and voter-set memberships."""
        graph = CoVotingGraph()
        _vote_all(graph, ["alice", "bob", "carol"], ["p1"])

        graph.remove_user("bob")

        assert graph.get_co_vote_count("alice", "bob") == 0
        assert graph.get_neighbors("alice") == ["carol"]
        assert graph.get_voters("p1") == ["alice", "carol"]
        assert graph.get_edge_count() == 1

        # Bob voting again starts from a clean slate.
        graph.add_vote("bob", "p1")
        assert graph.get_co_vote_count("alice", "bob") == 1

    def test_clear(self):
        """Test clearing the graph."""
        graph = CoVotingGraph()
        _vote_all(graph, ["alice", "bob"], ["p1"])
        graph.clear()

        assert graph.get_edge_count() == 0
        assert graph.user_count() == 0


class TestCommunityDetection:
    """Test threshold community extraction."""

    def test_no_communities_below_threshold(self):
        """Test that weak edges are not followed."""
        graph = CoVotingGraph()
        _vote_all(graph, ["alice", "bob"], ["p1", "p2"])

        assert graph.detect_communities(min_co_votes=5) == []

    def test_single_clique(self):
        """Test one strongly connected group."""
        graph = CoVotingGraph()
        _vote_all(graph, ["carol", "alice", "bob"], [f"p{i}" for i in range(10)])

        communities = graph.detect_communities(min_co_votes=5)

        assert communities == [["alice", "bob", "carol"]]

    def test_separate_cliques(self):
        """Test two unconnected groups are reported separately and in order."""
        graph = CoVotingGraph()
        _vote_all(graph, ["dave", "erin"], [f"q{i}" for i in range(6)])
        _vote_all(graph, ["alice", "bob"], [f"p{i}" for i in range(6)])

        communities = graph.detect_communities(min_co_votes=5)

        assert communities == [["alice", "bob"], ["dave", "erin"]]

    def test_bridge_user_merges_cliques(self):
        """Test that one strong bridge merges two groups into one community."""
        graph = CoVotingGraph()
        _vote_all(graph, ["alice", "bob"], [f"p{i}" for i in range(5)])
        _vote_all(graph, ["bob", "carol"], [f"q{i}" for i in range(5)])

        communities = graph.detect_communities(min_co_votes=5)

        assert communities == [["alice", "bob", "carol"]]
        assert graph.get_co_vote_count("alice", "carol") == 0

    def test_threshold_splits_community(self):
        """Test that raising the threshold splits a weakly bridged group."""
        graph = CoVotingGraph()
        _vote_all(graph, ["alice", "bob"], [f"p{i}" for i in range(8)])
        _vote_all(graph, ["bob", "carol"], [f"q{i}" for i in range(5)])

        assert graph.detect_communities(min_co_votes=5) == [["alice", "bob", "carol"]]
        assert graph.detect_communities(min_co_votes=6) == [["alice", "bob"]]

    def test_detection_is_deterministic(self):
        """Test that insertion order does not change the result."""
        users = ["zed", "amy", "kim", "bob"]
        proposals = [f"p{i}" for i in range(6)]

        first = CoVotingGraph()
        _vote_all(first, users, proposals)
        second = CoVotingGraph()
        _vote_all(second, list(reversed(users)), list(reversed(proposals)))

        assert first.detect_communities(5) == second.detect_communities(5)
        assert first.detect_communities(5) == [["amy", "bob", "kim", "zed"]]

    @pytest.mark.parametrize("threshold", [1, 3, 10])
    def test_snapshot_detection_matches_graph(self, threshold):
        """Test that snapshot and live detection agree."""
        graph = CoVotingGraph()
        _vote_all(graph, ["a", "b", "c"], [f"p{i}" for i in range(4)])

        assert graph.snapshot().detect_communities(threshold) == graph.detect_communities(
            threshold
        )
