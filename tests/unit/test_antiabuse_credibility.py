"""
Unit tests for credibility aggregation.

This module tests the component heuristics, the fixed trust weights and the
aggregate trust score.
"""

import math

import pytest

from crowdguard.antiabuse.core import BotDetectionResult, CollusionDetectionResult
from crowdguard.antiabuse.credibility import (
    TRUST_WEIGHTS,
    CredibilityAggregator,
    account_age_score,
    device_diversity_score,
    max_collusion_score,
)
from crowdguard.errors import ConfigurationError


class TestComponentScores:
    """Test the individual component heuristics."""

    @pytest.mark.parametrize(
        "votes,expected",
        [(0, 0.0), (1, 0.02), (25, 0.5), (50, 1.0), (500, 1.0)],
    )
    def test_account_age_score(self, votes, expected):
        """Test the activity-based account age proxy."""
        assert account_age_score(votes) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "devices,expected",
        [(0, 0.5), (1, 0.8), (2, 0.6), (3, 0.3), (10, 0.3)],
    )
    def test_device_diversity_score(self, devices, expected):
        """Test the device diversity heuristic."""
        assert device_diversity_score(devices) == expected

    def test_max_collusion_score(self):
        """Test that the highest score among a user's groups is used."""
        groups = [
            CollusionDetectionResult(user_group=["a", "b"], collusion_score=0.4),
            CollusionDetectionResult(user_group=["a", "c"], collusion_score=0.9),
            CollusionDetectionResult(user_group=["d", "e"], collusion_score=1.0),
        ]

        assert max_collusion_score("a", groups) == 0.9
        assert max_collusion_score("d", groups) == 1.0
        assert max_collusion_score("z", groups) == 0.0


class TestCredibilityAggregator:
    """Test CredibilityAggregator class."""

    def test_weights_sum_to_one(self):
        """Test the fixed weight table."""
        assert math.isclose(sum(TRUST_WEIGHTS.values()), 1.0)

    def test_fresh_user(self):
        """Test a user with one vote and no detector findings."""
        aggregator = CredibilityAggregator()

        score = aggregator.compute(
            "alice",
            BotDetectionResult(user_id="alice"),
            [],
            device_count=0,
            total_votes=1,
        )

        expected = (
            0.20 * 0.02
            + 0.15 * 0.5
            + 0.15 * 0.5
            + 0.10 * 0.5
            + 0.15 * 1.0
            + 0.15 * 1.0
            + 0.05 * 0.5
            + 0.05 * 1.0
        )
        assert score.trust_score == pytest.approx(expected)
        assert score.account_age_score == pytest.approx(0.02)
        assert score.report_score == 1.0

    def test_bot_and_collusion_lower_trust(self):
        """Test that detector findings reduce trust."""
        aggregator = CredibilityAggregator()
        clean = aggregator.compute(
            "a", BotDetectionResult(user_id="a"), [], device_count=1, total_votes=50
        )
        flagged = aggregator.compute(
            "a",
            BotDetectionResult(user_id="a", bot_likelihood=1.0),
            [CollusionDetectionResult(user_group=["a", "b"], collusion_score=1.0)],
            device_count=1,
            total_votes=50,
        )

        assert clean.trust_score - flagged.trust_score == pytest.approx(0.30)
        assert flagged.collusion_score == 1.0
        assert flagged.bot_likelihood == 1.0

    def test_missing_bot_result(self):
        """Test that a missing bot result counts as no bot signal."""
        aggregator = CredibilityAggregator()

        score = aggregator.compute("a", None, [], device_count=0, total_votes=0)

        assert score.bot_likelihood == 0.0

    def test_contributions_add_up_to_trust(self):
        """Test that weighted contributions sum to the trust score."""
        aggregator = CredibilityAggregator()
        score = aggregator.compute(
            "a",
            BotDetectionResult(user_id="a", bot_likelihood=0.3),
            [CollusionDetectionResult(user_group=["a"], collusion_score=0.2)],
            device_count=2,
            total_votes=10,
        )

        contributions = aggregator.contributions(score)

        assert set(contributions) == set(TRUST_WEIGHTS)
        assert sum(contributions.values()) == pytest.approx(score.trust_score)

    def test_best_case_trust(self):
        """Test the highest achievable trust with neutral placeholders."""
        aggregator = CredibilityAggregator()

        score = aggregator.compute(
            "a", BotDetectionResult(user_id="a"), [], device_count=1, total_votes=100
        )

        assert score.trust_score == pytest.approx(
            0.20 + 0.15 * 0.8 + 0.15 * 0.5 + 0.10 * 0.5 + 0.15 + 0.15 + 0.05 * 0.5 + 0.05
        )

    def test_custom_weights_must_sum_to_one(self):
        """Test that unbalanced weights are rejected."""
        weights = dict(TRUST_WEIGHTS, account_age=0.5)

        with pytest.raises(ConfigurationError):
            CredibilityAggregator(weights)

    def test_custom_weights_must_be_complete(self):
        """Test that weights must name every component."""
        weights = dict(TRUST_WEIGHTS)
        weights.pop("report")
        weights["consistency"] += 0.05

        with pytest.raises(ConfigurationError):
            CredibilityAggregator(weights)
