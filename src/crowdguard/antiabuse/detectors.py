"""
Abuse detectors.

This module implements the two detection passes of the engine:
- velocity-based bot detection, evaluated incrementally per user from that
  user's sliding activity window and identity diversity;
- collusion detection, evaluated in batch over a snapshot of the
  co-voting graph.

Detectors are pure functions of the state handed to them; caching,
alerting and flagging users are the engine's job.
"""

from abc import ABC, abstractmethod
from typing import List

from .core import AntiAbuseConfig, BotDetectionResult, CollusionDetectionResult
from .graph import GraphSnapshot
from .window import SlidingWindow

# Bot likelihood blend
VELOCITY_WEIGHT = 0.4
GAP_WEIGHT = 0.4
SINGLE_DEVICE_WEIGHT = 0.3
SINGLE_IP_WEIGHT = 0.2
SINGLE_DEVICE_REASON_MIN_VOTES = 10  # mention single-device use only past this many votes

# Collusion score blend
DENSITY_WEIGHT = 0.5
STRENGTH_WEIGHT = 0.5
CO_VOTE_SATURATION = 20.0  # average co-votes per edge at which strength saturates


class AbuseDetector(ABC):
    """Abstract base class for abuse detectors."""

    def __init__(self, config: AntiAbuseConfig = None):
        self.config = config or AntiAbuseConfig()

    def update_config(self, config: AntiAbuseConfig) -> None:
        """Swap in a new (already validated) configuration."""
        self.config = config

    @abstractmethod
    def get_detector_name(self) -> str:
        """Get the name of this detector."""
        pass


class BotDetector(AbuseDetector):
    """Flags automation from voting velocity and inter-vote timing."""

    def evaluate(
        self,
        user_id: str,
        window: SlidingWindow,
        device_count: int = 0,
        ip_count: int = 0,
        total_votes: int = 0,
    ) -> BotDetectionResult:
        """Assess one user from their current activity window."""
        velocity = window.rate()
        avg_gap = window.avg_gap_ms()

        result = BotDetectionResult(
            user_id=user_id,
            voting_velocity=velocity,
            avg_inter_vote_gap_ms=avg_gap,
            device_diversity=device_count,
            ip_diversity=ip_count,
        )
        result.is_suspicious = self._exceeds_velocity(velocity) or self._gap_too_short(
            avg_gap
        )
        result.bot_likelihood = self.bot_likelihood(
            velocity, avg_gap, device_count, ip_count
        )
        result.reason = self._build_reason(result, total_votes)
        return result

    def bot_likelihood(
        self,
        velocity: float,
        avg_gap_ms: float,
        device_count: int,
        ip_count: int,
    ) -> float:
        """Weighted blend of the automation signals, clamped to [0, 1]."""
        velocity_term = min(1.0, velocity / (self.config.velocity_threshold * 2))
        gap_term = 0.0
        if self._gap_too_short(avg_gap_ms):
            gap_term = 1.0 - avg_gap_ms / self.config.gap_threshold_ms

        score = VELOCITY_WEIGHT * velocity_term + GAP_WEIGHT * gap_term
        if device_count == 1:
            score += SINGLE_DEVICE_WEIGHT
        if ip_count == 1:
            score += SINGLE_IP_WEIGHT

        return max(0.0, min(1.0, score))

    def should_alert(self, result: BotDetectionResult) -> bool:
        """Whether a result is strong enough to raise a bot alert."""
        return (
            result.is_suspicious
            and result.bot_likelihood > self.config.bot_likelihood_threshold
        )

    def _exceeds_velocity(self, velocity: float) -> bool:
        return velocity > self.config.velocity_threshold

    def _gap_too_short(self, avg_gap_ms: float) -> bool:
        return 0 < avg_gap_ms < self.config.gap_threshold_ms

    def _build_reason(self, result: BotDetectionResult, total_votes: int) -> str:
        reasons = []
        if self._exceeds_velocity(result.voting_velocity):
            reasons.append(f"High velocity ({result.voting_velocity:.1f} votes/min).")
        if self._gap_too_short(result.avg_inter_vote_gap_ms):
            reasons.append(
                f"Low inter-vote gap ({result.avg_inter_vote_gap_ms:.0f}ms)."
            )
        if (
            result.device_diversity == 1
            and total_votes > SINGLE_DEVICE_REASON_MIN_VOTES
        ):
            reasons.append("Single device used.")
        return " ".join(reasons)

    def get_detector_name(self) -> str:
        return "bot_detector"


class CollusionDetector(AbuseDetector):
    """Scores groups of users bound together by repeated co-voting."""

    def analyze(self, snapshot: GraphSnapshot) -> List[CollusionDetectionResult]:
        """Score every community found under ``min_co_votes``."""
        return [
            self.score_group(snapshot, group)
            for group in snapshot.detect_communities(self.config.min_co_votes)
        ]

    def score_group(
        self, snapshot: GraphSnapshot, group: List[str]
    ) -> CollusionDetectionResult:
        total_co_votes = 0
        realized_edges = 0
        for i, user_a in enumerate(group):
            for user_b in group[i + 1:]:
                co_votes = snapshot.co_vote_count(user_a, user_b)
                if co_votes > 0:
                    total_co_votes += co_votes
                    realized_edges += 1

        size = len(group)
        possible_edges = size * (size - 1) // 2
        density = realized_edges / possible_edges if possible_edges else 0.0
        avg_co_votes = total_co_votes / realized_edges if realized_edges else 0.0
        score = min(
            1.0,
            DENSITY_WEIGHT * density
            + STRENGTH_WEIGHT * min(1.0, avg_co_votes / CO_VOTE_SATURATION),
        )

        return CollusionDetectionResult(
            user_group=list(group),
            co_vote_count=total_co_votes,
            realized_edges=realized_edges,
            density=density,
            avg_co_votes=avg_co_votes,
            collusion_score=score,
            is_suspicious=score > self.config.collusion_threshold,
            description=(
                f"Group of {size} users with {total_co_votes} co-votes "
                f"(density: {density:.2f})"
            ),
        )

    def get_detector_name(self) -> str:
        return "collusion_detector"
