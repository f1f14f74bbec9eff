"""
Credibility aggregation.

Combines detector output with auxiliary account signals into one trust
score per user. The weights are fixed and sum to 1.0; inverted signals
(bot likelihood, collusion) contribute ``1 - value``.
"""

import math
from typing import Dict, Iterable, Optional

from ..errors.exceptions import ConfigurationError
from .core import BotDetectionResult, CollusionDetectionResult, UserCredibilityScore

DEFAULT_TRUST_SCORE = 0.5

TRUST_WEIGHTS: Dict[str, float] = {
    "account_age": 0.20,
    "device_diversity": 0.15,
    "majority_agreement": 0.15,
    "verification": 0.10,
    "bot_likelihood": 0.15,
    "collusion": 0.15,
    "consistency": 0.05,
    "report": 0.05,
}

INVERTED_COMPONENTS = frozenset({"bot_likelihood", "collusion"})

ACCOUNT_AGE_SATURATION_VOTES = 50

# Placeholders until the verification, reporting and consensus systems feed in.
NEUTRAL_MAJORITY_AGREEMENT = 0.5
NEUTRAL_VERIFICATION = 0.5
NEUTRAL_CONSISTENCY = 0.5
NEUTRAL_REPORT_SCORE = 1.0  # 1.0 means no reports on record


def account_age_score(total_votes: int) -> float:
    """Activity-based proxy for account age, saturating at 50 votes."""
    return min(1.0, max(0, total_votes) / ACCOUNT_AGE_SATURATION_VOTES)


def device_diversity_score(device_count: int) -> float:
    """Fewer distinct devices reads as a more stable, trustworthy account."""
    if device_count <= 0:
        return 0.5
    if device_count == 1:
        return 0.8
    if device_count == 2:
        return 0.6
    return 0.3


def max_collusion_score(
    user_id: str, groups: Iterable[CollusionDetectionResult]
) -> float:
    """Highest collusion score among the groups containing ``user_id``."""
    return max(
        (group.collusion_score for group in groups if user_id in group.user_group),
        default=0.0,
    )


class CredibilityAggregator:
    """Builds ``UserCredibilityScore`` records from cached engine state."""

    def __init__(self, weights: Optional[Dict[str, float]] = None):
        self.weights = dict(weights or TRUST_WEIGHTS)

        if set(self.weights) != set(TRUST_WEIGHTS):
            raise ConfigurationError(
                "Trust weights must cover exactly: " + ", ".join(sorted(TRUST_WEIGHTS)),
                config_key="weights",
            )
        if any(weight < 0 for weight in self.weights.values()):
            raise ConfigurationError("Trust weights cannot be negative", config_key="weights")
        if not math.isclose(sum(self.weights.values()), 1.0, abs_tol=1e-9):
            raise ConfigurationError(
                "Trust weights must sum to 1.0",
                config_key="weights",
                config_value=sum(self.weights.values()),
            )

    def contributions(self, score: UserCredibilityScore) -> Dict[str, float]:
        """Each component's weighted share of the trust score."""
        shares = {}
        for name, value in score.components().items():
            if name in INVERTED_COMPONENTS:
                value = 1.0 - value
            shares[name] = self.weights[name] * value
        return shares

    def compute(
        self,
        user_id: str,
        bot_result: Optional[BotDetectionResult],
        collusion_groups: Iterable[CollusionDetectionResult],
        device_count: int,
        total_votes: int,
    ) -> UserCredibilityScore:
        score = UserCredibilityScore(
            user_id=user_id,
            account_age_score=account_age_score(total_votes),
            device_diversity_score=device_diversity_score(device_count),
            majority_agreement_score=NEUTRAL_MAJORITY_AGREEMENT,
            verification_score=NEUTRAL_VERIFICATION,
            bot_likelihood=bot_result.bot_likelihood if bot_result else 0.0,
            collusion_score=max_collusion_score(user_id, collusion_groups),
            consistency_score=NEUTRAL_CONSISTENCY,
            report_score=NEUTRAL_REPORT_SCORE,
        )

        trust = sum(self.contributions(score).values())
        score.trust_score = max(0.0, min(1.0, trust))
        return score
