"""
Anti-abuse detection for crowd-sourced voting.

This package ingests a stream of vote events and provides:
- Velocity-based bot detection over per-user sliding windows
- Co-voting graph construction and threshold community extraction
- Collusion scoring for densely connected voter groups
- Aggregate per-user trust scores for downstream ranking
- Threat alerts with an open/resolved lifecycle
"""

from .alerts import AlertManager, AlertType, ThreatAlert
from .core import (
    AntiAbuseConfig,
    BotDetectionResult,
    CollusionDetectionResult,
    UserCredibilityScore,
    VoteEvent,
)
from .credibility import DEFAULT_TRUST_SCORE, TRUST_WEIGHTS, CredibilityAggregator
from .detectors import AbuseDetector, BotDetector, CollusionDetector
from .engine import AntiAbuseEngine
from .graph import CoVotingGraph, GraphSnapshot
from .report import SecurityScanReport
from .state import UserState, UserStateStore
from .window import SlidingWindow

__all__ = [
    # Engine
    "AntiAbuseEngine",
    "AntiAbuseConfig",
    "SecurityScanReport",

    # Events and results
    "VoteEvent",
    "BotDetectionResult",
    "CollusionDetectionResult",
    "UserCredibilityScore",

    # Building blocks
    "SlidingWindow",
    "CoVotingGraph",
    "GraphSnapshot",
    "UserState",
    "UserStateStore",

    # Detection and scoring
    "AbuseDetector",
    "BotDetector",
    "CollusionDetector",
    "CredibilityAggregator",
    "DEFAULT_TRUST_SCORE",
    "TRUST_WEIGHTS",

    # Alerts
    "AlertManager",
    "AlertType",
    "ThreatAlert",
]
