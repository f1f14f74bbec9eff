"""
Core anti-abuse types and configuration.

This module defines the value types that flow through the anti-abuse engine
(vote events and the per-user and per-group detection results) together with
the engine configuration and its validation rules.
"""

import math
import time
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, Dict, List, Optional
from uuid import uuid4

from ..errors.exceptions import ConfigurationError, ValidationError


@dataclass(frozen=True)
class VoteEvent:
    """An accepted vote, as delivered by the voting system.

    Timestamps are seconds since the epoch. IP and device tokens are opaque
    hashes; the engine only compares them for equality.
    """

    user_id: str
    proposal_id: str
    timestamp: float = field(default_factory=time.time)
    event_id: str = field(default_factory=lambda: f"vote_{uuid4().hex}")
    ip_hash: Optional[str] = None
    device_hash: Optional[str] = None

    def __post_init__(self):
        """Validate vote event after initialization."""
        if not self.user_id:
            raise ValidationError("Vote event must name a user", field="user_id")

        if not self.proposal_id:
            raise ValidationError(
                "Vote event must name a proposal", field="proposal_id"
            )

        if not isinstance(self.timestamp, (int, float)) or not math.isfinite(
            self.timestamp
        ):
            raise ValidationError(
                "Vote timestamp must be a finite number",
                field="timestamp",
                value=self.timestamp,
            )

        if self.timestamp < 0:
            raise ValidationError(
                "Vote timestamp cannot be negative",
                field="timestamp",
                value=self.timestamp,
                expected=">= 0",
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert vote event to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VoteEvent":
        """Create vote event from dictionary."""
        kwargs = {
            "user_id": data["user_id"],
            "proposal_id": data["proposal_id"],
            "timestamp": data.get("timestamp", time.time()),
            "ip_hash": data.get("ip_hash") or None,
            "device_hash": data.get("device_hash") or None,
        }
        if data.get("event_id"):
            kwargs["event_id"] = data["event_id"]
        return cls(**kwargs)


@dataclass
class BotDetectionResult:
    """Velocity-based automation assessment for one user."""

    user_id: str
    bot_likelihood: float = 0.0
    voting_velocity: float = 0.0  # votes per minute
    avg_inter_vote_gap_ms: float = 0.0
    device_diversity: int = 0
    ip_diversity: int = 0
    is_suspicious: bool = False
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary."""
        return asdict(self)


@dataclass
class CollusionDetectionResult:
    """A group of users connected by strong co-voting edges."""

    user_group: List[str]
    co_vote_count: int = 0
    realized_edges: int = 0
    density: float = 0.0
    avg_co_votes: float = 0.0
    collusion_score: float = 0.0
    is_suspicious: bool = False
    description: str = ""

    @property
    def size(self) -> int:
        return len(self.user_group)

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary."""
        data = asdict(self)
        data["size"] = self.size
        return data


@dataclass
class UserCredibilityScore:
    """Component scores and aggregate trust for one user."""

    user_id: str
    trust_score: float = 0.5

    account_age_score: float = 0.0
    device_diversity_score: float = 0.5
    majority_agreement_score: float = 0.5
    verification_score: float = 0.5
    bot_likelihood: float = 0.0
    collusion_score: float = 0.0
    consistency_score: float = 0.5
    report_score: float = 1.0

    computed_at: float = field(default_factory=time.time)

    def components(self) -> Dict[str, float]:
        """Component scores keyed by name."""
        return {
            "account_age": self.account_age_score,
            "device_diversity": self.device_diversity_score,
            "majority_agreement": self.majority_agreement_score,
            "verification": self.verification_score,
            "bot_likelihood": self.bot_likelihood,
            "collusion": self.collusion_score,
            "consistency": self.consistency_score,
            "report": self.report_score,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert score to dictionary."""
        return asdict(self)


@dataclass
class AntiAbuseConfig:
    """Configuration for the anti-abuse engine."""

    # Bot detection
    velocity_threshold: float = 30.0  # votes per minute
    gap_threshold_ms: float = 200.0
    window_seconds: float = 60.0
    bot_likelihood_threshold: float = 0.7

    # Collusion detection
    min_co_votes: int = 5
    collusion_threshold: float = 0.7

    # Retention and scheduling
    history_retention_seconds: Optional[float] = None  # None keeps everything
    min_scan_interval_seconds: float = 0.0

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.validate()

    def validate(self) -> None:
        """Validate configuration."""
        for key in ("velocity_threshold", "gap_threshold_ms", "window_seconds"):
            value = getattr(self, key)
            if not _is_number(value) or value <= 0:
                raise ConfigurationError(
                    f"{key} must be positive", config_key=key, config_value=value
                )

        for key in ("collusion_threshold", "bot_likelihood_threshold"):
            value = getattr(self, key)
            if not _is_number(value) or not 0 < value <= 1:
                raise ConfigurationError(
                    f"{key} must be in (0, 1]", config_key=key, config_value=value
                )

        if (
            isinstance(self.min_co_votes, bool)
            or not isinstance(self.min_co_votes, int)
            or self.min_co_votes < 1
        ):
            raise ConfigurationError(
                "min_co_votes must be a positive integer",
                config_key="min_co_votes",
                config_value=self.min_co_votes,
            )

        if self.history_retention_seconds is not None and (
            not _is_number(self.history_retention_seconds)
            or self.history_retention_seconds <= 0
        ):
            raise ConfigurationError(
                "history_retention_seconds must be positive when set",
                config_key="history_retention_seconds",
                config_value=self.history_retention_seconds,
            )

        if (
            not _is_number(self.min_scan_interval_seconds)
            or self.min_scan_interval_seconds < 0
        ):
            raise ConfigurationError(
                "min_scan_interval_seconds cannot be negative",
                config_key="min_scan_interval_seconds",
                config_value=self.min_scan_interval_seconds,
            )

    def with_thresholds(
        self,
        velocity_threshold: float,
        gap_threshold_ms: float,
        collusion_threshold: float,
        bot_likelihood_threshold: float,
    ) -> "AntiAbuseConfig":
        """Return a validated copy with new detection thresholds."""
        return replace(
            self,
            velocity_threshold=velocity_threshold,
            gap_threshold_ms=gap_threshold_ms,
            collusion_threshold=collusion_threshold,
            bot_likelihood_threshold=bot_likelihood_threshold,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AntiAbuseConfig":
        """Create configuration from dictionary, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration keys: {', '.join(unknown)}",
                config_key=unknown[0],
            )
        return cls(**data)


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )
