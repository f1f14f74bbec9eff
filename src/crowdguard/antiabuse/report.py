"""Security scan report."""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .alerts import ThreatAlert
from .core import BotDetectionResult, CollusionDetectionResult

TOP_BOTS_SHOWN = 5
TOP_GROUPS_SHOWN = 3


@dataclass
class SecurityScanReport:
    """Outcome of a full bot + collusion + credibility pass."""

    suspicious_bots: List[BotDetectionResult]
    collusion_groups: List[CollusionDetectionResult]
    unresolved_alerts: List[ThreatAlert]
    users_scored: int
    duration_seconds: float = 0.0
    timestamp: float = field(default_factory=time.time)

    @property
    def suspicious_groups(self) -> List[CollusionDetectionResult]:
        return [group for group in self.collusion_groups if group.is_suspicious]

    def to_dict(self) -> Dict[str, Any]:
        """Convert report to dictionary."""
        return {
            "timestamp": self.timestamp,
            "duration_seconds": self.duration_seconds,
            "users_scored": self.users_scored,
            "suspicious_bots": [bot.to_dict() for bot in self.suspicious_bots],
            "collusion_groups": [group.to_dict() for group in self.collusion_groups],
            "suspicious_group_count": len(self.suspicious_groups),
            "unresolved_alerts": [alert.to_dict() for alert in self.unresolved_alerts],
        }

    def format(self) -> str:
        """Plain-text summary for operators."""
        lines = ["=== Security Scan Report ===", ""]

        lines.append("Bot Detection:")
        lines.append(f"  Suspicious users: {len(self.suspicious_bots)}")
        for bot in self.suspicious_bots[:TOP_BOTS_SHOWN]:
            lines.append(
                f"  - {bot.user_id} (likelihood: {bot.bot_likelihood:.2f}, "
                f"velocity: {bot.voting_velocity:.2f} votes/min)"
            )
        lines.append("")

        lines.append("Collusion Detection:")
        lines.append(
            f"  Groups: {len(self.collusion_groups)} "
            f"({len(self.suspicious_groups)} suspicious)"
        )
        for group in self.collusion_groups[:TOP_GROUPS_SHOWN]:
            lines.append(
                f"  - Group of {group.size} users (score: {group.collusion_score:.2f}, "
                f"co-votes: {group.co_vote_count})"
            )
        lines.append("")

        lines.append(f"Users scored: {self.users_scored}")
        lines.append(f"Active Threat Alerts: {len(self.unresolved_alerts)}")
        return "\n".join(lines)
