"""
Threat alerts and their resolution lifecycle.

Alerts are immutable records. The only transition is open -> resolved,
performed by an operator. Alerts never expire; only a full engine reset
drops them.
"""

import itertools
import threading
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union


class AlertType(str, Enum):
    """Known alert types. Other strings are accepted for custom findings."""

    BOT_DETECTED = "bot_detected"
    COLLUSION_DETECTED = "collusion_detected"


def severity_level(severity: float) -> str:
    """Map a 0-1 severity score to low/medium/high/critical."""
    if severity >= 0.9:
        return "critical"
    if severity >= 0.7:
        return "high"
    if severity >= 0.4:
        return "medium"
    return "low"


@dataclass(frozen=True)
class ThreatAlert:
    """A detected suspicious condition."""

    alert_id: str
    alert_type: str
    severity: float  # 0.0 to 1.0
    involved_users: tuple
    description: str
    timestamp: float = field(default_factory=time.time)
    resolved: bool = False
    resolved_at: Optional[float] = None

    @property
    def severity_level(self) -> str:
        return severity_level(self.severity)

    def to_dict(self) -> Dict[str, Any]:
        """Convert alert to dictionary."""
        return {
            "alert_id": self.alert_id,
            "alert_type": self.alert_type,
            "severity": self.severity,
            "severity_level": self.severity_level,
            "involved_users": list(self.involved_users),
            "description": self.description,
            "timestamp": self.timestamp,
            "resolved": self.resolved,
            "resolved_at": self.resolved_at,
        }


class AlertManager:
    """Creates, lists and resolves threat alerts.

    Identifiers come from a counter owned by this instance: ``ALERT_1``,
    ``ALERT_2``, ... in creation order.
    """

    def __init__(self):
        self._alerts: Dict[str, ThreatAlert] = {}
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def raise_alert(
        self,
        alert_type: Union[AlertType, str],
        severity: float,
        users: Sequence[str],
        description: str,
    ) -> ThreatAlert:
        if isinstance(alert_type, AlertType):
            alert_type = alert_type.value
        with self._lock:
            alert = ThreatAlert(
                alert_id=f"ALERT_{next(self._counter)}",
                alert_type=alert_type,
                severity=max(0.0, min(1.0, float(severity))),
                involved_users=tuple(users),
                description=description,
            )
            self._alerts[alert.alert_id] = alert
        return alert

    def get(self, alert_id: str) -> Optional[ThreatAlert]:
        with self._lock:
            return self._alerts.get(alert_id)

    def list(self, unresolved_only: bool = False) -> List[ThreatAlert]:
        """Alerts in creation order."""
        with self._lock:
            alerts = list(self._alerts.values())
        if unresolved_only:
            return [alert for alert in alerts if not alert.resolved]
        return alerts

    def resolve(self, alert_id: str) -> bool:
        """Mark an alert resolved.

        Returns ``False`` for an unknown id. Resolving an already resolved
        alert is a no-op that returns ``True``.
        """
        with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None:
                return False
            if not alert.resolved:
                self._alerts[alert_id] = replace(
                    alert, resolved=True, resolved_at=time.time()
                )
            return True

    def has_open_alert(self, alert_type: Union[AlertType, str], user_id: str) -> bool:
        if isinstance(alert_type, AlertType):
            alert_type = alert_type.value
        with self._lock:
            return any(
                not alert.resolved
                and alert.alert_type == alert_type
                and user_id in alert.involved_users
                for alert in self._alerts.values()
            )

    def count(self, unresolved_only: bool = False) -> int:
        return len(self.list(unresolved_only))

    def counts_by_type(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for alert in self.list():
            counts[alert.alert_type] = counts.get(alert.alert_type, 0) + 1
        return counts

    def clear(self) -> None:
        """Drop every alert and restart numbering. Used by a full engine reset."""
        with self._lock:
            self._alerts.clear()
            self._counter = itertools.count(1)
