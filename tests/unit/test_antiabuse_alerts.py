"""
Unit tests for threat alerts.

This module tests alert creation, identifier numbering, filtering and the
one-way resolution lifecycle.
"""

import dataclasses

import pytest

from crowdguard.antiabuse.alerts import (
    AlertManager,
    AlertType,
    ThreatAlert,
    severity_level,
)


class TestThreatAlert:
    """Test ThreatAlert class."""

    def test_alert_is_immutable(self):
        """Test that alert fields cannot be reassigned."""
        alert = ThreatAlert(
            alert_id="ALERT_1",
            alert_type="bot_detected",
            severity=0.8,
            involved_users=("alice",),
            description="High velocity",
        )

        with pytest.raises(dataclasses.FrozenInstanceError):
            alert.resolved = True

    def test_alert_serialization(self):
        """Test alert serialization."""
        alert = ThreatAlert(
            alert_id="ALERT_1",
            alert_type="collusion_detected",
            severity=0.95,
            involved_users=("a", "b"),
            description="Group of 2 users",
        )

        data = alert.to_dict()

        assert data["alert_id"] == "ALERT_1"
        assert data["involved_users"] == ["a", "b"]
        assert data["severity_level"] == "critical"
        assert data["resolved"] is False
        assert data["timestamp"] > 0

    @pytest.mark.parametrize(
        "severity,level",
        [(0.1, "low"), (0.4, "medium"), (0.7, "high"), (0.9, "critical"), (1.0, "critical")],
    )
    def test_severity_level(self, severity, level):
        """Test severity bucketing."""
        assert severity_level(severity) == level


class TestAlertManager:
    """Test AlertManager class."""

    def test_ids_are_monotonic(self):
        """Test sequential alert identifiers."""
        manager = AlertManager()

        first = manager.raise_alert(AlertType.BOT_DETECTED, 0.8, ["a"], "one")
        second = manager.raise_alert("custom_finding", 0.3, ["b"], "two")

        assert first.alert_id == "ALERT_1"
        assert second.alert_id == "ALERT_2"
        assert first.alert_type == "bot_detected"
        assert second.alert_type == "custom_finding"

    def test_managers_number_independently(self):
        """Test that each manager owns its counter."""
        first = AlertManager()
        second = AlertManager()
        first.raise_alert(AlertType.BOT_DETECTED, 0.8, ["a"], "one")

        alert = second.raise_alert(AlertType.BOT_DETECTED, 0.8, ["a"], "one")

        assert alert.alert_id == "ALERT_1"

    def test_severity_is_clamped(self):
        """Test that severity is kept within [0, 1]."""
        manager = AlertManager()

        assert manager.raise_alert("x", 3.0, [], "").severity == 1.0
        assert manager.raise_alert("x", -1.0, [], "").severity == 0.0

    def test_resolve_lifecycle(self):
        """Test open -> resolved, with idempotent re-resolve."""
        manager = AlertManager()
        alert = manager.raise_alert(AlertType.BOT_DETECTED, 0.8, ["a"], "one")

        assert manager.resolve(alert.alert_id) is True
        resolved = manager.get(alert.alert_id)
        assert resolved.resolved is True
        assert resolved.resolved_at is not None

        assert manager.resolve(alert.alert_id) is True
        assert manager.get(alert.alert_id).resolved_at == resolved.resolved_at
        assert alert.resolved is False

    def test_resolve_unknown(self):
        """Test resolving an unknown alert."""
        manager = AlertManager()

        assert manager.resolve("ALERT_404") is False

    def test_list_filters_unresolved(self):
        """Test listing with and without resolved alerts."""
        manager = AlertManager()
        first = manager.raise_alert(AlertType.BOT_DETECTED, 0.8, ["a"], "one")
        second = manager.raise_alert(AlertType.COLLUSION_DETECTED, 0.9, ["b", "c"], "two")
        manager.resolve(first.alert_id)

        assert [a.alert_id for a in manager.list()] == ["ALERT_1", "ALERT_2"]
        assert [a.alert_id for a in manager.list(unresolved_only=True)] == [
            second.alert_id
        ]
        assert manager.count() == 2
        assert manager.count(unresolved_only=True) == 1

    def test_has_open_alert(self):
        """Test lookup of open alerts per type and user."""
        manager = AlertManager()
        alert = manager.raise_alert(AlertType.BOT_DETECTED, 0.8, ["a"], "one")

        assert manager.has_open_alert(AlertType.BOT_DETECTED, "a") is True
        assert manager.has_open_alert(AlertType.BOT_DETECTED, "b") is False
        assert manager.has_open_alert(AlertType.COLLUSION_DETECTED, "a") is False

        manager.resolve(alert.alert_id)
        assert manager.has_open_alert(AlertType.BOT_DETECTED, "a") is False

    def test_counts_by_type(self):
        """Test alert counts per type."""
        manager = AlertManager()
        manager.raise_alert(AlertType.BOT_DETECTED, 0.8, ["a"], "")
        manager.raise_alert(AlertType.BOT_DETECTED, 0.8, ["b"], "")
        manager.raise_alert(AlertType.COLLUSION_DETECTED, 0.8, ["a", "b"], "")

        assert manager.counts_by_type() == {"bot_detected": 2, "collusion_detected": 1}

    def test_clear_restarts_numbering(self):
        """Test that clearing drops alerts and restarts ids."""
        manager = AlertManager()
        manager.raise_alert(AlertType.BOT_DETECTED, 0.8, ["a"], "")
        manager.clear()

        assert manager.list() == []
        assert manager.raise_alert("x", 0.1, [], "").alert_id == "ALERT_1"
