"""Tests for alert persistence in the recovery store."""

from datetime import datetime, timedelta

from recovery_engine.analysis.types import Alert, AlertRecommendation, AlertType, Severity

NOON = datetime(2024, 3, 10, 12, 0)


def make_alert(alert_type=AlertType.POOR_SLEEP, created_at=NOON, user_id="athlete"):
    return Alert(
        user_id=user_id,
        alert_type=alert_type,
        severity=Severity.WARNING,
        message="Poor sleep detected",
        created_at=created_at,
        recommendations=[AlertRecommendation("medium", "sleep", "Sleep was short", "Go to bed earlier")],
    )


class TestAlertStorage:
    """Test unconditional inserts and lookups."""

    def test_insert_assigns_id(self, store):
        stored = store.insert_alert(make_alert())

        assert stored.id is not None
        assert stored.acknowledged_at is None
        assert stored.recommendations[0].action == "Go to bed earlier"

    def test_insert_ignores_cooldown(self, store):
        store.insert_alert(make_alert(created_at=NOON))
        store.insert_alert(make_alert(created_at=NOON + timedelta(hours=1)))

        assert len(store.list_alerts("athlete")) == 2

    def test_last_alert_per_type(self, store):
        store.insert_alert(make_alert(created_at=NOON))
        latest = store.insert_alert(make_alert(created_at=NOON + timedelta(hours=3)))
        store.insert_alert(make_alert(AlertType.CRITICAL_RECOVERY, created_at=NOON + timedelta(hours=5)))

        last = store.get_last_alert("athlete", AlertType.POOR_SLEEP)

        assert last.id == latest.id
        assert last.created_at == NOON + timedelta(hours=3)
        assert store.get_last_alert("someone-else", AlertType.POOR_SLEEP) is None
