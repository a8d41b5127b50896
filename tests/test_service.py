"""End-to-end tests for the recovery service over an in-memory database."""

import time
import pytest
from datetime import date, datetime, timedelta

from recovery_engine.analysis.adjustment import AdjustmentType
from recovery_engine.analysis.scoring import RecoveryScorer
from recovery_engine.analysis.signals import HRVReading, RestingHRReading, SleepReading
from recovery_engine.analysis.types import Aggressiveness, ReadinessTrend, RecoveryStatus
from recovery_engine.exceptions import ComputationError, NotFoundError, ValidationError
from recovery_engine.db import RecoveryStore
from recovery_engine.service import RecoveryService

TODAY = date(2024, 3, 31)


class TestDailyScore:
    """Test scoring through stored readings."""

    def test_scenario_from_stored_readings(self, service, seed_hrv):
        seed_hrv("athlete", TODAY, 30, 50.0)
        service.add_hrv_reading("athlete", HRVReading(date=TODAY, rmssd=40.0))

        score = service.compute_daily_score("athlete", TODAY)

        assert score.hrv_deviation == pytest.approx(-20.0)
        assert score.readiness_score == pytest.approx(40.0)
        assert score.recovery_status is RecoveryStatus.POOR
        assert score.id is not None

    def test_idempotent(self, service, seed_hrv):
        seed_hrv("athlete", TODAY, 20, 52.0)
        service.add_sleep_record("athlete", SleepReading(date=TODAY, total_sleep_hours=7.2, sleep_efficiency=88.0))

        first = service.compute_daily_score("athlete", TODAY)
        second = service.compute_daily_score("athlete", TODAY)

        assert first == second
        assert first.id == second.id
        assert service.get_recovery_score("athlete", TODAY) == first

    def test_missing_score_raises_not_found(self, service):
        with pytest.raises(NotFoundError):
            service.get_recovery_score("athlete", TODAY)

    def test_compute_baseline_persists(self, service, store, seed_hrv):
        seed_hrv("athlete", TODAY, 15, 60.0)

        baseline = service.compute_baseline("athlete", now=datetime(2024, 3, 31, 7, 0))

        assert baseline.hrv_baseline_rmssd == pytest.approx(60.0)
        assert store.get_baseline("athlete").hrv_days == 15

    def test_status_computes_missing_score(self, service, seed_hrv):
        seed_hrv("athlete", TODAY, 30, 50.0)
        service.add_hrv_reading("athlete", HRVReading(date=TODAY, rmssd=40.0))

        status = service.get_recovery_status("athlete", TODAY)

        assert status.score.readiness_score == pytest.approx(40.0)
        assert status.recommendations

    def test_status_default_recommendation(self, service, seed_hrv):
        seed_hrv("athlete", TODAY, 30, 50.0)
        service.add_hrv_reading("athlete", HRVReading(date=TODAY, rmssd=60.0))

        status = service.get_recovery_status("athlete", TODAY)

        assert [r.category for r in status.recommendations] == ["general"]

    def test_insights_without_score(self, service):
        insights = service.get_recovery_insights("athlete", TODAY)

        assert insights.insights == []
        assert "Insufficient data" in insights.suggestions[0]

    def test_insights_key_factors(self, service, seed_hrv):
        seed_hrv("athlete", TODAY, 30, 50.0)
        service.add_hrv_reading("athlete", HRVReading(date=TODAY, rmssd=40.0))
        service.compute_daily_score("athlete", TODAY)

        insights = service.get_recovery_insights("athlete", TODAY)

        factor = insights.key_factors[0]
        assert factor.factor == "HRV"
        assert factor.current_value == pytest.approx(40.0)
        assert factor.baseline_value == pytest.approx(50.0)
        assert [i.title for i in insights.insights][-1] == "Poor Recovery Status"


class TestTrendReport:

    def test_report_over_period(self, service, store, make_score):
        for i, readiness in enumerate([50.0, 52.0, 60.0, 64.0]):
            store.upsert_recovery_score(make_score(score_date=TODAY - timedelta(days=3 - i), readiness=readiness))
        store.upsert_recovery_score(make_score(score_date=TODAY - timedelta(days=40), readiness=10.0))

        report = service.get_trend_report("athlete", 7, today=TODAY)

        assert len(report.data_points) == 4
        assert report.average_readiness == pytest.approx(56.5)
        assert report.trend_direction is ReadinessTrend.IMPROVING

    def test_empty_report(self, service):
        report = service.get_trend_report("athlete", 30, today=TODAY)

        assert report.average_readiness == 0.0
        assert report.trend_direction is ReadinessTrend.INSUFFICIENT_DATA


class TestAlerts:
    """Test alert evaluation, listing and acknowledgement through the service."""

    def test_cooldown_through_service(self, service, store, make_score):
        noon = datetime(2024, 3, 31, 12, 0)
        score = store.upsert_recovery_score(make_score(score_date=TODAY, readiness=15.0))

        first = service.evaluate_alerts("athlete", score, now=noon)
        second = service.evaluate_alerts("athlete", score, now=noon + timedelta(hours=10))

        assert len(first) == 1
        assert first[0].recovery_score_id == score.id
        assert second == []

    def test_acknowledge(self, service, store, make_score):
        score = store.upsert_recovery_score(make_score(score_date=TODAY, readiness=15.0))
        alert = service.evaluate_alerts("athlete", score, now=datetime(2024, 3, 31, 12, 0))[0]

        acknowledged = service.acknowledge_alert("athlete", alert.id)

        assert acknowledged.acknowledged_at is not None
        assert service.list_alerts("athlete") == []
        assert len(service.list_alerts("athlete", include_acknowledged=True)) == 1
        with pytest.raises(NotFoundError):
            service.acknowledge_alert("athlete", alert.id)

    def test_cannot_acknowledge_other_users_alert(self, service, store, make_score):
        score = store.upsert_recovery_score(make_score(score_date=TODAY, readiness=15.0))
        alert = service.evaluate_alerts("athlete", score, now=datetime(2024, 3, 31, 12, 0))[0]

        with pytest.raises(NotFoundError):
            service.acknowledge_alert("someone-else", alert.id)


class TestPreferences:
    """Test preference and settings patching."""

    def test_defaults_created_on_first_access(self, service):
        preferences = service.get_or_update_alert_preferences("athlete")

        assert preferences.enabled is True
        assert preferences.push_enabled is True
        assert preferences.email_enabled is False
        assert preferences.poor_recovery_threshold == 40.0
        assert preferences.critical_recovery_threshold == 20.0

    def test_patch_persists(self, service):
        service.get_or_update_alert_preferences("athlete", {"critical_recovery_threshold": 25, "email_enabled": True})

        preferences = service.get_or_update_alert_preferences("athlete")

        assert preferences.critical_recovery_threshold == 25.0
        assert preferences.email_enabled is True

    def test_unknown_key_rejected(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.get_or_update_alert_preferences("athlete", {"sms_enabled": True})

        assert exc_info.value.field == "sms_enabled"

    def test_threshold_out_of_range(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.get_or_update_alert_preferences("athlete", {"poor_recovery_threshold": 120})

        assert exc_info.value.field == "poor_recovery_threshold"

    def test_training_settings_patch(self, service):
        settings = service.get_or_update_training_settings(
            "athlete", {"adjustment_aggressiveness": "conservative", "min_rest_days_per_week": 2}
        )

        assert settings.adjustment_aggressiveness is Aggressiveness.CONSERVATIVE
        assert settings.min_rest_days_per_week == 2

    def test_training_settings_validation(self, service):
        with pytest.raises(ValidationError):
            service.get_or_update_training_settings("athlete", {"adjustment_aggressiveness": "reckless"})
        with pytest.raises(ValidationError):
            service.get_or_update_training_settings("athlete", {"max_consecutive_training_days": 0})


class TestRecommendAdjustment:
    """Test recommendations and the decision log."""

    def test_logs_decision(self, service, store, make_score):
        score = store.upsert_recovery_score(make_score(score_date=TODAY, readiness=55.0))

        rec = service.recommend_adjustment("athlete", TODAY, 100.0)

        logs = store.list_adjustment_logs("athlete")
        assert rec.adjustment_factor == 0.85
        assert len(logs) == 1
        assert logs[0].recovery_score_id == score.id
        assert logs[0].adjustment_type is AdjustmentType.REDUCE_VOLUME
        assert logs[0].adjustment_applied is False

    def test_no_score_no_log(self, service, store):
        rec = service.recommend_adjustment("athlete", TODAY, 100.0)

        assert rec.has_recovery_data is False
        assert store.list_adjustment_logs("athlete") == []

    def test_uses_user_aggressiveness(self, service, store, make_score):
        store.upsert_recovery_score(make_score(score_date=TODAY, readiness=82.0))
        service.get_or_update_training_settings("athlete", {"adjustment_aggressiveness": Aggressiveness.CONSERVATIVE})

        assert service.recommend_adjustment("athlete", TODAY, 100.0).adjustment_factor == 1.0

    def test_rest_day_from_stored_history(self, service, store, make_score):
        for offset in (2, 1, 0):
            store.upsert_recovery_score(make_score(score_date=TODAY - timedelta(days=offset), readiness=35.0))

        rec = service.recommend_adjustment("athlete", TODAY, 100.0)

        assert rec.rest_recommendation.confidence == 0.85


class FlakyScorer(RecoveryScorer):
    """Fails for one user and stalls for another."""

    def score(self, user_id, *args, **kwargs):
        if user_id == "broken":
            raise ComputationError("Readiness score outside [0, 100]")
        if user_id == "slow":
            time.sleep(0.5)
        return super().score(user_id, *args, **kwargs)


class TestBatchRecompute:
    """Test per-user isolation in the batch recompute."""

    def test_lists_users_from_readings(self, service, seed_hrv):
        seed_hrv("b-user", TODAY, 2, 50.0)
        seed_hrv("a-user", TODAY, 2, 50.0)

        assert service.store.list_user_ids() == ["a-user", "b-user"]

    def test_failures_do_not_stop_others(self, store, notifier, seed_hrv):
        service = RecoveryService(store=store, notifier=notifier, scorer=FlakyScorer())
        for user_id in ("good", "broken"):
            seed_hrv(user_id, TODAY, 20, 50.0)

        result = service.recompute_all(TODAY, max_workers=1)

        assert result.succeeded == ["good"]
        assert "broken" in result.failed
        assert store.get_recovery_score("good", TODAY) is not None
        assert store.get_recovery_score("broken", TODAY) is None

    def test_slow_user_times_out(self, store, notifier):
        service = RecoveryService(store=store, notifier=notifier, scorer=FlakyScorer())

        result = service.recompute_all(TODAY, user_ids=["slow", "fast"], timeout=0.1, max_workers=1)

        assert result.timed_out == ["slow"]
        assert result.succeeded == ["fast"]
        assert result.total == 2
        # let the abandoned worker finish before the database closes
        time.sleep(0.6)

    @staticmethod
    def _seed_full_history(store, user_id, days=20):
        for offset in range(days + 1):
            day = TODAY - timedelta(days=offset)
            store.add_hrv_reading(user_id, HRVReading(date=day, rmssd=45.0 + offset % 5))
            store.add_resting_hr(user_id, RestingHRReading(date=day, resting_hr=52.0 + offset % 3))
            store.add_sleep_record(user_id, SleepReading(date=day, total_sleep_hours=7.5))

    def test_parallel_workers_on_file_database(self, file_db, notifier):
        store = RecoveryStore(file_db)
        service = RecoveryService(store=store, notifier=notifier)
        user_ids = [f"u{i:02d}" for i in range(12)]
        for user_id in user_ids:
            self._seed_full_history(store, user_id)

        result = service.recompute_all(TODAY, max_workers=4)

        assert sorted(result.succeeded) == user_ids
        assert result.failed == {}
        assert result.timed_out == []
        for user_id in user_ids:
            score = store.get_recovery_score(user_id, TODAY)
            assert score is not None
            assert score.hrv_deviation is not None
            assert store.get_baseline(user_id).rhr_baseline is not None

    def test_timed_out_worker_leaves_others_intact(self, file_db, notifier):
        store = RecoveryStore(file_db)
        service = RecoveryService(store=store, notifier=notifier, scorer=FlakyScorer())
        user_ids = ["slow"] + [f"fast{i}" for i in range(6)]
        for user_id in user_ids:
            self._seed_full_history(store, user_id, days=15)

        result = service.recompute_all(TODAY, user_ids=user_ids, timeout=0.1, max_workers=2)
        # let the abandoned worker finish its writes
        time.sleep(0.6)

        assert result.timed_out == ["slow"]
        assert result.failed == {}
        assert sorted(result.succeeded) == sorted(user_ids[1:])
        for user_id in user_ids[1:]:
            assert store.get_recovery_score(user_id, TODAY) is not None
