"""Tests for daily readiness scoring."""

import pytest
from datetime import date, datetime, timedelta

from recovery_engine.analysis.baseline import BaselineCalculator
from recovery_engine.analysis.scoring import RecoveryScorer
from recovery_engine.analysis.signals import HRVReading, RestingHRReading, SleepReading
from recovery_engine.analysis.types import Baseline, HRVTrend, RecoveryStatus
from recovery_engine.exceptions import ValidationError

TODAY = date(2024, 3, 31)


def baseline_of(hrv=None, rhr=None):
    return Baseline(
        user_id="athlete",
        calculated_at=datetime(2024, 3, 31),
        hrv_baseline_rmssd=hrv,
        rhr_baseline=rhr,
    )


class TestRecoveryStatusBands:
    """Test the status partition, closed on each lower bound."""

    @pytest.mark.parametrize("score,expected", [
        (100.0, RecoveryStatus.OPTIMAL),
        (85.0, RecoveryStatus.OPTIMAL),
        (84.99, RecoveryStatus.GOOD),
        (70.0, RecoveryStatus.GOOD),
        (69.9, RecoveryStatus.FAIR),
        (50.0, RecoveryStatus.FAIR),
        (49.9, RecoveryStatus.POOR),
        (30.0, RecoveryStatus.POOR),
        (29.9, RecoveryStatus.CRITICAL),
        (0.0, RecoveryStatus.CRITICAL),
    ])
    def test_bands(self, score, expected):
        assert RecoveryStatus.from_score(score) is expected


class TestRecoveryScorer:
    """Test component math and readiness selection."""

    def setup_method(self):
        self.scorer = RecoveryScorer()

    def test_hrv_only_scenario(self):
        """Thirty days at 50ms then 40ms today: -20% deviation, readiness 40."""
        history = [HRVReading(date=TODAY - timedelta(days=d), rmssd=50.0) for d in range(1, 31)]
        today = HRVReading(date=TODAY, rmssd=40.0)
        baseline = BaselineCalculator().calculate(
            "athlete", hrv_readings=history, now=datetime.combine(TODAY, datetime.min.time())
        )

        score = self.scorer.score("athlete", TODAY, baseline, hrv_readings=history + [today])

        assert score.hrv_deviation == pytest.approx(-20.0)
        assert score.recovery_adequacy == pytest.approx(40.0)
        assert score.readiness_score == pytest.approx(40.0)
        assert score.recovery_status is RecoveryStatus.POOR
        assert score.recommended_tss_adjustment == 0.7
        assert score.sleep_quality_score is None
        assert score.rhr_deviation is None
        assert score.model_version == "1.0.0-simple"

    def test_no_signals_gives_neutral_readiness(self):
        score = self.scorer.score("athlete", TODAY, baseline_of())

        assert score.readiness_score == 50.0
        assert score.recovery_adequacy is None
        assert score.hrv_trend is HRVTrend.INSUFFICIENT_DATA

    def test_signal_without_baseline_is_ignored(self):
        """Today's HRV with no HRV baseline contributes nothing."""
        score = self.scorer.score(
            "athlete", TODAY, baseline_of(), hrv_readings=[HRVReading(date=TODAY, rmssd=40.0)]
        )

        assert score.hrv_deviation is None
        assert score.readiness_score == 50.0

    def test_sleep_only(self):
        sleep = SleepReading(date=TODAY, total_sleep_hours=8.0, sleep_efficiency=90.0)

        score = self.scorer.score("athlete", TODAY, baseline_of(), sleep_readings=[sleep])

        # 50 base + 25 duration + 90% of 25
        assert score.sleep_quality_score == pytest.approx(97.5)
        assert score.readiness_score == pytest.approx(97.5)
        assert score.recovery_status is RecoveryStatus.OPTIMAL

    def test_latest_sleep_record_wins(self):
        early = SleepReading(date=TODAY, total_sleep_hours=5.0, timestamp=datetime(2024, 3, 31, 6, 0))
        late = SleepReading(date=TODAY, total_sleep_hours=7.5, timestamp=datetime(2024, 3, 31, 8, 0))

        score = self.scorer.score("athlete", TODAY, baseline_of(), sleep_readings=[late, early])

        assert score.sleep_quality_score == pytest.approx(75.0)

    def test_all_components_averaged(self):
        hrv = HRVReading(date=TODAY, rmssd=55.0)        # +10% -> 55
        rhr = RestingHRReading(date=TODAY, resting_hr=55.0)  # +10% -> 45
        sleep = SleepReading(date=TODAY, total_sleep_hours=6.5)  # 65

        score = self.scorer.score(
            "athlete", TODAY, baseline_of(hrv=50.0, rhr=50.0),
            hrv_readings=[hrv], rhr_readings=[rhr], sleep_readings=[sleep],
        )

        assert score.hrv_deviation == pytest.approx(10.0)
        assert score.rhr_deviation == pytest.approx(10.0)
        assert score.recovery_adequacy == pytest.approx((55.0 + 45.0 + 65.0) / 3)

    def test_adequacy_is_clamped(self):
        """A very high HRV cannot push readiness above 100."""
        score = self.scorer.score(
            "athlete", TODAY, baseline_of(hrv=50.0), hrv_readings=[HRVReading(date=TODAY, rmssd=150.0)]
        )

        assert score.hrv_deviation == pytest.approx(200.0)
        assert score.readiness_score == 100.0

    def test_out_of_bounds_reading_is_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            self.scorer.score(
                "athlete", TODAY, baseline_of(hrv=50.0),
                hrv_readings=[HRVReading(date=TODAY, rmssd=250.0)],
            )

        assert exc_info.value.field == "rmssd"

    def test_deterministic(self):
        hrv = [HRVReading(date=TODAY - timedelta(days=d), rmssd=45.0 + d % 3) for d in range(0, 10)]
        baseline = baseline_of(hrv=48.0)

        first = self.scorer.score("athlete", TODAY, baseline, hrv_readings=hrv)
        second = self.scorer.score("athlete", TODAY, baseline, hrv_readings=list(reversed(hrv)))

        assert first == second


class TestSleepQuality:
    """Test sleep duration and efficiency scoring."""

    @pytest.mark.parametrize("hours,expected", [
        (8.0, 75.0),
        (7.0, 75.0),
        (9.0, 75.0),
        (6.5, 65.0),
        (9.5, 65.0),
        (5.0, 50.0),
        (11.0, 50.0),
    ])
    def test_duration_bonus(self, hours, expected):
        sleep = SleepReading(date=TODAY, total_sleep_hours=hours)

        assert RecoveryScorer.sleep_quality(sleep) == pytest.approx(expected)


class TestTSSAdjustment:
    """Test the quick-summary TSS table stored with each score."""

    @pytest.mark.parametrize("readiness,factor", [
        (82.0, 1.1),
        (75.0, 1.0),
        (65.0, 0.95),
        (55.0, 0.85),
        (45.0, 0.7),
        (35.0, 0.5),
        (25.0, 0.3),
    ])
    def test_table(self, readiness, factor):
        assert RecoveryScorer.tss_adjustment(readiness) == factor
