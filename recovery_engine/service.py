"""Recovery service: the operations offered to the surrounding application.

Wires the pure analysis components to the store and the notification
sender. Scores and baselines are always recomputed from the raw signal
history; nothing is updated incrementally.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout, as_completed
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple
from dataclasses import dataclass, field

from .config import config
from .exceptions import NotFoundError, ValidationError
from .analysis.adjustment import AdjustmentEngine, AdjustmentRecommendation, WorkoutSummary
from .analysis.alerts import AlertEngine
from .analysis.baseline import BaselineCalculator
from .analysis.insights import RecoveryInsights, RecoveryStatusReport, recovery_insights, status_recommendations
from .analysis.patterns import PatternDetector, TrendReport
from .analysis.scoring import RecoveryScorer
from .analysis.signals import HRVReading, RestingHRReading, SignalType, SleepReading
from .analysis.types import (
    Aggressiveness,
    Alert,
    AlertPreferences,
    Baseline,
    RecoveryScore,
    TrainingRecoverySettings,
)
from .db.store import RecoveryStore
from .notifications import NotificationSender, get_notifier

logger = logging.getLogger(__name__)

# History needed by the alert and rest-day rules (7-day HRV decline run)
ALERT_HISTORY_DAYS = 14

ALERT_PREFERENCE_FIELDS = {
    "enabled": bool,
    "push_enabled": bool,
    "email_enabled": bool,
    "poor_recovery_threshold": float,
    "critical_recovery_threshold": float,
}

TRAINING_SETTINGS_FIELDS = {
    "auto_adjust_enabled": bool,
    "adjustment_aggressiveness": str,
    "min_rest_days_per_week": int,
    "max_consecutive_training_days": int,
    "allow_intensity_reduction": bool,
    "allow_volume_reduction": bool,
    "allow_workout_swap": bool,
}

SETTINGS_RANGES = {
    "min_rest_days_per_week": (0, 7),
    "max_consecutive_training_days": (1, 14),
}


@dataclass
class BatchResult:
    """Outcome of a batch recompute. One user's failure never aborts the rest."""
    score_date: date
    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    timed_out: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed) + len(self.timed_out)


def _validate_patch(patch: Dict[str, Any], schema: Dict[str, type]) -> Dict[str, Any]:
    """Check patch keys and value types, returning a normalized copy."""
    cleaned = {}
    for name, value in patch.items():
        if name not in schema:
            raise ValidationError(f"Unknown setting: {name}", field=name)

        expected = schema[name]
        if expected is bool:
            if not isinstance(value, bool):
                raise ValidationError(f"{name} must be true or false", field=name)
        elif expected in (int, float):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(f"{name} must be a number", field=name)
            if expected is int and int(value) != value:
                raise ValidationError(f"{name} must be a whole number", field=name)
            value = expected(value)

        cleaned[name] = value
    return cleaned


class RecoveryService:
    """Baselines, daily scores, alerts, adjustments and trend reports per user."""

    def __init__(
        self,
        store: Optional[RecoveryStore] = None,
        notifier: Optional[NotificationSender] = None,
        baseline_calculator: Optional[BaselineCalculator] = None,
        scorer: Optional[RecoveryScorer] = None,
        pattern_detector: Optional[PatternDetector] = None,
        cooldown_hours: Optional[float] = None,
    ):
        self.store = store or RecoveryStore()
        self.notifier = notifier or get_notifier()
        self.baseline_calculator = baseline_calculator or BaselineCalculator()
        self.scorer = scorer or RecoveryScorer()
        self.pattern_detector = pattern_detector or PatternDetector()
        self.alert_engine = AlertEngine(self.store, self.notifier, cooldown_hours)

    # Ingestion

    def add_hrv_reading(self, user_id: str, reading: HRVReading) -> None:
        self.store.add_hrv_reading(user_id, reading)

    def add_sleep_record(self, user_id: str, reading: SleepReading) -> None:
        self.store.add_sleep_record(user_id, reading)

    def add_resting_hr(self, user_id: str, reading: RestingHRReading) -> None:
        self.store.add_resting_hr(user_id, reading)

    def _load_signals(self, user_id: str, as_of: date) -> Tuple[List, List, List]:
        """HRV, resting HR and sleep readings for the baseline window through as_of."""
        start = as_of - timedelta(days=self.baseline_calculator.window_days)
        return (
            self.store.list_readings(user_id, SignalType.HRV, start, as_of),
            self.store.list_readings(user_id, SignalType.RESTING_HR, start, as_of),
            self.store.list_readings(user_id, SignalType.SLEEP, start, as_of),
        )

    def _baseline_as_of(self, user_id: str, as_of: date, signals=None) -> Baseline:
        hrv, rhr, sleep = signals or self._load_signals(user_id, as_of)
        return self.baseline_calculator.calculate(
            user_id, hrv, rhr, sleep, now=datetime.combine(as_of, time.min)
        )

    # Baselines and scores

    def compute_baseline(self, user_id: str, now: Optional[datetime] = None) -> Baseline:
        """Recompute and persist the user's baseline as of ``now``."""
        if now is None:
            now = datetime.utcnow()

        hrv, rhr, sleep = self._load_signals(user_id, now.date())
        baseline = self.baseline_calculator.calculate(user_id, hrv, rhr, sleep, now=now)
        self.store.upsert_baseline(baseline)

        logger.info(
            f"Baseline for {user_id}: hrv={baseline.hrv_baseline_rmssd} ({baseline.hrv_days}d), "
            f"rhr={baseline.rhr_baseline} ({baseline.rhr_days}d), "
            f"sleep={baseline.typical_sleep_hours} ({baseline.sleep_days}d)"
        )
        return baseline

    def compute_daily_score(
        self,
        user_id: str,
        score_date: Optional[date] = None,
        training_strain: Optional[float] = None,
    ) -> RecoveryScore:
        """Compute and upsert the readiness score for one day.

        The baseline is derived as of score_date from the same readings, so
        recomputing a day with unchanged inputs yields the same score.
        """
        if score_date is None:
            score_date = datetime.utcnow().date()

        signals = self._load_signals(user_id, score_date)
        baseline = self._baseline_as_of(user_id, score_date, signals)
        hrv, rhr, sleep = signals

        score = self.scorer.score(
            user_id,
            score_date,
            baseline,
            hrv_readings=hrv,
            rhr_readings=rhr,
            sleep_readings=sleep,
            training_strain=training_strain,
        )
        persisted = self.store.upsert_recovery_score(score)

        logger.info(
            f"Recovery score for {user_id} on {score_date}: {persisted.readiness_score:.1f} "
            f"({persisted.recovery_status.value})"
        )
        return persisted

    def get_recovery_score(self, user_id: str, score_date: date) -> RecoveryScore:
        """Stored score for a day.

        Raises:
            NotFoundError: when no score has been computed for that day
        """
        score = self.store.get_recovery_score(user_id, score_date)
        if score is None:
            raise NotFoundError("RecoveryScore", f"{user_id}/{score_date.isoformat()}")
        return score

    def get_recovery_status(self, user_id: str, score_date: Optional[date] = None) -> RecoveryStatusReport:
        """The day's score, computed on demand, with prioritized recommendations."""
        if score_date is None:
            score_date = datetime.utcnow().date()

        score = self.store.get_recovery_score(user_id, score_date)
        if score is None:
            score = self.compute_daily_score(user_id, score_date)

        return RecoveryStatusReport(score=score, recommendations=status_recommendations(score))

    def get_recovery_insights(self, user_id: str, score_date: Optional[date] = None) -> RecoveryInsights:
        if score_date is None:
            score_date = datetime.utcnow().date()

        score = self.store.get_recovery_score(user_id, score_date)
        baseline = self._baseline_as_of(user_id, score_date)
        return recovery_insights(score, baseline)

    def get_trend_report(
        self,
        user_id: str,
        period_days: Optional[int] = None,
        today: Optional[date] = None,
    ) -> TrendReport:
        """Readiness average, direction, data points and patterns over a period."""
        period_days = period_days or self.pattern_detector.window_days
        if period_days < 1:
            raise ValidationError("period_days must be at least 1", field="period_days")
        if today is None:
            today = datetime.utcnow().date()

        scores = self.store.get_recovery_scores(
            user_id, today - timedelta(days=period_days - 1), today
        )
        return self.pattern_detector.trend_report(user_id, scores, period_days)

    # Alerts

    def evaluate_alerts(
        self,
        user_id: str,
        score: RecoveryScore,
        now: Optional[datetime] = None,
    ) -> List[Alert]:
        """Create (and deliver) the alerts a score triggers, honoring the cooldown."""
        history = self._recent_history(user_id, score.score_date)
        preferences = self.store.get_alert_preferences(user_id)
        return self.alert_engine.evaluate(score, history, preferences, now=now)

    def list_alerts(self, user_id: str, limit: int = 20, include_acknowledged: bool = False) -> List[Alert]:
        return self.store.list_alerts(user_id, limit=limit, include_acknowledged=include_acknowledged)

    def acknowledge_alert(self, user_id: str, alert_id: int) -> Alert:
        return self.store.acknowledge_alert(user_id, alert_id)

    def get_or_update_alert_preferences(
        self,
        user_id: str,
        patch: Optional[Dict[str, Any]] = None,
    ) -> AlertPreferences:
        """Current preferences (defaults on first access), optionally patched."""
        if not patch:
            return self.store.get_alert_preferences(user_id)

        cleaned = _validate_patch(patch, ALERT_PREFERENCE_FIELDS)
        for name in ("poor_recovery_threshold", "critical_recovery_threshold"):
            if name in cleaned and not 0.0 <= cleaned[name] <= 100.0:
                raise ValidationError(f"{name} must be between 0 and 100", field=name)

        preferences = self.store.update_alert_preferences(user_id, cleaned)
        logger.info(f"Updated alert preferences for {user_id}: {sorted(cleaned)}")
        return preferences

    # Training adjustments

    def get_or_update_training_settings(
        self,
        user_id: str,
        patch: Optional[Dict[str, Any]] = None,
    ) -> TrainingRecoverySettings:
        if not patch:
            return self.store.get_training_settings(user_id)

        patch = dict(patch)
        if isinstance(patch.get("adjustment_aggressiveness"), Aggressiveness):
            patch["adjustment_aggressiveness"] = patch["adjustment_aggressiveness"].value

        cleaned = _validate_patch(patch, TRAINING_SETTINGS_FIELDS)

        if "adjustment_aggressiveness" in cleaned:
            valid = [a.value for a in Aggressiveness]
            if cleaned["adjustment_aggressiveness"] not in valid:
                raise ValidationError(
                    f"adjustment_aggressiveness must be one of {valid}",
                    field="adjustment_aggressiveness",
                )
        for name, (low, high) in SETTINGS_RANGES.items():
            if name in cleaned and not low <= cleaned[name] <= high:
                raise ValidationError(f"{name} must be between {low} and {high}", field=name)

        return self.store.update_training_settings(user_id, cleaned)

    def recommend_adjustment(
        self,
        user_id: str,
        target_date: date,
        original_tss: float,
        planned_workout: Optional[WorkoutSummary] = None,
    ) -> AdjustmentRecommendation:
        """Recovery-based load recommendation for a planned day.

        A day without a score yields has_recovery_data=False. Every
        recommendation backed by data is appended to the decision log.
        """
        score = self.store.get_recovery_score(user_id, target_date)
        settings = self.store.get_training_settings(user_id)
        engine = AdjustmentEngine(settings.adjustment_aggressiveness)

        history = self._recent_history(user_id, target_date) if score else []
        recommendation = engine.recommend(
            user_id,
            target_date,
            original_tss,
            score,
            history=history,
            planned_workout=planned_workout,
        )

        entry = engine.decision_log(recommendation, score.id if score else None)
        if entry is not None:
            self.store.append_adjustment_log(entry)

        return recommendation

    def _recent_history(self, user_id: str, end: date) -> List[RecoveryScore]:
        return self.store.get_recovery_scores(user_id, end - timedelta(days=ALERT_HISTORY_DAYS - 1), end)

    # Batch

    def recompute_all(
        self,
        score_date: Optional[date] = None,
        user_ids: Optional[Iterable[str]] = None,
        timeout: Optional[float] = None,
        max_workers: Optional[int] = None,
    ) -> BatchResult:
        """Recompute baseline, score and alerts for every user.

        Each user runs under its own timeout. Failures and timeouts are
        logged and reported without stopping the other users.
        """
        if score_date is None:
            score_date = datetime.utcnow().date()
        user_ids = list(user_ids) if user_ids is not None else self.store.list_user_ids()
        timeout = timeout or config.BATCH_USER_TIMEOUT_SECONDS
        max_workers = max_workers or config.BATCH_MAX_WORKERS

        result = BatchResult(score_date=score_date)
        if not user_ids:
            return result

        logger.info(f"Recomputing recovery for {len(user_ids)} users on {score_date}")

        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = {
                pool.submit(self._recompute_user_with_timeout, user_id, score_date, timeout): user_id
                for user_id in user_ids
            }
            for future in as_completed(futures):
                user_id = futures[future]
                try:
                    future.result()
                    result.succeeded.append(user_id)
                    logger.debug(f"Recomputed recovery for {user_id}")
                except FuturesTimeout:
                    result.timed_out.append(user_id)
                    logger.warning(f"Recovery recompute for {user_id} timed out after {timeout}s")
                except Exception as e:
                    result.failed[user_id] = str(e)
                    logger.error(f"Recovery recompute for {user_id} failed: {e}")

        logger.info(
            f"Batch recompute done: {len(result.succeeded)} succeeded, "
            f"{len(result.failed)} failed, {len(result.timed_out)} timed out"
        )
        return result

    def _recompute_user_with_timeout(self, user_id: str, score_date: date, timeout: float) -> List[Alert]:
        pool = ThreadPoolExecutor(max_workers=1)
        future = pool.submit(self._recompute_user, user_id, score_date)
        try:
            return future.result(timeout=timeout)
        except FuturesTimeout:
            future.cancel()
            raise
        finally:
            pool.shutdown(wait=False)

    def _recompute_user(self, user_id: str, score_date: date) -> List[Alert]:
        self.compute_baseline(user_id, now=datetime.combine(score_date, time.min))
        score = self.compute_daily_score(user_id, score_date)
        return self.evaluate_alerts(user_id, score)
