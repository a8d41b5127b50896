"""Persistence boundary between the recovery core and the database.

Every method opens its own session and returns plain dataclasses, so
callers never hold live ORM objects after the transaction has closed.
"""

import json
import logging
import threading
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import union
from sqlalchemy.exc import IntegrityError

from ..analysis.adjustment import AdjustmentDecisionLog, AdjustmentType
from ..analysis.data_validation import DataValidator
from ..analysis.signals import HRVReading, RestingHRReading, SignalType, SleepReading
from ..analysis.types import (
    Aggressiveness,
    Alert,
    AlertPreferences,
    AlertRecommendation,
    AlertType,
    Baseline,
    HRVTrend,
    RecoveryScore,
    RecoveryStatus,
    Severity,
    TrainingRecoverySettings,
)
from ..config import config
from ..exceptions import NotFoundError, ValidationError
from .database import Database, get_db
from .models import (
    AdjustmentDecisionLogRecord,
    AlertPreferencesRecord,
    BaselineRecord,
    HRVData,
    RecoveryAlertRecord,
    RecoveryScoreRecord,
    RestingHRData,
    SleepData,
    TrainingRecoverySettingsRecord,
)

logger = logging.getLogger(__name__)

SIGNAL_MODELS = {
    SignalType.HRV: HRVData,
    SignalType.SLEEP: SleepData,
    SignalType.RESTING_HR: RestingHRData,
}

# Dataclass attribute -> column, where the names differ
PREFERENCE_COLUMNS = {
    "enabled": "enabled",
    "push_enabled": "push_notifications",
    "email_enabled": "email_notifications",
    "poor_recovery_threshold": "poor_recovery_threshold",
    "critical_recovery_threshold": "critical_recovery_threshold",
}

SETTINGS_FIELDS = (
    "auto_adjust_enabled",
    "adjustment_aggressiveness",
    "min_rest_days_per_week",
    "max_consecutive_training_days",
    "allow_intensity_reduction",
    "allow_volume_reduction",
    "allow_workout_swap",
)

SCORE_FIELDS = (
    "readiness_score",
    "recommended_tss_adjustment",
    "hrv_deviation",
    "sleep_quality_score",
    "recovery_adequacy",
    "rhr_deviation",
    "training_strain",
    "model_version",
)


class RecoveryStore:
    """SQLAlchemy-backed storage for readings, scores, alerts and settings."""

    def __init__(self, db: Optional[Database] = None, validator: Optional[DataValidator] = None):
        self.db = db or get_db()
        self.validator = validator or DataValidator()
        # SQLite ignores FOR UPDATE, so in-process writers also serialize here
        self._alert_lock = threading.Lock()

    # Signal ingestion

    def add_hrv_reading(self, user_id: str, reading: HRVReading) -> None:
        self._validate_for_ingestion(user_id, reading)
        with self.db.get_session() as session:
            session.add(HRVData(
                user_id=user_id,
                date=reading.date,
                measurement_timestamp=reading.timestamp,
                rmssd=reading.rmssd,
                sdnn=reading.sdnn,
                pnn50=reading.pnn50,
                source=reading.source,
            ))

    def add_sleep_record(self, user_id: str, reading: SleepReading) -> None:
        self._validate_for_ingestion(user_id, reading)
        with self.db.get_session() as session:
            session.add(SleepData(
                user_id=user_id,
                date=reading.date,
                measurement_timestamp=reading.timestamp,
                total_sleep_hours=reading.total_sleep_hours,
                deep_sleep_hours=reading.deep_sleep_hours,
                rem_sleep_hours=reading.rem_sleep_hours,
                light_sleep_hours=reading.light_sleep_hours,
                awake_hours=reading.awake_hours,
                sleep_efficiency=reading.sleep_efficiency,
                sleep_latency_minutes=reading.sleep_latency_minutes,
                source=reading.source,
            ))

    def add_resting_hr(self, user_id: str, reading: RestingHRReading) -> None:
        self._validate_for_ingestion(user_id, reading)
        with self.db.get_session() as session:
            session.add(RestingHRData(
                user_id=user_id,
                date=reading.date,
                measurement_timestamp=reading.timestamp,
                resting_hr=reading.resting_hr,
                source=reading.source,
            ))

    def _validate_for_ingestion(self, user_id: str, reading) -> None:
        try:
            self.validator.validate_reading(reading)
        except ValidationError as e:
            logger.warning(f"Rejected {reading.signal_type.value} reading for user {user_id}: {e.message}")
            raise

    def list_readings(
        self,
        user_id: str,
        signal_type: SignalType,
        start: date,
        end: date,
    ) -> List:
        """Readings of one signal type within [start, end], oldest first."""
        model = SIGNAL_MODELS[signal_type]
        with self.db.get_session() as session:
            rows = (
                session.query(model)
                .filter(model.user_id == user_id, model.date >= start, model.date <= end)
                .order_by(model.date, model.measurement_timestamp, model.id)
                .all()
            )
            return [self._to_reading(signal_type, row) for row in rows]

    @staticmethod
    def _to_reading(signal_type: SignalType, row):
        if signal_type is SignalType.HRV:
            return HRVReading(
                date=row.date,
                rmssd=row.rmssd,
                timestamp=row.measurement_timestamp,
                source=row.source,
                sdnn=row.sdnn,
                pnn50=row.pnn50,
            )
        elif signal_type is SignalType.SLEEP:
            return SleepReading(
                date=row.date,
                total_sleep_hours=row.total_sleep_hours,
                timestamp=row.measurement_timestamp,
                source=row.source,
                deep_sleep_hours=row.deep_sleep_hours,
                rem_sleep_hours=row.rem_sleep_hours,
                light_sleep_hours=row.light_sleep_hours,
                awake_hours=row.awake_hours,
                sleep_efficiency=row.sleep_efficiency,
                sleep_latency_minutes=row.sleep_latency_minutes,
            )
        return RestingHRReading(
            date=row.date,
            resting_hr=row.resting_hr,
            timestamp=row.measurement_timestamp,
            source=row.source,
        )

    def list_user_ids(self) -> List[str]:
        """Every user with at least one stored reading."""
        with self.db.get_session() as session:
            query = union(
                session.query(HRVData.user_id).statement,
                session.query(SleepData.user_id).statement,
                session.query(RestingHRData.user_id).statement,
            )
            return sorted(row[0] for row in session.execute(query))

    # Baselines

    def upsert_baseline(self, baseline: Baseline) -> Baseline:
        with self.db.get_session() as session:
            record = session.query(BaselineRecord).filter_by(user_id=baseline.user_id).first()
            if record is None:
                record = BaselineRecord(user_id=baseline.user_id)
                session.add(record)

            record.hrv_baseline_rmssd = baseline.hrv_baseline_rmssd
            record.rhr_baseline = baseline.rhr_baseline
            record.typical_sleep_hours = baseline.typical_sleep_hours
            record.data_points_count = baseline.data_points_count
            record.hrv_days = baseline.hrv_days
            record.rhr_days = baseline.rhr_days
            record.sleep_days = baseline.sleep_days
            record.calculated_at = baseline.calculated_at

        return baseline

    def get_baseline(self, user_id: str) -> Optional[Baseline]:
        with self.db.get_session() as session:
            record = session.query(BaselineRecord).filter_by(user_id=user_id).first()
            if record is None:
                return None
            return Baseline(
                user_id=record.user_id,
                calculated_at=record.calculated_at,
                hrv_baseline_rmssd=record.hrv_baseline_rmssd,
                rhr_baseline=record.rhr_baseline,
                typical_sleep_hours=record.typical_sleep_hours,
                data_points_count=record.data_points_count,
                hrv_days=record.hrv_days,
                rhr_days=record.rhr_days,
                sleep_days=record.sleep_days,
            )

    # Recovery scores

    def upsert_recovery_score(self, score: RecoveryScore) -> RecoveryScore:
        """Insert or overwrite the score for (user, date). Last writer wins."""
        try:
            return self._write_score(score)
        except IntegrityError:
            # A concurrent writer inserted the same day first; overwrite it
            logger.debug(f"Score for {score.user_id} on {score.score_date} inserted concurrently, retrying")
            return self._write_score(score)

    def _write_score(self, score: RecoveryScore) -> RecoveryScore:
        with self.db.get_session() as session:
            record = (
                session.query(RecoveryScoreRecord)
                .filter_by(user_id=score.user_id, score_date=score.score_date)
                .first()
            )
            if record is None:
                record = RecoveryScoreRecord(user_id=score.user_id, score_date=score.score_date)
                session.add(record)

            for name in SCORE_FIELDS:
                setattr(record, name, getattr(score, name))
            record.hrv_trend = score.hrv_trend.value
            record.recovery_status = score.recovery_status.value
            record.calculated_at = datetime.utcnow()

            session.flush()
            return self._to_score(record)

    def get_recovery_score(self, user_id: str, score_date: date) -> Optional[RecoveryScore]:
        with self.db.get_session() as session:
            record = (
                session.query(RecoveryScoreRecord)
                .filter_by(user_id=user_id, score_date=score_date)
                .first()
            )
            return self._to_score(record) if record else None

    def get_recovery_scores(self, user_id: str, start: date, end: date) -> List[RecoveryScore]:
        """Scores within [start, end], oldest first."""
        with self.db.get_session() as session:
            records = (
                session.query(RecoveryScoreRecord)
                .filter(
                    RecoveryScoreRecord.user_id == user_id,
                    RecoveryScoreRecord.score_date >= start,
                    RecoveryScoreRecord.score_date <= end,
                )
                .order_by(RecoveryScoreRecord.score_date)
                .all()
            )
            return [self._to_score(record) for record in records]

    @staticmethod
    def _to_score(record: RecoveryScoreRecord) -> RecoveryScore:
        return RecoveryScore(
            user_id=record.user_id,
            score_date=record.score_date,
            readiness_score=record.readiness_score,
            hrv_trend=HRVTrend(record.hrv_trend),
            recovery_status=RecoveryStatus(record.recovery_status),
            recommended_tss_adjustment=record.recommended_tss_adjustment,
            hrv_deviation=record.hrv_deviation,
            sleep_quality_score=record.sleep_quality_score,
            recovery_adequacy=record.recovery_adequacy,
            rhr_deviation=record.rhr_deviation,
            training_strain=record.training_strain,
            model_version=record.model_version,
            id=record.id,
            calculated_at=record.calculated_at,
        )

    # Alert preferences

    def get_alert_preferences(self, user_id: str) -> AlertPreferences:
        """Return the user's preferences, creating the defaults on first access."""
        with self.db.get_session() as session:
            record = self._preferences_record(session, user_id)
            return self._to_preferences(record)

    def update_alert_preferences(self, user_id: str, patch: Dict[str, Any]) -> AlertPreferences:
        with self.db.get_session() as session:
            record = self._preferences_record(session, user_id)
            for name, value in patch.items():
                setattr(record, PREFERENCE_COLUMNS[name], value)
            session.flush()
            return self._to_preferences(record)

    @staticmethod
    def _preferences_record(session, user_id: str, lock: bool = False) -> AlertPreferencesRecord:
        query = session.query(AlertPreferencesRecord).filter_by(user_id=user_id)
        if lock:
            query = query.with_for_update()
        record = query.first()

        if record is None:
            record = AlertPreferencesRecord(
                user_id=user_id,
                enabled=True,
                push_notifications=True,
                email_notifications=False,
                poor_recovery_threshold=config.DEFAULT_POOR_RECOVERY_THRESHOLD,
                critical_recovery_threshold=config.DEFAULT_CRITICAL_RECOVERY_THRESHOLD,
            )
            session.add(record)
            session.flush()
        return record

    @staticmethod
    def _to_preferences(record: AlertPreferencesRecord) -> AlertPreferences:
        return AlertPreferences(
            user_id=record.user_id,
            enabled=record.enabled,
            push_enabled=record.push_notifications,
            email_enabled=record.email_notifications,
            poor_recovery_threshold=record.poor_recovery_threshold,
            critical_recovery_threshold=record.critical_recovery_threshold,
        )

    # Alerts

    def insert_alert(self, alert: Alert) -> Alert:
        with self.db.get_session() as session:
            record = self._alert_record(alert)
            session.add(record)
            session.flush()
            return self._to_alert(record)

    def insert_alert_unless_recent(self, alert: Alert, since: datetime) -> Optional[Alert]:
        """Insert an alert unless one of the same type was created after ``since``.

        The check and the insert share one transaction that holds a lock on
        the user's preferences row, so concurrent evaluations for the same
        user cannot both pass the check.

        Returns:
            The persisted alert, or None when an existing alert is still cooling down
        """
        with self._alert_lock, self.db.get_session() as session:
            self._preferences_record(session, alert.user_id, lock=True)

            recent = (
                session.query(RecoveryAlertRecord.id)
                .filter(
                    RecoveryAlertRecord.user_id == alert.user_id,
                    RecoveryAlertRecord.alert_type == alert.alert_type.value,
                    RecoveryAlertRecord.created_at > since,
                )
                .first()
            )
            if recent is not None:
                return None

            record = self._alert_record(alert)
            session.add(record)
            session.flush()
            return self._to_alert(record)

    def get_last_alert(self, user_id: str, alert_type: AlertType) -> Optional[Alert]:
        with self.db.get_session() as session:
            record = (
                session.query(RecoveryAlertRecord)
                .filter_by(user_id=user_id, alert_type=alert_type.value)
                .order_by(RecoveryAlertRecord.created_at.desc(), RecoveryAlertRecord.id.desc())
                .first()
            )
            return self._to_alert(record) if record else None

    def list_alerts(
        self,
        user_id: str,
        limit: int = 20,
        include_acknowledged: bool = False,
    ) -> List[Alert]:
        """Most recent alerts first."""
        with self.db.get_session() as session:
            query = session.query(RecoveryAlertRecord).filter_by(user_id=user_id)
            if not include_acknowledged:
                query = query.filter(RecoveryAlertRecord.acknowledged_at.is_(None))
            records = (
                query.order_by(RecoveryAlertRecord.created_at.desc(), RecoveryAlertRecord.id.desc())
                .limit(limit)
                .all()
            )
            return [self._to_alert(record) for record in records]

    def acknowledge_alert(self, user_id: str, alert_id: int, now: Optional[datetime] = None) -> Alert:
        """Mark an unacknowledged alert of this user as acknowledged.

        Raises:
            NotFoundError: if the alert is missing, belongs to another user,
                or was already acknowledged
        """
        with self.db.get_session() as session:
            record = (
                session.query(RecoveryAlertRecord)
                .filter_by(id=alert_id, user_id=user_id)
                .filter(RecoveryAlertRecord.acknowledged_at.is_(None))
                .first()
            )
            if record is None:
                raise NotFoundError("Alert", str(alert_id), details={"user_id": user_id})

            record.acknowledged_at = now or datetime.utcnow()
            session.flush()
            return self._to_alert(record)

    @staticmethod
    def _alert_record(alert: Alert) -> RecoveryAlertRecord:
        return RecoveryAlertRecord(
            user_id=alert.user_id,
            alert_type=alert.alert_type.value,
            severity=alert.severity.value,
            message=alert.message,
            recommendations=json.dumps([
                {
                    "priority": r.priority,
                    "category": r.category,
                    "message": r.message,
                    "action": r.action,
                }
                for r in alert.recommendations
            ]),
            recovery_score_id=alert.recovery_score_id,
            acknowledged_at=alert.acknowledged_at,
            created_at=alert.created_at,
        )

    @staticmethod
    def _to_alert(record: RecoveryAlertRecord) -> Alert:
        recommendations = json.loads(record.recommendations) if record.recommendations else []
        return Alert(
            user_id=record.user_id,
            alert_type=AlertType(record.alert_type),
            severity=Severity(record.severity),
            message=record.message,
            created_at=record.created_at,
            recommendations=[AlertRecommendation(**r) for r in recommendations],
            recovery_score_id=record.recovery_score_id,
            acknowledged_at=record.acknowledged_at,
            id=record.id,
        )

    # Training settings

    def get_training_settings(self, user_id: str) -> TrainingRecoverySettings:
        """Return the user's settings, creating the defaults on first access."""
        with self.db.get_session() as session:
            return self._to_settings(self._settings_record(session, user_id))

    def update_training_settings(self, user_id: str, patch: Dict[str, Any]) -> TrainingRecoverySettings:
        with self.db.get_session() as session:
            record = self._settings_record(session, user_id)
            for name, value in patch.items():
                if name == "adjustment_aggressiveness":
                    value = Aggressiveness(value).value
                setattr(record, name, value)
            session.flush()
            return self._to_settings(record)

    @staticmethod
    def _settings_record(session, user_id: str) -> TrainingRecoverySettingsRecord:
        record = session.query(TrainingRecoverySettingsRecord).filter_by(user_id=user_id).first()
        if record is None:
            defaults = TrainingRecoverySettings(user_id=user_id)
            record = TrainingRecoverySettingsRecord(user_id=user_id)
            for name in SETTINGS_FIELDS:
                setattr(record, name, getattr(defaults, name))
            record.adjustment_aggressiveness = defaults.adjustment_aggressiveness.value
            session.add(record)
            session.flush()
        return record

    @staticmethod
    def _to_settings(record: TrainingRecoverySettingsRecord) -> TrainingRecoverySettings:
        values = {name: getattr(record, name) for name in SETTINGS_FIELDS}
        values["adjustment_aggressiveness"] = Aggressiveness(record.adjustment_aggressiveness)
        return TrainingRecoverySettings(user_id=record.user_id, **values)

    # Adjustment audit log

    def append_adjustment_log(self, entry: AdjustmentDecisionLog) -> int:
        """Append an audit row and return its id."""
        with self.db.get_session() as session:
            record = AdjustmentDecisionLogRecord(
                user_id=entry.user_id,
                adjustment_date=entry.adjustment_date,
                recovery_score_id=entry.recovery_score_id,
                original_tss=entry.original_tss,
                recommended_tss=entry.recommended_tss,
                adjustment_type=entry.adjustment_type.value,
                adjustment_applied=entry.adjustment_applied,
                actual_tss=entry.actual_tss,
                outcome_recovery_score=entry.outcome_recovery_score,
                outcome_training_quality=entry.outcome_training_quality,
                user_feedback=entry.user_feedback,
            )
            session.add(record)
            session.flush()
            return record.id

    def list_adjustment_logs(self, user_id: str) -> List[AdjustmentDecisionLog]:
        with self.db.get_session() as session:
            records = (
                session.query(AdjustmentDecisionLogRecord)
                .filter_by(user_id=user_id)
                .order_by(AdjustmentDecisionLogRecord.adjustment_date, AdjustmentDecisionLogRecord.id)
                .all()
            )
            return [
                AdjustmentDecisionLog(
                    user_id=r.user_id,
                    adjustment_date=r.adjustment_date,
                    original_tss=r.original_tss,
                    recommended_tss=r.recommended_tss,
                    adjustment_type=AdjustmentType(r.adjustment_type),
                    recovery_score_id=r.recovery_score_id,
                    adjustment_applied=r.adjustment_applied,
                    actual_tss=r.actual_tss,
                    outcome_recovery_score=r.outcome_recovery_score,
                    outcome_training_quality=r.outcome_training_quality,
                    user_feedback=r.user_feedback,
                )
                for r in records
            ]
