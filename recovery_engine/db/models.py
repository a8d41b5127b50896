"""Database models for physiological signals, recovery scores and alerts."""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, Date, DateTime, Boolean, Text, UniqueConstraint, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class HRVData(Base):
    """Heart rate variability readings."""

    __tablename__ = "hrv_readings"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(50), nullable=False, index=True)
    date = Column(Date, nullable=False)
    measurement_timestamp = Column(DateTime)

    rmssd = Column(Float, nullable=False)  # ms
    sdnn = Column(Float)  # ms
    pnn50 = Column(Float)  # %
    source = Column(String(50), default="manual")  # oura, whoop, garmin, polar, manual

    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (Index("ix_hrv_readings_user_date", "user_id", "date"),)

    def __repr__(self):
        return f"<HRVData(user={self.user_id}, date={self.date}, rmssd={self.rmssd})>"


class SleepData(Base):
    """Sleep records, keyed by wake-up date."""

    __tablename__ = "sleep_records"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(50), nullable=False, index=True)
    date = Column(Date, nullable=False)
    measurement_timestamp = Column(DateTime)

    # Sleep Stages (hours)
    total_sleep_hours = Column(Float, nullable=False)
    deep_sleep_hours = Column(Float)
    rem_sleep_hours = Column(Float)
    light_sleep_hours = Column(Float)
    awake_hours = Column(Float)

    # Sleep Quality
    sleep_efficiency = Column(Float)  # %
    sleep_latency_minutes = Column(Float)

    source = Column(String(50), default="manual")
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (Index("ix_sleep_records_user_date", "user_id", "date"),)

    def __repr__(self):
        return f"<SleepData(user={self.user_id}, date={self.date}, hours={self.total_sleep_hours})>"


class RestingHRData(Base):
    """Resting heart rate readings."""

    __tablename__ = "resting_hr_readings"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(50), nullable=False, index=True)
    date = Column(Date, nullable=False)
    measurement_timestamp = Column(DateTime)
    resting_hr = Column(Float, nullable=False)  # bpm
    source = Column(String(50), default="manual")
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (Index("ix_resting_hr_readings_user_date", "user_id", "date"),)

    def __repr__(self):
        return f"<RestingHRData(user={self.user_id}, date={self.date}, bpm={self.resting_hr})>"


class BaselineRecord(Base):
    """Latest rolling baseline per user."""

    __tablename__ = "recovery_baselines"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(50), unique=True, nullable=False)
    hrv_baseline_rmssd = Column(Float)
    rhr_baseline = Column(Float)
    typical_sleep_hours = Column(Float)
    data_points_count = Column(Integer, default=0)
    hrv_days = Column(Integer, default=0)
    rhr_days = Column(Integer, default=0)
    sleep_days = Column(Integer, default=0)
    calculated_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<BaselineRecord(user={self.user_id}, hrv={self.hrv_baseline_rmssd}, rhr={self.rhr_baseline})>"


class RecoveryScoreRecord(Base):
    """Daily readiness score. One row per user and date."""

    __tablename__ = "recovery_scores"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(50), nullable=False)
    score_date = Column(Date, nullable=False)

    readiness_score = Column(Float, nullable=False)  # 0-100
    hrv_trend = Column(String(30), nullable=False)  # improving, stable, declining, insufficient_data
    recovery_status = Column(String(20), nullable=False)  # optimal, good, fair, poor, critical
    recommended_tss_adjustment = Column(Float, nullable=False)

    # Components
    hrv_deviation = Column(Float)  # %
    sleep_quality_score = Column(Float)
    recovery_adequacy = Column(Float)
    rhr_deviation = Column(Float)  # %
    training_strain = Column(Float)

    model_version = Column(String(30), nullable=False)
    calculated_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (UniqueConstraint("user_id", "score_date", name="uq_recovery_scores_user_date"),)

    def __repr__(self):
        return f"<RecoveryScoreRecord(user={self.user_id}, date={self.score_date}, readiness={self.readiness_score:.1f})>"


class AlertPreferencesRecord(Base):
    """Per-user alert configuration."""

    __tablename__ = "alert_preferences"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(50), unique=True, nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)
    push_notifications = Column(Boolean, default=True, nullable=False)
    email_notifications = Column(Boolean, default=False, nullable=False)
    poor_recovery_threshold = Column(Float, default=40.0, nullable=False)
    critical_recovery_threshold = Column(Float, default=20.0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class RecoveryAlertRecord(Base):
    """Created alerts. Rows are never updated except for acknowledgement."""

    __tablename__ = "recovery_alerts"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(50), nullable=False)
    alert_type = Column(String(50), nullable=False)
    severity = Column(String(20), nullable=False)  # info, warning, critical
    message = Column(Text, nullable=False)
    recommendations = Column(Text)  # JSON list
    recovery_score_id = Column(Integer)
    acknowledged_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (Index("ix_recovery_alerts_user_type_created", "user_id", "alert_type", "created_at"),)

    def __repr__(self):
        return f"<RecoveryAlertRecord(user={self.user_id}, type={self.alert_type}, created={self.created_at})>"


class TrainingRecoverySettingsRecord(Base):
    """Per-user training adjustment preferences."""

    __tablename__ = "training_recovery_settings"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(50), unique=True, nullable=False)
    auto_adjust_enabled = Column(Boolean, default=False, nullable=False)
    adjustment_aggressiveness = Column(String(20), default="moderate", nullable=False)
    min_rest_days_per_week = Column(Integer, default=1, nullable=False)
    max_consecutive_training_days = Column(Integer, default=6, nullable=False)
    allow_intensity_reduction = Column(Boolean, default=True, nullable=False)
    allow_volume_reduction = Column(Boolean, default=True, nullable=False)
    allow_workout_swap = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class AdjustmentDecisionLogRecord(Base):
    """Audit trail of training adjustment recommendations."""

    __tablename__ = "adjustment_decision_logs"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(50), nullable=False, index=True)
    adjustment_date = Column(Date, nullable=False)
    recovery_score_id = Column(Integer)
    original_tss = Column(Float, nullable=False)
    recommended_tss = Column(Float, nullable=False)
    adjustment_type = Column(String(30), nullable=False)
    adjustment_applied = Column(Boolean, default=False, nullable=False)
    actual_tss = Column(Float)

    # Outcome tracking, filled in later by the surrounding application
    outcome_recovery_score = Column(Float)
    outcome_training_quality = Column(String(50))
    user_feedback = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return (
            f"<AdjustmentDecisionLogRecord(user={self.user_id}, date={self.adjustment_date}, "
            f"tss={self.original_tss}->{self.recommended_tss})>"
        )
