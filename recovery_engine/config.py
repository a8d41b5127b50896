"""Configuration management for the recovery engine."""

import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Application configuration."""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./recovery_engine.db")

    # Application
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    MODEL_VERSION: str = os.getenv("MODEL_VERSION", "1.0.0-simple")

    # Baseline Parameters
    BASELINE_WINDOW_DAYS: int = int(os.getenv("BASELINE_WINDOW_DAYS", "30"))  # trailing window
    BASELINE_MIN_DAYS: int = int(os.getenv("BASELINE_MIN_DAYS", "14"))  # distinct days per metric

    # HRV Trend Parameters
    TREND_WINDOW_DAYS: int = int(os.getenv("TREND_WINDOW_DAYS", "7"))
    TREND_MIN_DAYS: int = int(os.getenv("TREND_MIN_DAYS", "4"))
    TREND_CHANGE_PERCENT: float = float(os.getenv("TREND_CHANGE_PERCENT", "5.0"))

    # Alerting
    ALERT_COOLDOWN_HOURS: float = float(os.getenv("ALERT_COOLDOWN_HOURS", "24"))
    HIGH_STRAIN_THRESHOLD: float = float(os.getenv("HIGH_STRAIN_THRESHOLD", "1300"))
    DEFAULT_POOR_RECOVERY_THRESHOLD: float = float(os.getenv("DEFAULT_POOR_RECOVERY_THRESHOLD", "40.0"))
    DEFAULT_CRITICAL_RECOVERY_THRESHOLD: float = float(os.getenv("DEFAULT_CRITICAL_RECOVERY_THRESHOLD", "20.0"))

    # Pattern Detection
    PATTERN_WINDOW_DAYS: int = int(os.getenv("PATTERN_WINDOW_DAYS", "30"))

    # Batch Recompute
    BATCH_USER_TIMEOUT_SECONDS: float = float(os.getenv("BATCH_USER_TIMEOUT_SECONDS", "30"))
    BATCH_MAX_WORKERS: int = int(os.getenv("BATCH_MAX_WORKERS", "4"))

    # Notification Delivery
    PUSH_WEBHOOK_URL: str = os.getenv("PUSH_WEBHOOK_URL", "")
    EMAIL_WEBHOOK_URL: str = os.getenv("EMAIL_WEBHOOK_URL", "")
    NOTIFICATION_TIMEOUT_SECONDS: float = float(os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "10"))

    # Physiological Bounds - enforced at ingestion and re-checked by the scorer
    SIGNAL_BOUNDS = {
        "rmssd": (0.0, 200.0),  # ms
        "sdnn": (0.0, 200.0),  # ms
        "pnn50": (0.0, 100.0),  # %
        "total_sleep_hours": (0.0, 24.0),
        "deep_sleep_hours": (0.0, 24.0),
        "rem_sleep_hours": (0.0, 24.0),
        "light_sleep_hours": (0.0, 24.0),
        "awake_hours": (0.0, 24.0),
        "sleep_efficiency": (0.0, 100.0),  # %
        "sleep_latency_minutes": (0.0, None),
        "resting_hr": (30.0, 150.0),  # bpm
    }

    @classmethod
    def validate(cls) -> bool:
        """Validate configuration values."""
        if cls.BASELINE_MIN_DAYS > cls.BASELINE_WINDOW_DAYS:
            raise ValueError(
                "BASELINE_MIN_DAYS cannot exceed BASELINE_WINDOW_DAYS"
            )
        if cls.TREND_MIN_DAYS > cls.TREND_WINDOW_DAYS:
            raise ValueError("TREND_MIN_DAYS cannot exceed TREND_WINDOW_DAYS")
        if cls.ALERT_COOLDOWN_HOURS < 0:
            raise ValueError("ALERT_COOLDOWN_HOURS must be non-negative")
        if cls.BATCH_MAX_WORKERS < 1:
            raise ValueError("BATCH_MAX_WORKERS must be at least 1")
        return True

    @classmethod
    def has_webhooks(cls) -> bool:
        """Check whether any webhook delivery endpoint is configured."""
        return bool(cls.PUSH_WEBHOOK_URL or cls.EMAIL_WEBHOOK_URL)


config = Config()
