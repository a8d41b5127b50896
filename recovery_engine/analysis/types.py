"""Shared value types for the recovery core."""

from datetime import date, datetime
from typing import List, Optional
from dataclasses import dataclass, field
from enum import Enum

from ..config import config
from ..exceptions import InsufficientDataError


class HRVTrend(Enum):
    """Short-term HRV direction."""
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"
    INSUFFICIENT_DATA = "insufficient_data"


class ReadinessTrend(Enum):
    """Direction of readiness across a reporting period."""
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"
    INSUFFICIENT_DATA = "insufficient_data"


class RecoveryStatus(Enum):
    """Recovery classification bands, closed on the lower bound."""
    OPTIMAL = "optimal"     # 85-100
    GOOD = "good"           # 70-84
    FAIR = "fair"           # 50-69
    POOR = "poor"           # 30-49
    CRITICAL = "critical"   # 0-29

    @classmethod
    def from_score(cls, score: float) -> "RecoveryStatus":
        if score >= 85.0:
            return cls.OPTIMAL
        elif score >= 70.0:
            return cls.GOOD
        elif score >= 50.0:
            return cls.FAIR
        elif score >= 30.0:
            return cls.POOR
        else:
            return cls.CRITICAL


class Severity(Enum):
    """Alert severity."""
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def priority(self) -> str:
        if self is Severity.CRITICAL:
            return "critical"
        elif self is Severity.WARNING:
            return "high"
        return "low"


class AlertType(Enum):
    """Alert rule identifiers. Cooldown is tracked per type."""
    CRITICAL_RECOVERY = "critical_recovery"
    CONSECUTIVE_POOR_RECOVERY = "consecutive_poor_recovery"
    DECLINING_HRV = "declining_hrv"
    HIGH_STRAIN_POOR_RECOVERY = "high_strain_poor_recovery"
    POOR_SLEEP = "poor_sleep"


class Aggressiveness(Enum):
    """How early training load reductions kick in."""
    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"


@dataclass
class Baseline:
    """Rolling personal baseline. A metric is None until enough days exist."""
    user_id: str
    calculated_at: datetime
    hrv_baseline_rmssd: Optional[float] = None
    rhr_baseline: Optional[float] = None
    typical_sleep_hours: Optional[float] = None
    data_points_count: int = 0
    hrv_days: int = 0
    rhr_days: int = 0
    sleep_days: int = 0

    @property
    def has_hrv(self) -> bool:
        return self.hrv_baseline_rmssd is not None

    @property
    def has_rhr(self) -> bool:
        return self.rhr_baseline is not None

    def require(self, metric: str) -> float:
        """Return a baseline value, raising InsufficientDataError when absent."""
        values = {
            "hrv": (self.hrv_baseline_rmssd, self.hrv_days),
            "rhr": (self.rhr_baseline, self.rhr_days),
            "sleep": (self.typical_sleep_hours, self.sleep_days),
        }
        if metric not in values:
            raise ValueError(f"Unknown baseline metric: {metric}")

        value, days = values[metric]
        if value is None:
            raise InsufficientDataError(metric, days, config.BASELINE_MIN_DAYS)
        return value


@dataclass
class RecoveryScore:
    """Daily composite readiness for one user. One per (user, date)."""
    user_id: str
    score_date: date
    readiness_score: float
    hrv_trend: HRVTrend
    recovery_status: RecoveryStatus
    recommended_tss_adjustment: float
    hrv_deviation: Optional[float] = None
    sleep_quality_score: Optional[float] = None
    recovery_adequacy: Optional[float] = None
    rhr_deviation: Optional[float] = None
    training_strain: Optional[float] = None
    model_version: str = "1.0.0-simple"
    id: Optional[int] = field(default=None, compare=False)
    calculated_at: Optional[datetime] = field(default=None, compare=False)


@dataclass
class AlertPreferences:
    """Per-user alert configuration."""
    user_id: str
    enabled: bool = True
    push_enabled: bool = True
    email_enabled: bool = False
    poor_recovery_threshold: float = 40.0
    critical_recovery_threshold: float = 20.0


@dataclass
class AlertRecommendation:
    priority: str
    category: str
    message: str
    action: str


@dataclass
class Alert:
    """Recovery alert. Append-only apart from acknowledgement."""
    user_id: str
    alert_type: AlertType
    severity: Severity
    message: str
    created_at: datetime
    recommendations: List[AlertRecommendation] = field(default_factory=list)
    recovery_score_id: Optional[int] = None
    acknowledged_at: Optional[datetime] = None
    id: Optional[int] = None


@dataclass
class TrainingRecoverySettings:
    """Per-user preferences for recovery-based training adjustments."""
    user_id: str
    auto_adjust_enabled: bool = False
    adjustment_aggressiveness: Aggressiveness = Aggressiveness.MODERATE
    min_rest_days_per_week: int = 1
    max_consecutive_training_days: int = 6
    allow_intensity_reduction: bool = True
    allow_volume_reduction: bool = True
    allow_workout_swap: bool = False
