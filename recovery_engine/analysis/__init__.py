"""Analysis module for recovery scoring, alerts and training adjustments."""

from .adjustment import AdjustmentEngine, AdjustmentRecommendation, WorkoutSummary
from .alerts import AlertEngine
from .baseline import BaselineCalculator
from .patterns import PatternDetector, TrendReport
from .scoring import RecoveryScorer
from .signals import HRVReading, RestingHRReading, SignalType, SleepReading
from .trend import TrendAnalyzer
from .types import (
    Aggressiveness,
    Alert,
    AlertPreferences,
    AlertType,
    Baseline,
    HRVTrend,
    ReadinessTrend,
    RecoveryScore,
    RecoveryStatus,
    Severity,
    TrainingRecoverySettings,
)

__all__ = [
    "AdjustmentEngine",
    "AdjustmentRecommendation",
    "WorkoutSummary",
    "AlertEngine",
    "BaselineCalculator",
    "PatternDetector",
    "TrendReport",
    "RecoveryScorer",
    "HRVReading",
    "RestingHRReading",
    "SignalType",
    "SleepReading",
    "TrendAnalyzer",
    "Aggressiveness",
    "Alert",
    "AlertPreferences",
    "AlertType",
    "Baseline",
    "HRVTrend",
    "ReadinessTrend",
    "RecoveryScore",
    "RecoveryStatus",
    "Severity",
    "TrainingRecoverySettings",
]
