"""Pattern detection and trend reporting over a recovery score history."""

import pandas as pd
from datetime import date
from typing import Any, Dict, Iterable, List, Optional
from dataclasses import dataclass, field

from ..config import config
from .history import matching_runs
from .trend import TrendAnalyzer
from .types import ReadinessTrend, RecoveryScore, RecoveryStatus

POOR_RECOVERY_READINESS = 50.0
MIN_POOR_RUN_DAYS = 3
WEEKEND_DIFFERENCE_POINTS = 10.0

CONSECUTIVE_POOR_CONFIDENCE = 0.8
WEEKEND_CONFIDENCE = 0.7


@dataclass
class RecoveryPattern:
    pattern_type: str
    description: str
    confidence: float
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RecoveryDataPoint:
    date: date
    readiness_score: float
    recovery_status: RecoveryStatus


@dataclass
class TrendReport:
    """Readiness summary over a period of days."""
    user_id: str
    period_days: int
    average_readiness: float
    trend_direction: ReadinessTrend
    data_points: List[RecoveryDataPoint] = field(default_factory=list)
    patterns: List[RecoveryPattern] = field(default_factory=list)


class PatternDetector:
    """Read-only scans for recurring recovery patterns.

    Every detector returns a possibly empty list; finding nothing is never
    an error.
    """

    def __init__(self, window_days: Optional[int] = None):
        self.window_days = window_days or config.PATTERN_WINDOW_DAYS

    def detect(self, scores: Iterable[RecoveryScore]) -> List[RecoveryPattern]:
        scores = list(scores)
        return self.consecutive_poor_recovery(scores) + self.weekend_recovery(scores)

    @staticmethod
    def consecutive_poor_recovery(scores: Iterable[RecoveryScore]) -> List[RecoveryPattern]:
        """Flag the longest run of 3+ calendar-consecutive days with readiness below 50."""
        runs = [
            run for run in matching_runs(scores, lambda s: s.readiness_score < POOR_RECOVERY_READINESS)
            if len(run) >= MIN_POOR_RUN_DAYS
        ]
        if not runs:
            return []

        longest = max(runs, key=len)
        return [
            RecoveryPattern(
                pattern_type="consecutive_poor_recovery",
                description=f"Detected {len(longest)} consecutive days of poor recovery",
                confidence=CONSECUTIVE_POOR_CONFIDENCE,
                details={
                    "start_date": longest[0].score_date.isoformat(),
                    "end_date": longest[-1].score_date.isoformat(),
                    "days": len(longest),
                    "occurrences": len(runs),
                },
            )
        ]

    @staticmethod
    def weekend_recovery(scores: Iterable[RecoveryScore]) -> List[RecoveryPattern]:
        """Flag weekends that recover more than 10 points better than weekdays."""
        df = pd.DataFrame([{
            'date': pd.Timestamp(s.score_date),
            'readiness': s.readiness_score,
        } for s in scores])

        if df.empty:
            return []

        is_weekend = df['date'].dt.dayofweek >= 5
        weekend = df.loc[is_weekend, 'readiness']
        weekday = df.loc[~is_weekend, 'readiness']

        if weekend.empty or weekday.empty:
            return []

        weekend_mean = float(weekend.mean())
        weekday_mean = float(weekday.mean())
        difference = weekend_mean - weekday_mean

        if difference <= WEEKEND_DIFFERENCE_POINTS:
            return []

        return [
            RecoveryPattern(
                pattern_type="weekend_recovery",
                description=f"Recovery is {difference:.1f} points better on weekends",
                confidence=WEEKEND_CONFIDENCE,
                details={
                    "weekend_average": round(weekend_mean, 1),
                    "weekday_average": round(weekday_mean, 1),
                },
            )
        ]

    def trend_report(
        self,
        user_id: str,
        scores: Iterable[RecoveryScore],
        period_days: int,
    ) -> TrendReport:
        """Average, direction, data points and patterns for a period."""
        ordered = sorted(scores, key=lambda s: s.score_date)

        if not ordered:
            return TrendReport(
                user_id=user_id,
                period_days=period_days,
                average_readiness=0.0,
                trend_direction=ReadinessTrend.INSUFFICIENT_DATA,
            )

        readiness = pd.Series([s.readiness_score for s in ordered])

        return TrendReport(
            user_id=user_id,
            period_days=period_days,
            average_readiness=float(readiness.mean()),
            trend_direction=TrendAnalyzer.readiness_direction(ordered),
            data_points=[
                RecoveryDataPoint(s.score_date, s.readiness_score, s.recovery_status)
                for s in ordered
            ],
            patterns=self.detect(ordered),
        )
