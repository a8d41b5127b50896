"""Short-term trend classification for HRV and readiness."""

import numpy as np
from datetime import date, timedelta
from typing import Iterable, List, Optional, Sequence

from ..config import config
from .baseline import daily_means
from .signals import HRVReading
from .types import HRVTrend, ReadinessTrend, RecoveryScore


def _split_halves(values: Sequence[float]):
    """Split chronologically ordered values into (older, recent).

    The recent half gets the smaller share when the count is odd.
    """
    recent_count = len(values) // 2
    split = len(values) - recent_count
    return values[:split], values[split:]


class TrendAnalyzer:
    """Classifies the direction of HRV over the last few measured days."""

    def __init__(
        self,
        window_days: Optional[int] = None,
        min_days: Optional[int] = None,
        change_percent: Optional[float] = None,
        lookback_days: Optional[int] = None,
    ):
        self.window_days = window_days or config.TREND_WINDOW_DAYS
        self.min_days = min_days or config.TREND_MIN_DAYS
        self.change_percent = change_percent if change_percent is not None else config.TREND_CHANGE_PERCENT
        self.lookback_days = lookback_days or config.BASELINE_WINDOW_DAYS

    def recent_hrv_days(self, hrv_readings: Iterable[HRVReading], as_of: date) -> List[float]:
        """Daily mean RMSSD for the most recent measured days up to and including as_of."""
        start = as_of - timedelta(days=self.lookback_days)
        per_day = daily_means(hrv_readings, start, as_of)
        return list(per_day.values())[-self.window_days:]

    def classify_hrv(self, hrv_readings: Iterable[HRVReading], as_of: date) -> HRVTrend:
        """Compare the recent half of the window against the older half."""
        values = self.recent_hrv_days(hrv_readings, as_of)
        if len(values) < self.min_days:
            return HRVTrend.INSUFFICIENT_DATA

        older, recent = _split_halves(values)
        older_mean = float(np.mean(older))
        recent_mean = float(np.mean(recent))

        if older_mean <= 0:
            # RMSSD of 0 is a legal boundary value; avoid dividing by it
            return HRVTrend.IMPROVING if recent_mean > 0 else HRVTrend.STABLE

        change = (recent_mean - older_mean) / older_mean * 100.0
        if change > self.change_percent:
            return HRVTrend.IMPROVING
        elif change < -self.change_percent:
            return HRVTrend.DECLINING
        return HRVTrend.STABLE

    @staticmethod
    def readiness_direction(scores: Iterable[RecoveryScore], threshold_points: float = 5.0) -> ReadinessTrend:
        """Direction of readiness across a period.

        Uses absolute readiness points rather than percent. Fewer than three
        scores is INSUFFICIENT_DATA.
        """
        ordered = sorted(scores, key=lambda s: s.score_date)
        if len(ordered) < 3:
            return ReadinessTrend.INSUFFICIENT_DATA

        older, recent = _split_halves([s.readiness_score for s in ordered])
        change = float(np.mean(recent)) - float(np.mean(older))

        if change > threshold_points:
            return ReadinessTrend.IMPROVING
        elif change < -threshold_points:
            return ReadinessTrend.DECLINING
        return ReadinessTrend.STABLE
