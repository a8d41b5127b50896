"""
Rolling personal baselines for HRV, resting heart rate and sleep duration.

Each metric is handled independently over the trailing window (30 days by
default, ending the day before the as-of date). Same-day readings are first
collapsed to their mean; the baseline is the mean of those daily values. A
metric with fewer distinct days than the minimum (14 by default) gets no
baseline at all rather than a zero.

Baselines are recomputed from raw readings on every call. Nothing is cached.
"""

import numpy as np
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, Optional, Tuple

from ..config import config
from .signals import HRVReading, RestingHRReading, SignalReading, SleepReading
from .types import Baseline


def daily_means(
    readings: Iterable[SignalReading],
    start: date,
    end: date,
) -> Dict[date, float]:
    """Collapse readings within [start, end] to one mean value per calendar day."""
    by_day = defaultdict(list)
    for reading in readings:
        if start <= reading.date <= end:
            by_day[reading.date].append(float(reading.value))

    return {day: float(np.mean(values)) for day, values in sorted(by_day.items())}


class BaselineCalculator:
    """Derives a user's rolling physiological baselines from signal history."""

    def __init__(self, window_days: Optional[int] = None, min_days: Optional[int] = None):
        self.window_days = window_days or config.BASELINE_WINDOW_DAYS
        self.min_days = min_days or config.BASELINE_MIN_DAYS

    def window(self, as_of: date) -> Tuple[date, date]:
        """Inclusive date range of the trailing window for an as-of date."""
        return as_of - timedelta(days=self.window_days), as_of - timedelta(days=1)

    def calculate(
        self,
        user_id: str,
        hrv_readings: Iterable[HRVReading] = (),
        rhr_readings: Iterable[RestingHRReading] = (),
        sleep_readings: Iterable[SleepReading] = (),
        now: datetime = None,
    ) -> Baseline:
        """Calculate all baselines as of ``now``.

        Args:
            user_id: Owner of the readings
            hrv_readings: HRV history (anything outside the window is ignored)
            rhr_readings: Resting HR history
            sleep_readings: Sleep history
            now: Reference time (defaults to utcnow)

        Returns:
            Baseline with each metric present only when enough days exist
        """
        if now is None:
            now = datetime.utcnow()

        start, end = self.window(now.date())

        hrv_value, hrv_days = self._metric_baseline(hrv_readings, start, end)
        rhr_value, rhr_days = self._metric_baseline(rhr_readings, start, end)
        sleep_value, sleep_days = self._metric_baseline(sleep_readings, start, end)

        return Baseline(
            user_id=user_id,
            calculated_at=now,
            hrv_baseline_rmssd=hrv_value,
            rhr_baseline=rhr_value,
            typical_sleep_hours=sleep_value,
            data_points_count=max(hrv_days, rhr_days, sleep_days),
            hrv_days=hrv_days,
            rhr_days=rhr_days,
            sleep_days=sleep_days,
        )

    def _metric_baseline(
        self,
        readings: Iterable[SignalReading],
        start: date,
        end: date,
    ) -> Tuple[Optional[float], int]:
        """Return (baseline or None, distinct day count) for one metric."""
        per_day = daily_means(readings, start, end)
        day_count = len(per_day)

        if day_count < self.min_days:
            return None, day_count

        return float(np.mean(list(per_day.values()))), day_count
