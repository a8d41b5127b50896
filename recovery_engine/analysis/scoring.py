"""
Daily composite readiness scoring.

Combines the day's signals with the personal baseline and the HRV trend:

- HRV deviation: percent above/below the RMSSD baseline (higher is better)
- RHR deviation: percent above/below the resting HR baseline (higher is worse)
- Sleep quality: 50 base, +25 for 7-9h (+15 for 6-7h or 9-10h), +efficiency/4
- Recovery adequacy: mean of the present components, clamped to [0, 100]
- Readiness: adequacy, else sleep quality, else a neutral 50

The result is a pure function of its inputs, so recomputing a day with the
same readings and baseline yields an identical score.
"""

import logging
import numpy as np
from datetime import date
from typing import Iterable, List, Optional
from dataclasses import dataclass

from ..config import config
from ..exceptions import ComputationError
from .baseline import daily_means
from .data_validation import DataValidator
from .signals import HRVReading, RestingHRReading, SleepReading
from .trend import TrendAnalyzer
from .types import Baseline, RecoveryScore, RecoveryStatus

logger = logging.getLogger(__name__)

NEUTRAL_READINESS = 50.0

# (minimum readiness, TSS multiplier), checked top-down
TSS_ADJUSTMENT_TABLE = [
    (80.0, 1.1),
    (70.0, 1.0),
    (60.0, 0.95),
    (50.0, 0.85),
    (40.0, 0.7),
    (30.0, 0.5),
]
MIN_TSS_ADJUSTMENT = 0.3


@dataclass
class DailySignals:
    """The representative signal values for a single day."""
    hrv_rmssd: Optional[float] = None
    resting_hr: Optional[float] = None
    sleep: Optional[SleepReading] = None


class RecoveryScorer:
    """Computes the daily RecoveryScore from signals, baseline and trend."""

    def __init__(
        self,
        trend_analyzer: Optional[TrendAnalyzer] = None,
        validator: Optional[DataValidator] = None,
        model_version: Optional[str] = None,
    ):
        self.trend_analyzer = trend_analyzer or TrendAnalyzer()
        self.validator = validator or DataValidator()
        self.model_version = model_version or config.MODEL_VERSION

    def score(
        self,
        user_id: str,
        score_date: date,
        baseline: Baseline,
        hrv_readings: Iterable[HRVReading] = (),
        rhr_readings: Iterable[RestingHRReading] = (),
        sleep_readings: Iterable[SleepReading] = (),
        training_strain: Optional[float] = None,
    ) -> RecoveryScore:
        """Score one user-day.

        Args:
            user_id: Owner of the readings
            score_date: Day being scored
            baseline: Baseline computed as of score_date
            hrv_readings: HRV history covering at least the trend window
            rhr_readings: Resting HR readings (only score_date is used)
            sleep_readings: Sleep records (only score_date is used)
            training_strain: Optional externally computed strain

        Returns:
            RecoveryScore for (user_id, score_date)
        """
        hrv_readings = list(hrv_readings)
        signals = self.daily_signals(score_date, hrv_readings, list(rhr_readings), list(sleep_readings))

        hrv_trend = self.trend_analyzer.classify_hrv(hrv_readings, score_date)
        hrv_deviation = self.hrv_deviation(signals.hrv_rmssd, baseline)
        rhr_deviation = self.rhr_deviation(signals.resting_hr, baseline)
        sleep_quality = self.sleep_quality(signals.sleep)
        adequacy = self.recovery_adequacy(hrv_deviation, sleep_quality, rhr_deviation)
        readiness = self.readiness(adequacy, sleep_quality)

        if not 0.0 <= readiness <= 100.0:
            details = {
                "user_id": user_id,
                "score_date": score_date.isoformat(),
                "readiness": readiness,
                "sleep_quality": sleep_quality,
                "recovery_adequacy": adequacy,
            }
            logger.error(f"Readiness out of range for {user_id} on {score_date}: {details}")
            raise ComputationError("Readiness score outside [0, 100]", details=details)

        return RecoveryScore(
            user_id=user_id,
            score_date=score_date,
            readiness_score=readiness,
            hrv_trend=hrv_trend,
            recovery_status=RecoveryStatus.from_score(readiness),
            recommended_tss_adjustment=self.tss_adjustment(readiness),
            hrv_deviation=hrv_deviation,
            sleep_quality_score=sleep_quality,
            recovery_adequacy=adequacy,
            rhr_deviation=rhr_deviation,
            training_strain=training_strain,
            model_version=self.model_version,
        )

    def daily_signals(
        self,
        day: date,
        hrv_readings: List[HRVReading],
        rhr_readings: List[RestingHRReading],
        sleep_readings: List[SleepReading],
    ) -> DailySignals:
        """Pick the day's representative values, validating them first."""
        todays_hrv = [r for r in hrv_readings if r.date == day]
        todays_rhr = [r for r in rhr_readings if r.date == day]
        todays_sleep = [r for r in sleep_readings if r.date == day]

        self.validator.validate_readings(todays_hrv + todays_rhr + todays_sleep)

        sleep = None
        if todays_sleep:
            # Latest record of the night wins when a device re-syncs
            sleep = sorted(
                todays_sleep,
                key=lambda r: (r.timestamp is not None, r.timestamp or 0),
            )[-1]

        return DailySignals(
            hrv_rmssd=daily_means(todays_hrv, day, day).get(day),
            resting_hr=daily_means(todays_rhr, day, day).get(day),
            sleep=sleep,
        )

    @staticmethod
    def hrv_deviation(rmssd: Optional[float], baseline: Baseline) -> Optional[float]:
        """Percent deviation of today's RMSSD from baseline. Positive is better."""
        if rmssd is None or not baseline.has_hrv or baseline.hrv_baseline_rmssd == 0:
            return None
        return (rmssd - baseline.hrv_baseline_rmssd) / baseline.hrv_baseline_rmssd * 100.0

    @staticmethod
    def rhr_deviation(resting_hr: Optional[float], baseline: Baseline) -> Optional[float]:
        """Percent deviation of today's resting HR from baseline. Positive is worse."""
        if resting_hr is None or not baseline.has_rhr or baseline.rhr_baseline == 0:
            return None
        return (resting_hr - baseline.rhr_baseline) / baseline.rhr_baseline * 100.0

    @staticmethod
    def sleep_quality(sleep: Optional[SleepReading]) -> Optional[float]:
        """Sleep quality score from duration and efficiency."""
        if sleep is None:
            return None

        hours = sleep.total_sleep_hours
        score = 50.0

        if 7.0 <= hours <= 9.0:
            score += 25.0
        elif 6.0 <= hours < 7.0 or 9.0 < hours <= 10.0:
            score += 15.0

        if sleep.sleep_efficiency is not None:
            score += sleep.sleep_efficiency / 100.0 * 25.0

        return score

    @staticmethod
    def recovery_adequacy(
        hrv_deviation: Optional[float],
        sleep_quality: Optional[float],
        rhr_deviation: Optional[float],
    ) -> Optional[float]:
        """Average of the present components, clamped to [0, 100]."""
        components = []
        if hrv_deviation is not None:
            components.append(50.0 + hrv_deviation * 0.5)
        if sleep_quality is not None:
            components.append(sleep_quality)
        if rhr_deviation is not None:
            components.append(50.0 - rhr_deviation * 0.5)

        if not components:
            return None

        return float(np.clip(np.mean(components), 0.0, 100.0))

    @staticmethod
    def readiness(adequacy: Optional[float], sleep_quality: Optional[float]) -> float:
        if adequacy is not None:
            return adequacy
        if sleep_quality is not None:
            return sleep_quality
        return NEUTRAL_READINESS

    @staticmethod
    def tss_adjustment(readiness: float) -> float:
        """Quick-summary TSS multiplier stored with the score."""
        for threshold, factor in TSS_ADJUSTMENT_TABLE:
            if readiness >= threshold:
                return factor
        return MIN_TSS_ADJUSTMENT
