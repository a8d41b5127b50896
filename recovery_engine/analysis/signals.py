"""Physiological signal readings consumed by the recovery core.

Readings are validated at ingestion. Each reading exposes a single
representative ``value`` used by the baseline and trend calculations:
RMSSD for HRV, total sleep hours for sleep, beats per minute for resting HR.
"""

from datetime import date, datetime
from typing import Optional, Union
from dataclasses import dataclass
from enum import Enum


class SignalType(Enum):
    """Signal families stored per user."""
    HRV = "hrv"
    SLEEP = "sleep"
    RESTING_HR = "resting_hr"


@dataclass(frozen=True)
class HRVReading:
    """Heart rate variability measurement."""
    date: date
    rmssd: float                    # ms, primary HRV metric
    timestamp: Optional[datetime] = None
    source: str = "manual"          # oura, whoop, garmin, polar, manual, ...
    sdnn: Optional[float] = None    # ms
    pnn50: Optional[float] = None   # %

    signal_type = SignalType.HRV

    @property
    def value(self) -> float:
        return self.rmssd


@dataclass(frozen=True)
class SleepReading:
    """One night of sleep, keyed by the date the sleeper woke up."""
    date: date
    total_sleep_hours: float
    timestamp: Optional[datetime] = None
    source: str = "manual"
    deep_sleep_hours: Optional[float] = None
    rem_sleep_hours: Optional[float] = None
    light_sleep_hours: Optional[float] = None
    awake_hours: Optional[float] = None
    sleep_efficiency: Optional[float] = None        # %
    sleep_latency_minutes: Optional[float] = None

    signal_type = SignalType.SLEEP

    @property
    def value(self) -> float:
        return self.total_sleep_hours


@dataclass(frozen=True)
class RestingHRReading:
    """Resting heart rate sample."""
    date: date
    resting_hr: float               # bpm
    timestamp: Optional[datetime] = None
    source: str = "manual"

    signal_type = SignalType.RESTING_HR

    @property
    def value(self) -> float:
        return self.resting_hr


SignalReading = Union[HRVReading, SleepReading, RestingHRReading]
