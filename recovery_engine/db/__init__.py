"""Database module for the recovery engine."""

from .database import Database, get_db, close_db
from .models import Base, HRVData, SleepData, RestingHRData, RecoveryScoreRecord, RecoveryAlertRecord
from .store import RecoveryStore

__all__ = [
    "Database",
    "get_db",
    "close_db",
    "Base",
    "HRVData",
    "SleepData",
    "RestingHRData",
    "RecoveryScoreRecord",
    "RecoveryAlertRecord",
    "RecoveryStore",
]
