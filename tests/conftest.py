"""Shared fixtures: in-memory database, store, service and data builders."""

import pytest
from datetime import date, timedelta

from recovery_engine.analysis.signals import HRVReading
from recovery_engine.analysis.types import HRVTrend, RecoveryScore, RecoveryStatus
from recovery_engine.analysis.scoring import RecoveryScorer
from recovery_engine.db import Database, RecoveryStore
from recovery_engine.exceptions import DeliveryError
from recovery_engine.service import RecoveryService


class FakeNotifier:
    """Records deliveries; optionally fails every send."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.pushes = []
        self.emails = []

    def send_push(self, user_id, title, message):
        if self.fail:
            raise DeliveryError("push", "gateway unavailable")
        self.pushes.append((user_id, title, message))

    def send_email(self, user_id, subject, message):
        if self.fail:
            raise DeliveryError("email", "smtp relay unavailable")
        self.emails.append((user_id, subject, message))


@pytest.fixture
def db():
    database = Database("sqlite://")
    database.create_tables()
    yield database
    database.close()


@pytest.fixture
def store(db):
    return RecoveryStore(db)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def service(store, notifier):
    return RecoveryService(store=store, notifier=notifier)


@pytest.fixture
def make_score():
    """Build a RecoveryScore with a status and TSS factor consistent with readiness."""

    def _make(user_id="athlete", score_date=date(2024, 3, 1), readiness=60.0, **kwargs):
        kwargs.setdefault("hrv_trend", HRVTrend.STABLE)
        return RecoveryScore(
            user_id=user_id,
            score_date=score_date,
            readiness_score=readiness,
            recovery_status=RecoveryStatus.from_score(readiness),
            recommended_tss_adjustment=RecoveryScorer.tss_adjustment(readiness),
            **kwargs,
        )

    return _make


@pytest.fixture
def seed_hrv(store):
    """Store one HRV reading per day for ``days`` days ending the day before ``end``."""

    def _seed(user_id, end, days, rmssd):
        for offset in range(1, days + 1):
            store.add_hrv_reading(user_id, HRVReading(date=end - timedelta(days=offset), rmssd=rmssd))

    return _seed


@pytest.fixture
def failing_notifier():
    return FakeNotifier(fail=True)


@pytest.fixture
def file_db(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'recovery.db'}")
    database.create_tables()
    yield database
    database.close()
