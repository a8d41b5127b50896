"""Smoke tests for the operator CLI."""

import pytest
from datetime import date, timedelta
from click.testing import CliRunner

from recovery_engine.analysis.signals import HRVReading
from recovery_engine.cli import cli
from recovery_engine.db import database

TODAY = date(2024, 3, 31)


@pytest.fixture
def runner(db, monkeypatch):
    monkeypatch.setattr(database, "_db", db)
    return CliRunner()


class TestCli:

    def test_score_and_recommend(self, runner, store):
        for offset in range(1, 31):
            store.add_hrv_reading("athlete", HRVReading(date=TODAY - timedelta(days=offset), rmssd=50.0))
        store.add_hrv_reading("athlete", HRVReading(date=TODAY, rmssd=40.0))

        scored = runner.invoke(cli, ["score", "athlete", "--date", "2024-03-31"])
        recommended = runner.invoke(cli, ["recommend", "athlete", "--tss", "100", "--date", "2024-03-31"])

        assert scored.exit_code == 0, scored.output
        assert "40.0/100" in scored.output
        assert recommended.exit_code == 0, recommended.output
        assert "70" in recommended.output

    def test_recommend_without_data(self, runner):
        result = runner.invoke(cli, ["recommend", "athlete", "--tss", "100", "--date", "2024-03-31"])

        assert result.exit_code == 0
        assert "No recovery score" in result.output

    def test_alerts_empty(self, runner):
        result = runner.invoke(cli, ["alerts", "athlete"])

        assert result.exit_code == 0
        assert "No alerts" in result.output
