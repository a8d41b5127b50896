"""Tests for engine setup and session handling."""

import threading
import pytest
from datetime import date
from sqlalchemy.pool import StaticPool

from recovery_engine.db import Database, HRVData


class TestDatabase:
    """Test pool choice and session behavior per backend."""

    def test_in_memory_uses_single_connection(self):
        database = Database("sqlite://")

        assert database.is_memory
        assert isinstance(database.engine.pool, StaticPool)
        database.close()

    def test_file_database_uses_regular_pool(self, file_db):
        assert file_db.is_sqlite
        assert not file_db.is_memory
        assert not isinstance(file_db.engine.pool, StaticPool)

    def test_session_rolls_back_on_error(self, file_db):
        with pytest.raises(RuntimeError):
            with file_db.get_session() as session:
                session.add(HRVData(user_id="athlete", date=date(2024, 3, 1), rmssd=50.0))
                raise RuntimeError("abort")

        with file_db.get_session() as session:
            assert session.query(HRVData).count() == 0

    def test_concurrent_sessions_from_threads(self, file_db):
        errors = []

        def write(worker):
            try:
                for day in range(1, 21):
                    with file_db.get_session() as session:
                        session.add(HRVData(user_id=f"w{worker}", date=date(2024, 3, day), rmssd=50.0))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=write, args=(i,)) for i in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        with file_db.get_session() as session:
            assert session.query(HRVData).count() == 120
