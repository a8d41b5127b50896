"""Database connection and session management."""

import threading
from typing import Generator, Optional
from contextlib import contextmanager, nullcontext
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from ..config import config
from .models import Base

SQLITE_BUSY_TIMEOUT_SECONDS = 30


class Database:
    """Engine and session factory for the recovery store.

    SQLite allows one writer at a time and a sqlite3 connection cannot run
    two transactions at once, so sessions against a SQLite engine are
    serialized with a lock. Batch workers still compute in parallel; only
    their database work takes turns. Other backends get a regular pool and
    no lock.
    """

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or config.DATABASE_URL
        url = make_url(self.database_url)
        self.is_sqlite = url.get_backend_name() == "sqlite"
        self.is_memory = self.is_sqlite and url.database in (None, "", ":memory:")

        if self.is_memory:
            # One connection holds the whole in-memory database
            self.engine = create_engine(
                self.database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=False,
            )
        elif self.is_sqlite:
            self.engine = create_engine(
                self.database_url,
                connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT_SECONDS},
                echo=False,
            )
        else:
            self.engine = create_engine(self.database_url, pool_pre_ping=True, echo=False)

        self._session_lock = threading.RLock() if self.is_sqlite else None
        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine
        )

    def create_tables(self):
        """Create all database tables."""
        with self._serialized():
            Base.metadata.create_all(bind=self.engine)

    def drop_tables(self):
        with self._serialized():
            Base.metadata.drop_all(bind=self.engine)

    def _serialized(self):
        return self._session_lock if self._session_lock is not None else nullcontext()

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Session scoped to one all-or-nothing unit of work.

        Commits on success and rolls back on any exception.
        """
        with self._serialized():
            session = self.SessionLocal()
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    def close(self):
        self.engine.dispose()


_db: Optional[Database] = None


def get_db() -> Database:
    """Global database, created with its tables on first use."""
    global _db
    if _db is None:
        _db = Database()
        _db.create_tables()
    return _db


def close_db():
    global _db
    if _db is not None:
        _db.close()
        _db = None
