"""Shared pytest fixtures for progress-core tests."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from practice_progress.config import settings
from practice_progress.db import models  # noqa: F401
from practice_progress.db.session import Base


# Use an in-memory SQLite database for testing with static pool
SQLALCHEMY_TEST_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_TEST_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # Use StaticPool to keep connection alive
    echo=False,
)
TestSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)

# Create all tables once at startup
Base.metadata.create_all(bind=engine)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """No Redis in unit tests: local locks, cache off, UTC activity days."""
    monkeypatch.setattr(settings, "ACHIEVEMENT_CACHE_ENABLED", False)
    monkeypatch.setattr(settings, "STUDENT_LOCK_BACKEND", "local")
    monkeypatch.setattr(settings, "ACTIVITY_TIMEZONE", "UTC")
    yield


@pytest.fixture(autouse=True)
def clean_tables():
    """Stores commit their own work, so tables are emptied after each test."""
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(scope="function")
def db():
    """Get a fresh DB session for each test."""
    session = TestSession()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(scope="function")
def session_factory():
    return TestSession


@pytest.fixture(scope="function")
def file_session_factory(tmp_path):
    """File-backed SQLite for tests that write from several threads at once."""
    file_engine = create_engine(
        f"sqlite:///{tmp_path / 'progress.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=file_engine)
    factory = sessionmaker(bind=file_engine, autocommit=False, autoflush=False)
    yield factory
    file_engine.dispose()


@pytest.fixture(scope="function")
def make_achievement(db: Session):
    """Insert an achievement definition and return the ORM row."""

    def _make(name: str, criteria: str, points: int = 10, is_active: bool = True):
        achievement = models.Achievement(
            name=name, criteria=criteria, points=points, is_active=is_active
        )
        db.add(achievement)
        db.commit()
        db.refresh(achievement)
        return achievement

    return _make
