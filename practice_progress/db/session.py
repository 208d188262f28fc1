"""SQLAlchemy engine, session factory and declarative base."""

from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from practice_progress.config import settings

# Lazy initialization - only create engine when first needed
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None  # type: ignore[type-arg]


def get_engine() -> Engine:
    """Get or create the SQLAlchemy engine for ``DATABASE_URL``."""
    global _engine
    if _engine is None:
        kwargs: dict = {"echo": settings.DATABASE_ECHO, "pool_pre_ping": True}
        if settings.DATABASE_URL.startswith("sqlite"):
            # worker threads share the file; wait on locks instead of failing fast
            kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
        _engine = create_engine(settings.DATABASE_URL, **kwargs)
    return _engine


def get_session_factory() -> sessionmaker:  # type: ignore[type-arg]
    """Get or create session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(bind=get_engine(), autocommit=False, autoflush=False)
    return _SessionLocal


@contextmanager
def session_scope(factory: Callable[[], Session] | None = None) -> Iterator[Session]:
    """Yield a session and close it afterwards.

    Stores commit their own work; anything left uncommitted is rolled back
    on close.
    """
    db = (factory or get_session_factory())()
    try:
        yield db
    finally:
        db.close()


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""
