"""Database session management utilities for the SQL remote store."""

from contextlib import contextmanager
from typing import Callable, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from practice.models.attendance import Attendance  # noqa: F401 - registers the table
from practice.models.base import Base
from practice.models.patient import PatientRow  # noqa: F401 - registers the table


def build_engine(url: str, *, timeout_seconds: float = 10.0) -> Engine:
    """Create an engine whose pool waits at most ``timeout_seconds``."""

    if url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False, "timeout": timeout_seconds}}
        if ":memory:" in url or url.endswith("://"):
            # One shared connection, otherwise each checkout sees an empty database.
            options["poolclass"] = StaticPool
        engine = create_engine(url, future=True, echo=False, **options)

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _record) -> None:  # pragma: no cover - driver hook
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(url, future=True, echo=False, pool_timeout=timeout_seconds, pool_pre_ping=True)


def build_session_factory(engine: Engine, *, create_tables: bool = False) -> Callable[[], Session]:
    if create_tables:
        Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@contextmanager
def get_session(session_factory: Callable[[], Session]) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""

    session: Session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
