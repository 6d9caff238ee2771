"""
Database session management for cuebracket.

Provides the SQLAlchemy engine and session factory with connection pooling
configured from settings. The engine is built on first use, so importing
this module never opens a connection (tests bind their own SQLite engine).

Usage:
    # As a context manager (recommended for scripts and jobs)
    from cuebracket.db import get_session

    with get_session() as session:
        tournament = session.get(Tournament, 42)
        # Commits automatically on exit, rolls back on exception

    # Jobs take a session factory so tests can inject their own
    from cuebracket.db import session_scope

    with session_scope(my_factory) as session:
        ...
"""

from contextlib import contextmanager
from typing import Callable, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from cuebracket.config import settings

SessionFactory = Callable[[], Session]


def create_db_engine(database_url: str | None = None) -> Engine:
    """
    Create SQLAlchemy engine with connection pooling.

    The engine is configured with:
    - Connection pool for efficient reuse
    - Echo mode only when LOG_LEVEL=DEBUG
    - Pre-ping to verify connections before use (handles stale connections)
    """
    return create_engine(
        database_url or settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        echo=settings.log_level == "DEBUG",
    )


_engine: Engine | None = None


def get_engine() -> Engine:
    """Get or create the singleton engine instance."""
    global _engine
    if _engine is None:
        _engine = create_db_engine()
    return _engine


# Session factory; bound to the engine lazily in get_session_factory()
SessionLocal = sessionmaker(autoflush=False, expire_on_commit=False)


def get_session_factory() -> SessionFactory:
    """Return a factory producing sessions bound to the configured engine."""
    engine = get_engine()
    return lambda: SessionLocal(bind=engine)


@contextmanager
def session_scope(factory: SessionFactory) -> Generator[Session, None, None]:
    """
    Transactional scope around a session produced by ``factory``.

    Commits on successful exit, rolls back on exception, always closes.
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """
    Context manager for sessions on the configured database.

    Example:
        with get_session() as session:
            match = session.get(Match, match_id)
            # Commits automatically when exiting the block

    Raises:
        Any exception from the database operation (after rollback)
    """
    with session_scope(get_session_factory()) as session:
        yield session
