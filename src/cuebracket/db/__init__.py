"""
Database module for cuebracket.

Provides SQLAlchemy ORM models and session management.

Usage:
    from cuebracket.db import get_session, Tournament, Match

    with get_session() as session:
        tournament = session.get(Tournament, 1)
"""

from cuebracket.db.models import Base, Match, Participant, Tournament
from cuebracket.db.session import (
    SessionFactory,
    SessionLocal,
    create_db_engine,
    get_engine,
    get_session,
    get_session_factory,
    session_scope,
)

__all__ = [
    # Base
    "Base",
    # Models
    "Tournament",
    "Participant",
    "Match",
    # Session
    "SessionFactory",
    "SessionLocal",
    "create_db_engine",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
]
