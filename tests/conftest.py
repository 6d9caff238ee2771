"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from cuebracket.bracket import build_bracket_service
from cuebracket.clock import FixedClock
from cuebracket.config import Settings
from cuebracket.db.models import Base, Participant, Tournament
from cuebracket.events import CollectingEventSink
from cuebracket.statuses import (
    PARTICIPANT_ACTIVE,
    TOURNAMENT_ACTIVE,
    TOURNAMENT_REGISTRATION,
)


@pytest.fixture
def test_engine(tmp_path):
    """
    Create a test database engine.

    Uses a throwaway SQLite file so the jobs under test can open and
    commit their own sessions, and the test can read the result back
    from a fresh one.
    """
    engine = create_engine(f"sqlite:///{tmp_path / 'cuebracket.db'}", echo=False)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(bind=test_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    """
    Create a database session for a test.

    Nothing is committed unless the test does it explicitly.
    """
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def events():
    return CollectingEventSink()


@pytest.fixture
def test_settings():
    return Settings(
        database_url="sqlite://",
        default_race_to=3,
        default_confirmation_hours=24,
        default_match_deadline_hours=72,
        reminder_windows_hours=[24, 48],
        generation_max_attempts=3,
        generation_retry_backoff_seconds=1.0,
    )


@pytest.fixture
def bracket_service(clock, test_settings):
    return build_bracket_service(clock=clock, settings=test_settings)


def make_tournament(session, player_count, *, ratings=None, **overrides):
    """
    Add a tournament in registration with ``player_count`` participants.

    Ratings default to descending values so participant ids and seeds line
    up (participant created first is seed 1).
    """
    fields = {"name": "Tuesday 9-Ball", "status": TOURNAMENT_REGISTRATION}
    fields.update(overrides)
    tournament = Tournament(**fields)
    session.add(tournament)
    session.flush()

    if ratings is None:
        ratings = [1000 - 10 * i for i in range(player_count)]
    for index in range(player_count):
        session.add(
            Participant(
                tournament_id=tournament.id,
                player_id=100 + index,
                display_name=f"Player {index + 1}",
                rating=ratings[index],
            )
        )
    session.flush()
    session.refresh(tournament)
    return tournament


def start_bracket(session, service, tournament):
    """Generate the bracket and activate the tournament, as the start job does."""
    result = service.generate(tournament)
    for participant in tournament.participants:
        participant.status = PARTICIPANT_ACTIVE
    tournament.status = TOURNAMENT_ACTIVE
    tournament.matches_count = result.matches_created
    session.flush()
    return result


@pytest.fixture(name="make_tournament")
def make_tournament_fixture():
    return make_tournament


@pytest.fixture(name="start_bracket")
def start_bracket_fixture():
    return start_bracket
