"""Unit tests for the tournament start / bracket generation job."""

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError

from cuebracket.db.models import Match, Participant, Tournament
from cuebracket.db.session import session_scope
from cuebracket.errors import (
    GenerationFailedError,
    InsufficientParticipantsError,
    TournamentStateError,
)
from cuebracket.events import TournamentCompleted, TournamentStarted
from cuebracket.statuses import (
    PARTICIPANT_ACTIVE,
    PARTICIPANT_WINNER,
    TOURNAMENT_ACTIVE,
    TOURNAMENT_COMPLETED,
    TOURNAMENT_DRAFT,
    TOURNAMENT_REGISTRATION,
)
from cuebracket.tasks.generation import BracketGenerationJob


class _FlakyService:
    """Wraps a BracketService and fails the first ``failures`` generate calls."""

    def __init__(self, inner, failures, error=None):
        self.inner = inner
        self.failures = failures
        self.calls = 0
        self.error = error or OperationalError("INSERT INTO matches", {}, Exception("db gone"))

    def generate(self, tournament):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.inner.generate(tournament)


@pytest.fixture
def create_tournament(session_factory, make_tournament):
    def _create(count, **overrides):
        with session_scope(session_factory) as session:
            return make_tournament(session, count, **overrides).id

    return _create


@pytest.fixture
def make_job(session_factory, bracket_service, clock, events, test_settings):
    sleeps = []

    def _make(service=None):
        job = BracketGenerationJob(
            session_factory,
            bracket_service=service or bracket_service,
            clock=clock,
            events=events,
            settings=test_settings,
            sleep=sleeps.append,
        )
        job.sleeps = sleeps
        return job

    return _make


def _match_count(session, tournament_id):
    return session.execute(
        select(func.count(Match.id)).where(Match.tournament_id == tournament_id)
    ).scalar_one()


def test_start_generates_bracket_and_activates(
    session_factory, create_tournament, make_job, events, clock
):
    tournament_id = create_tournament(6)

    result = make_job().run(tournament_id)

    assert result.participant_count == 6
    assert result.matches_created == 7
    (started,) = events.of_type(TournamentStarted)
    assert started.tournament_id == tournament_id
    assert started.bracket_size == 8

    with session_scope(session_factory) as session:
        tournament = session.get(Tournament, tournament_id)
        assert tournament.status == TOURNAMENT_ACTIVE
        assert tournament.matches_count == 7
        assert tournament.starts_at == clock.now()
        assert {p.status for p in tournament.participants} == {PARTICIPANT_ACTIVE}
        assert _match_count(session, tournament_id) == 7


def test_second_start_is_rejected(session_factory, create_tournament, make_job):
    tournament_id = create_tournament(4)
    job = make_job()
    job.run(tournament_id)

    with pytest.raises(TournamentStateError):
        job.run(tournament_id)
    with session_scope(session_factory) as session:
        assert _match_count(session, tournament_id) == 3


def test_wrong_status_is_not_retried(create_tournament, make_job):
    tournament_id = create_tournament(4, status=TOURNAMENT_DRAFT)
    job = make_job()

    with pytest.raises(TournamentStateError):
        job.run(tournament_id)
    assert job.sleeps == []


def test_missing_tournament(make_job):
    with pytest.raises(TournamentStateError):
        make_job().run(4242)


def test_single_participant_wins_outright(session_factory, create_tournament, make_job, events):
    tournament_id = create_tournament(1)

    assert make_job().run(tournament_id) is None

    (completed,) = events.of_type(TournamentCompleted)
    assert events.of_type(TournamentStarted) == []
    with session_scope(session_factory) as session:
        tournament = session.get(Tournament, tournament_id)
        (participant,) = tournament.participants
        assert tournament.status == TOURNAMENT_COMPLETED
        assert participant.status == PARTICIPANT_WINNER
        assert participant.final_position == 1
        assert completed.winner_participant_id == participant.id
        assert _match_count(session, tournament_id) == 0


def test_no_participants(session_factory, create_tournament, make_job):
    tournament_id = create_tournament(0)

    with pytest.raises(InsufficientParticipantsError):
        make_job().run(tournament_id)
    with session_scope(session_factory) as session:
        assert session.get(Tournament, tournament_id).status == TOURNAMENT_REGISTRATION


def test_transient_errors_are_retried(session_factory, create_tournament, make_job, bracket_service):
    tournament_id = create_tournament(4)
    flaky = _FlakyService(bracket_service, failures=2)
    job = make_job(flaky)

    result = job.run(tournament_id)

    assert result.matches_created == 3
    assert flaky.calls == 3
    assert job.sleeps == [1.0, 2.0]
    with session_scope(session_factory) as session:
        assert session.get(Tournament, tournament_id).status == TOURNAMENT_ACTIVE


def test_gives_up_after_max_attempts(session_factory, create_tournament, make_job, bracket_service, events):
    tournament_id = create_tournament(4)
    flaky = _FlakyService(bracket_service, failures=10)
    job = make_job(flaky)

    with pytest.raises(GenerationFailedError) as exc_info:
        job.run(tournament_id)

    assert exc_info.value.attempts == 3
    assert isinstance(exc_info.value.cause, OperationalError)
    assert job.sleeps == [1.0, 2.0]
    assert events.events == []
    with session_scope(session_factory) as session:
        assert session.get(Tournament, tournament_id).status == TOURNAMENT_REGISTRATION
        assert _match_count(session, tournament_id) == 0
        statuses = session.execute(
            select(Participant.status).where(Participant.tournament_id == tournament_id)
        ).scalars().all()
        assert PARTICIPANT_ACTIVE not in statuses


def test_integrity_error_is_a_state_error(create_tournament, make_job, bracket_service):
    tournament_id = create_tournament(4)
    error = IntegrityError("INSERT INTO matches", {}, Exception("uq_matches_bracket_slot"))
    job = make_job(_FlakyService(bracket_service, failures=1, error=error))

    with pytest.raises(TournamentStateError):
        job.run(tournament_id)
    assert job.sleeps == []


def test_revert_status_puts_empty_active_tournament_back(session_factory, create_tournament, make_job):
    tournament_id = create_tournament(4, status=TOURNAMENT_ACTIVE)

    make_job()._revert_status(tournament_id)

    with session_scope(session_factory) as session:
        assert session.get(Tournament, tournament_id).status == TOURNAMENT_REGISTRATION
