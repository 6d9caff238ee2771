"""Unit tests for the periodic match sweeps."""

import pytest
from sqlalchemy import select

from cuebracket.db.models import Match, Tournament
from cuebracket.db.session import session_scope
from cuebracket.errors import StaleMatchStateError
from cuebracket.events import (
    MatchExpired,
    MatchReminderDue,
    MatchResultConfirmed,
    TournamentCompleted,
)
from cuebracket.matches.state_machine import MatchStateMachine
from cuebracket.statuses import (
    MATCH_CANCELLED,
    MATCH_COMPLETED,
    MATCH_EXPIRED,
    MATCH_SCHEDULED,
    TOURNAMENT_COMPLETED,
)
from cuebracket.tasks.sweeps import (
    auto_confirm_matches,
    expire_scheduled_matches,
    send_match_reminders,
)


@pytest.fixture
def started(session_factory, make_tournament, start_bracket, bracket_service):
    """Commit a started four-player bracket; returns (tournament id, semi-final ids)."""

    def _start(**overrides):
        with session_scope(session_factory) as session:
            tournament = make_tournament(session, 4, race_to=2, **overrides)
            start_bracket(session, bracket_service, tournament)
            semis = [m.id for m in tournament.matches if m.round_number == 1]
            return tournament.id, semis

    return _start


def _sweep_kwargs(clock, events, test_settings):
    return {"clock": clock, "events": events, "settings": test_settings}


def _submit(session_factory, match_id, clock, test_settings):
    with session_scope(session_factory) as session:
        match = session.get(Match, match_id)
        machine = MatchStateMachine(session, clock=clock, settings=test_settings)
        machine.submit_result(match, match.player1_id, 2, 1)


def test_expire_sweep_closes_overdue_matches(
    session_factory, started, clock, events, test_settings
):
    tournament_id, semis = started()
    clock.advance(hours=72)

    result = expire_scheduled_matches(session_factory, **_sweep_kwargs(clock, events, test_settings))

    assert result.status == "success"
    assert (result.candidates, result.processed, result.failed) == (2, 2, 0)
    assert len(events.of_type(MatchExpired)) == 2
    (completed,) = events.of_type(TournamentCompleted)
    assert completed.winner_participant_id is None

    with session_scope(session_factory) as session:
        matches = session.execute(
            select(Match).where(Match.tournament_id == tournament_id).order_by(Match.round_number)
        ).scalars().all()
        assert [m.status for m in matches] == [MATCH_EXPIRED, MATCH_EXPIRED, MATCH_CANCELLED]
        assert session.get(Tournament, tournament_id).status == TOURNAMENT_COMPLETED


def test_expire_sweep_ignores_matches_not_yet_due(
    session_factory, started, clock, events, test_settings
):
    started()
    clock.advance(hours=71)

    result = expire_scheduled_matches(session_factory, **_sweep_kwargs(clock, events, test_settings))

    assert result.status == "skipped"
    assert result.candidates == 0
    assert events.events == []


def test_expire_sweep_respects_limit(session_factory, started, clock, events, test_settings):
    started()
    clock.advance(hours=72)

    result = expire_scheduled_matches(
        session_factory, limit=1, **_sweep_kwargs(clock, events, test_settings)
    )

    assert result.candidates == 1
    assert result.processed == 1


def test_auto_confirm_sweep(session_factory, started, clock, events, test_settings):
    _, semis = started()
    _, other_semis = started(name="Manual Confirm Cup", auto_confirm_results=False)
    _submit(session_factory, semis[0], clock, test_settings)
    _submit(session_factory, other_semis[0], clock, test_settings)
    clock.advance(hours=25)

    result = auto_confirm_matches(session_factory, **_sweep_kwargs(clock, events, test_settings))

    assert (result.candidates, result.processed) == (1, 1)
    (confirmed,) = events.of_type(MatchResultConfirmed)
    assert confirmed.match_id == semis[0]
    assert confirmed.auto_confirmed is True
    with session_scope(session_factory) as session:
        assert session.get(Match, semis[0]).status == MATCH_COMPLETED
        assert session.get(Match, other_semis[0]).auto_confirmed is False


def test_sweep_continues_after_a_failing_match(
    session_factory, started, clock, events, test_settings, monkeypatch
):
    _, semis = started()
    failing_id = semis[0]
    original_expire = MatchStateMachine.expire

    def flaky_expire(self, match):
        if match.id == failing_id:
            raise RuntimeError("connection dropped")
        return original_expire(self, match)

    monkeypatch.setattr(MatchStateMachine, "expire", flaky_expire)
    clock.advance(hours=72)

    result = expire_scheduled_matches(session_factory, **_sweep_kwargs(clock, events, test_settings))

    assert result.status == "partial"
    assert (result.processed, result.failed) == (1, 1)
    assert f"match {failing_id}" in result.errors[0]
    assert len(events.of_type(MatchExpired)) == 1
    with session_scope(session_factory) as session:
        assert session.get(Match, failing_id).status == MATCH_SCHEDULED


def test_sweep_skips_matches_changed_concurrently(
    session_factory, started, clock, events, test_settings, monkeypatch
):
    started()

    def stale_expire(self, match):
        raise StaleMatchStateError(match.id, MATCH_SCHEDULED)

    monkeypatch.setattr(MatchStateMachine, "expire", stale_expire)
    clock.advance(hours=72)

    result = expire_scheduled_matches(session_factory, **_sweep_kwargs(clock, events, test_settings))

    assert (result.skipped, result.failed) == (2, 0)
    assert result.status == "success"
    assert events.events == []


def test_reminders_for_each_window(session_factory, started, clock, events, test_settings):
    _, semis = started()

    clock.advance(hours=24)
    result = send_match_reminders(session_factory, **_sweep_kwargs(clock, events, test_settings))
    assert result.processed == 2
    assert {e.hours_remaining for e in events.of_type(MatchReminderDue)} == {48}
    assert {e.match_id for e in events.of_type(MatchReminderDue)} == set(semis)

    events.clear()
    clock.advance(minutes=30)
    result = send_match_reminders(session_factory, **_sweep_kwargs(clock, events, test_settings))
    assert result.processed == 0

    clock.advance(hours=23, minutes=30)
    result = send_match_reminders(session_factory, **_sweep_kwargs(clock, events, test_settings))
    assert result.processed == 2
    assert {e.hours_remaining for e in events.of_type(MatchReminderDue)} == {24}
