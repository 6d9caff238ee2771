"""Unit tests for the BracketService facade."""

import pytest

from cuebracket.bracket.generator import BracketResult, SingleEliminationGenerator
from cuebracket.bracket.service import BracketService
from cuebracket.errors import (
    InsufficientParticipantsError,
    NoMatchingGeneratorError,
    TournamentStateError,
)
from cuebracket.statuses import MATCH_COMPLETED, TOURNAMENT_ACTIVE, TOURNAMENT_DRAFT


class _RoundRobinStub(SingleEliminationGenerator):
    name = "round_robin"

    def supports(self, tournament):
        return tournament.format == "round_robin"

    def generate(self, tournament):
        return BracketResult(
            participant_count=0,
            bracket_size=0,
            total_rounds=0,
            bye_count=0,
            matches_created=0,
            bye_matches_processed=0,
            round_structure=(),
            seeder="stub",
        )


def test_service_picks_generator_by_format(db_session, make_tournament, clock, test_settings):
    single = SingleEliminationGenerator(clock=clock, settings=test_settings)
    service = BracketService([single])
    service.register_generator(_RoundRobinStub(clock=clock, settings=test_settings))

    tournament = make_tournament(db_session, 4, format="round_robin")
    assert service.find_generator(tournament).name == "round_robin"
    assert service.generate(tournament).seeder == "stub"
    assert [g.name for g in service.generators] == ["single_elimination", "round_robin"]


def test_no_generator_for_format(db_session, make_tournament, bracket_service):
    tournament = make_tournament(db_session, 4, format="double_elimination")

    with pytest.raises(NoMatchingGeneratorError):
        bracket_service.generate(tournament)
    assert bracket_service.can_start_tournament(tournament) is False


def test_generate_requires_registration(db_session, make_tournament, bracket_service):
    tournament = make_tournament(db_session, 4, status=TOURNAMENT_DRAFT)
    with pytest.raises(TournamentStateError):
        bracket_service.generate(tournament)


def test_generate_refuses_second_bracket(db_session, make_tournament, bracket_service):
    tournament = make_tournament(db_session, 4)
    bracket_service.generate(tournament)

    with pytest.raises(TournamentStateError):
        bracket_service.generate(tournament)
    assert bracket_service.can_start_tournament(tournament) is False


def test_generate_with_too_few_participants(db_session, make_tournament, bracket_service):
    tournament = make_tournament(db_session, 1)
    with pytest.raises(InsufficientParticipantsError):
        bracket_service.generate(tournament)


def test_can_start_and_minimum(db_session, make_tournament, bracket_service):
    ready = make_tournament(db_session, 2)
    lonely = make_tournament(db_session, 1, name="Quiet Night")

    assert bracket_service.can_start_tournament(ready) is True
    assert bracket_service.can_start_tournament(lonely) is False
    assert bracket_service.get_minimum_participants(ready) == 2


def test_bracket_complete_after_final(db_session, make_tournament, bracket_service, start_bracket):
    tournament = make_tournament(db_session, 2)
    start_bracket(db_session, bracket_service, tournament)
    assert bracket_service.is_bracket_complete(tournament) is False

    (final,) = tournament.matches
    final.player1_score, final.player2_score = 3, 2
    final.winner_id, final.loser_id = final.player1_id, final.player2_id
    final.status = MATCH_COMPLETED

    assert bracket_service.is_bracket_complete(tournament) is True


def test_is_bracket_complete_without_matches(db_session, make_tournament, bracket_service):
    tournament = make_tournament(db_session, 4)
    assert bracket_service.is_bracket_complete(tournament) is False


def test_get_bracket_data(db_session, make_tournament, bracket_service, start_bracket):
    tournament = make_tournament(db_session, 3)
    start_bracket(db_session, bracket_service, tournament)
    top_seed = tournament.participants[0]

    data = bracket_service.get_bracket_data(tournament)

    assert data["tournament_id"] == tournament.id
    assert data["status"] == TOURNAMENT_ACTIVE
    assert data["bracket_size"] == 4
    assert data["champion_id"] is None
    assert [r["name"] for r in data["rounds"]] == ["Semi-Finals", "Final"]
    assert [len(r["matches"]) for r in data["rounds"]] == [2, 1]

    bye = data["rounds"][0]["matches"][0]
    assert bye["match_type"] == "bye"
    assert bye["is_bye"] is True
    assert bye["player1"]["participant_id"] == top_seed.id
    assert bye["player1"]["seed"] == 1
    assert bye["player1"]["name"] == "Player 1"
    assert bye["player2"] is None

    final = data["rounds"][1]["matches"][0]
    assert final["player1"]["participant_id"] == top_seed.id
    assert final["player2"] is None
