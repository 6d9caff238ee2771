"""
BracketService - facade over the registered bracket generators.

Callers never pick a generator themselves. The service keeps an ordered
registry and delegates to the first generator whose ``supports()`` accepts
the tournament, so adding a format means registering one more generator.

Usage:
    service = build_bracket_service(clock=SystemClock())
    with get_session() as session:
        tournament = session.get(Tournament, 3)
        if service.can_start_tournament(tournament):
            result = service.generate(tournament)
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import object_session

from cuebracket.bracket.generator import BracketGenerator, BracketResult, SingleEliminationGenerator
from cuebracket.bracket.seeding import Seeder, eligible_participants
from cuebracket.clock import Clock
from cuebracket.config import Settings
from cuebracket.db.models import Match, Participant, Tournament
from cuebracket.errors import (
    InsufficientParticipantsError,
    NoMatchingGeneratorError,
    TournamentStateError,
)
from cuebracket.statuses import TOURNAMENT_REGISTRATION, get_status_group

logger = logging.getLogger(__name__)


class BracketService:
    def __init__(self, generators: Iterable[BracketGenerator] = ()) -> None:
        self._generators: list[BracketGenerator] = list(generators)

    def register_generator(self, generator: BracketGenerator) -> None:
        self._generators.append(generator)
        logger.debug("Registered bracket generator %s", generator.name)

    @property
    def generators(self) -> tuple[BracketGenerator, ...]:
        return tuple(self._generators)

    def find_generator(self, tournament: Tournament) -> BracketGenerator:
        for generator in self._generators:
            if generator.supports(tournament):
                return generator
        raise NoMatchingGeneratorError(
            f"No bracket generator found for tournament {tournament.id} "
            f"(format='{tournament.format}', status='{tournament.status}')"
        )

    def generator_for_format(self, tournament: Tournament) -> BracketGenerator:
        """
        Generator owning an existing bracket, whatever the tournament status.

        Advancement must keep working after the tournament is completed, when
        ``supports()`` no longer accepts it.
        """
        for generator in self._generators:
            if generator.handles_format(tournament):
                return generator
        raise NoMatchingGeneratorError(
            f"No bracket generator handles format '{tournament.format}' "
            f"(tournament {tournament.id})"
        )

    # =========================================================================
    # Generation
    # =========================================================================

    def generate(self, tournament: Tournament) -> BracketResult:
        """
        Build the bracket for a tournament in registration.

        Runs inside the caller's transaction; nothing is committed here.

        Raises:
            TournamentStateError: Tournament is not in registration, or already has matches
            NoMatchingGeneratorError: No registered generator supports the tournament
            InsufficientParticipantsError: Fewer eligible participants than required
        """
        if tournament.status != TOURNAMENT_REGISTRATION:
            raise TournamentStateError(
                f"Tournament {tournament.id} is '{tournament.status}', "
                f"bracket can only be generated during registration"
            )
        if self._match_count(tournament) > 0:
            raise TournamentStateError(f"Tournament {tournament.id} already has a bracket")

        try:
            generator = self.find_generator(tournament)
        except NoMatchingGeneratorError:
            self._raise_if_too_few(tournament)
            raise
        return generator.generate(tournament)

    def advance_winner(self, match: Match) -> Optional[Match]:
        return self.generator_for_format(match.tournament).advance_winner(match)

    def can_start_tournament(self, tournament: Tournament) -> bool:
        if tournament.status != TOURNAMENT_REGISTRATION or self._match_count(tournament) > 0:
            return False
        try:
            self.find_generator(tournament)
        except NoMatchingGeneratorError:
            return False
        return True

    def get_minimum_participants(self, tournament: Tournament) -> int:
        return self.generator_for_format(tournament).get_minimum_participants()

    def _raise_if_too_few(self, tournament: Tournament) -> None:
        """Report a short field as such rather than as a missing generator."""
        try:
            generator = self.generator_for_format(tournament)
        except NoMatchingGeneratorError:
            return
        count = len(eligible_participants(tournament))
        minimum = generator.get_minimum_participants()
        if count < minimum:
            raise InsufficientParticipantsError(count, minimum)

    # =========================================================================
    # Reads
    # =========================================================================

    def is_bracket_complete(self, tournament: Tournament) -> bool:
        """True once matches exist and none of them is still open."""
        session = object_session(tournament)
        session.flush()
        total = self._match_count(tournament)
        if total == 0:
            return False
        open_count = session.execute(
            select(func.count(Match.id)).where(
                Match.tournament_id == tournament.id,
                Match.status.in_(get_status_group("open")),
            )
        ).scalar_one()
        return open_count == 0

    def get_bracket_data(self, tournament: Tournament) -> dict[str, Any]:
        """Bracket read model: rounds in order, matches by position, with players."""
        session = object_session(tournament)
        session.flush()
        matches = list(
            session.execute(
                select(Match)
                .where(Match.tournament_id == tournament.id)
                .order_by(Match.round_number, Match.bracket_position)
            ).scalars()
        )
        participants = {p.id: p for p in tournament.participants}

        rounds: dict[int, dict[str, Any]] = {}
        champion_id = None
        for match in matches:
            entry = rounds.setdefault(
                match.round_number,
                {"round_number": match.round_number, "name": match.round_name, "matches": []},
            )
            if match.bracket_position == 0:
                entry["name"] = match.round_name
            entry["matches"].append(_match_payload(match, participants))
            is_final = (
                match.round_number == tournament.total_rounds and match.bracket_position == 0
            )
            if is_final and match.winner_id is not None:
                champion_id = match.winner_id

        return {
            "tournament_id": tournament.id,
            "name": tournament.name,
            "status": tournament.status,
            "format": tournament.format,
            "bracket_size": tournament.bracket_size,
            "total_rounds": tournament.total_rounds,
            "champion_id": champion_id,
            "rounds": [rounds[number] for number in sorted(rounds)],
        }

    @staticmethod
    def _match_count(tournament: Tournament) -> int:
        session = object_session(tournament)
        if session is None or tournament.id is None:
            return 0
        return session.execute(
            select(func.count(Match.id)).where(Match.tournament_id == tournament.id)
        ).scalar_one()


def _player_payload(
    participant_id: Optional[int],
    score: Optional[int],
    participants: dict[int, Participant],
) -> Optional[dict[str, Any]]:
    if participant_id is None:
        return None
    participant = participants.get(participant_id)
    return {
        "participant_id": participant_id,
        "player_id": participant.player_id if participant else None,
        "name": participant.display_name if participant else None,
        "seed": participant.seed if participant else None,
        "score": score,
    }


def _match_payload(match: Match, participants: dict[int, Participant]) -> dict[str, Any]:
    return {
        "id": match.id,
        "round_number": match.round_number,
        "round_name": match.round_name,
        "bracket_position": match.bracket_position,
        "match_type": match.match_type,
        "is_bye": match.is_bye,
        "status": match.status,
        "race_to": match.race_to,
        "player1": _player_payload(match.player1_id, match.player1_score, participants),
        "player2": _player_payload(match.player2_id, match.player2_score, participants),
        "winner_id": match.winner_id,
        "next_match_id": match.next_match_id,
        "next_match_slot": match.next_match_slot,
        "expires_at": match.expires_at.isoformat() if match.expires_at else None,
    }


def build_bracket_service(
    clock: Optional[Clock] = None,
    seeder: Optional[Seeder] = None,
    settings: Optional[Settings] = None,
) -> BracketService:
    """Service with the single-elimination generator registered."""
    return BracketService(
        [SingleEliminationGenerator(seeder=seeder, clock=clock, settings=settings)]
    )
