"""
Bracket generators.

A BracketGenerator builds the match tree for one tournament format and owns
advancement through it. SingleEliminationGenerator is the only format
today; BracketService picks a generator via ``supports()`` so new formats
plug in without touching callers.

Generation (single elimination):

1. Seed eligible participants (Seeder, rating order by default)
2. Compute the skeleton (BracketStructureBuilder)
3. Create every match from the final back to round 1, wiring each match's
   next_match_id/next_match_slot to its parent as rounds are flushed
4. Optionally add the third-place match beside the final
5. Fill round 1 from the seed pairing, leaving bye slots empty
6. Resolve byes (ByeProcessor), which pushes bye winners forward

Advancement: every terminal match, played or bye, moves forward through
``_propagate``. It writes the winner into the parent slot (and a
semi-final loser into the third-place match). It is idempotent: writing
the same participant again is a no-op, while a different participant in an
occupied slot is an integrity error.

Usage:
    generator = SingleEliminationGenerator(clock=SystemClock())
    with get_session() as session:
        tournament = session.get(Tournament, 12)
        result = generator.generate(tournament)
        logger.info(result.summary())
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, object_session

from cuebracket import draw
from cuebracket.bracket.byes import ByeProcessor
from cuebracket.bracket.seeding import MIN_SEEDED_PARTICIPANTS, RatingSeeder, Seeder, eligible_participants
from cuebracket.bracket.structure import BracketStructure, BracketStructureBuilder, RoundInfo
from cuebracket.clock import Clock, SystemClock
from cuebracket.config import Settings, get_settings
from cuebracket.db.models import Match, Tournament
from cuebracket.errors import BracketIntegrityError, InvalidMatchStateError
from cuebracket.statuses import (
    FINALS_MATCH_TYPES,
    FORMAT_SINGLE_ELIMINATION,
    MATCH_SCHEDULED,
    MATCH_THIRD_PLACE,
    SLOT_PLAYER1,
    SLOT_PLAYER2,
    TOURNAMENT_ACTIVE,
    TOURNAMENT_REGISTRATION,
)

logger = logging.getLogger(__name__)

THIRD_PLACE_ROUND_NAME = "Third Place"
THIRD_PLACE_POSITION = 1


@dataclass(frozen=True)
class BracketResult:
    """Summary of one generation call. Never mutated after creation."""

    participant_count: int
    bracket_size: int
    total_rounds: int
    bye_count: int
    matches_created: int
    bye_matches_processed: int
    round_structure: tuple[RoundInfo, ...]
    third_place_match: bool = False
    seeder: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "participant_count": self.participant_count,
            "bracket_size": self.bracket_size,
            "total_rounds": self.total_rounds,
            "bye_count": self.bye_count,
            "matches_created": self.matches_created,
            "bye_matches_processed": self.bye_matches_processed,
            "round_structure": [info.to_dict() for info in self.round_structure],
            "third_place_match": self.third_place_match,
            "seeder": self.seeder,
        }

    def summary(self) -> str:
        """Return a human-readable summary of the generated bracket."""
        lines = [
            "Bracket generation complete:",
            f"  Participants:        {self.participant_count}",
            f"  Bracket size:        {self.bracket_size}",
            f"  Rounds:              {self.total_rounds}",
            f"  Byes:                {self.bye_count}",
            f"  Matches created:     {self.matches_created}",
            f"  Byes resolved:       {self.bye_matches_processed}",
            f"  Third place match:   {'yes' if self.third_place_match else 'no'}",
        ]
        for info in self.round_structure:
            lines.append(f"    R{info.round_number} {info.name}: {info.match_count} match(es)")
        return "\n".join(lines)


class BracketGenerator(ABC):
    """Capability implemented by every bracket format."""

    name: str = "base"

    def handles_format(self, tournament: Tournament) -> bool:
        """Whether the tournament's bracket, once built, belongs to this generator."""
        return tournament.format == self.name

    @abstractmethod
    def supports(self, tournament: Tournament) -> bool:
        """Whether this generator can build a bracket for the tournament right now."""

    @abstractmethod
    def get_minimum_participants(self) -> int:
        ...

    @abstractmethod
    def generate(self, tournament: Tournament) -> BracketResult:
        """Create all matches for the tournament inside the caller's transaction."""

    @abstractmethod
    def advance_winner(self, match: Match) -> Optional[Match]:
        """Push a terminal match's outcome downstream; return the next match, if any."""


class SingleEliminationGenerator(BracketGenerator):
    name = FORMAT_SINGLE_ELIMINATION

    def __init__(
        self,
        seeder: Optional[Seeder] = None,
        structure_builder: Optional[BracketStructureBuilder] = None,
        clock: Optional[Clock] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.seeder = seeder or RatingSeeder()
        self.structure_builder = structure_builder or BracketStructureBuilder()
        self.clock = clock or SystemClock()
        self.settings = settings or get_settings()

    def supports(self, tournament: Tournament) -> bool:
        return (
            self.handles_format(tournament)
            and tournament.status in (TOURNAMENT_REGISTRATION, TOURNAMENT_ACTIVE)
            and len(eligible_participants(tournament)) >= self.get_minimum_participants()
        )

    def get_minimum_participants(self) -> int:
        return MIN_SEEDED_PARTICIPANTS

    # =========================================================================
    # Generation
    # =========================================================================

    def generate(self, tournament: Tournament) -> BracketResult:
        session = _session_of(tournament)
        seeds = self.seeder.seed(tournament)
        structure = self.structure_builder.build(len(seeds))
        logger.info(
            "Generating single-elimination bracket for tournament %s: "
            "%d participants, size %d, %d round(s)",
            tournament.id, structure.participant_count,
            structure.bracket_size, structure.total_rounds,
        )

        participants = {p.id: p for p in tournament.participants}
        for assignment in seeds:
            participants[assignment.participant_id].seed = assignment.seed

        rounds = self._create_rounds(session, tournament, structure)
        matches_created = sum(len(matches) for matches in rounds.values())

        with_third_place = self._wants_third_place(tournament, structure)
        if with_third_place:
            final_info = structure.round(structure.total_rounds)
            session.add(
                Match(
                    tournament=tournament,
                    round_number=final_info.round_number,
                    round_name=THIRD_PLACE_ROUND_NAME,
                    bracket_position=THIRD_PLACE_POSITION,
                    match_type=MATCH_THIRD_PLACE,
                    race_to=self.race_to_for(tournament, MATCH_THIRD_PLACE),
                    status=MATCH_SCHEDULED,
                )
            )
            matches_created += 1

        now = self.clock.now()
        deadline = timedelta(hours=self.match_deadline_hours(tournament))
        pairs = self.structure_builder.assign_slots(seeds, structure)
        for match, (first, second) in zip(rounds[1], pairs):
            match.player1_id = first.participant_id if first else None
            match.player2_id = second.participant_id if second else None
            if match.has_both_players:
                match.expires_at = now + deadline

        tournament.bracket_size = structure.bracket_size
        tournament.total_rounds = structure.total_rounds
        session.flush()

        byes_processed = self._bye_processor(session).process_byes(rounds[1])

        result = BracketResult(
            participant_count=structure.participant_count,
            bracket_size=structure.bracket_size,
            total_rounds=structure.total_rounds,
            bye_count=structure.bye_count,
            matches_created=matches_created,
            bye_matches_processed=byes_processed,
            round_structure=structure.rounds,
            third_place_match=with_third_place,
            seeder=self.seeder.name,
        )
        logger.info(result.summary())
        return result

    def _create_rounds(
        self,
        session: Session,
        tournament: Tournament,
        structure: BracketStructure,
    ) -> dict[int, list[Match]]:
        """Create empty matches from the final backwards so parents have ids."""
        rounds: dict[int, list[Match]] = {}
        for info in reversed(structure.rounds):
            round_matches = []
            for position in range(info.match_count):
                match = Match(
                    tournament=tournament,
                    round_number=info.round_number,
                    round_name=info.name,
                    bracket_position=position,
                    match_type=info.match_type,
                    race_to=self.race_to_for(tournament, info.match_type),
                    status=MATCH_SCHEDULED,
                )
                if info.round_number < structure.total_rounds:
                    target = draw.parent_slot(info.round_number, position)
                    match.next_match_id = rounds[target.round_number][target.slot_index].id
                    match.next_match_slot = target.side
                round_matches.append(match)
            session.add_all(round_matches)
            session.flush()
            rounds[info.round_number] = round_matches
            logger.debug(
                "Created %d match(es) for %s (round %d)",
                len(round_matches), info.name, info.round_number,
            )
        return rounds

    @staticmethod
    def _wants_third_place(tournament: Tournament, structure: BracketStructure) -> bool:
        return (
            bool(tournament.third_place_match)
            and structure.total_rounds >= 2
            and structure.participant_count >= 4
        )

    def race_to_for(self, tournament: Tournament, match_type: str) -> int:
        if match_type in FINALS_MATCH_TYPES and tournament.finals_race_to:
            return tournament.finals_race_to
        return tournament.race_to or self.settings.default_race_to

    def match_deadline_hours(self, tournament: Tournament) -> int:
        return tournament.match_deadline_hours or self.settings.default_match_deadline_hours

    # =========================================================================
    # Advancement
    # =========================================================================

    def advance_winner(self, match: Match) -> Optional[Match]:
        if not match.is_terminal:
            raise InvalidMatchStateError(match.id, match.status, "advance from")
        session = _session_of(match)
        affected = self._propagate(match)
        self._bye_processor(session).process_byes(affected)
        if match.next_match_id is None:
            return None
        return session.get(Match, match.next_match_id)

    def _propagate(self, match: Match) -> list[Match]:
        """Write a terminal match's outcome into downstream slots."""
        session = _session_of(match)
        affected: list[Match] = []

        if match.next_match_id is not None:
            target = session.get(Match, match.next_match_id)
            if target is None:
                raise BracketIntegrityError(
                    f"Match {match.id} points at missing next match {match.next_match_id}"
                )
            if match.winner_id is not None:
                self._fill_slot(target, match.next_match_slot, match.winner_id, match)
            affected.append(target)

        if self._is_semi_final(match):
            third_place = self._third_place_match(session, match)
            if third_place is not None:
                side = SLOT_PLAYER1 if match.bracket_position == 0 else SLOT_PLAYER2
                if match.loser_id is not None:
                    self._fill_slot(third_place, side, match.loser_id, match)
                affected.append(third_place)

        session.flush()
        return affected

    def _fill_slot(self, target: Match, side: Optional[str], participant_id: int, source: Match) -> None:
        if side not in (SLOT_PLAYER1, SLOT_PLAYER2):
            raise BracketIntegrityError(f"Match {source.id} has invalid next slot {side!r}")

        current = target.slot_player_id(side)
        if current == participant_id:
            logger.debug(
                "Participant %s already in %s of match %s", participant_id, side, target.id
            )
            return
        if current is not None:
            raise BracketIntegrityError(
                f"Slot {side} of match {target.id} already holds participant {current}; "
                f"refusing to place {participant_id} from match {source.id}"
            )
        if target.status != MATCH_SCHEDULED:
            logger.warning(
                "Not advancing participant %s into match %s: status is '%s'",
                participant_id, target.id, target.status,
            )
            return

        target.set_slot_player_id(side, participant_id)
        if target.has_both_players and target.expires_at is None:
            hours = self.match_deadline_hours(target.tournament)
            target.expires_at = self.clock.now() + timedelta(hours=hours)
        logger.debug(
            "Advanced participant %s from match %s into %s of match %s",
            participant_id, source.id, side, target.id,
        )

    @staticmethod
    def _is_semi_final(match: Match) -> bool:
        total_rounds = match.tournament.total_rounds
        return (
            total_rounds is not None
            and total_rounds >= 2
            and match.round_number == total_rounds - 1
        )

    @staticmethod
    def _third_place_match(session: Session, semi_final: Match) -> Optional[Match]:
        return session.execute(
            select(Match).where(
                Match.tournament_id == semi_final.tournament_id,
                Match.round_number == semi_final.round_number + 1,
                Match.bracket_position == THIRD_PLACE_POSITION,
            )
        ).scalar_one_or_none()

    def _bye_processor(self, session: Session) -> ByeProcessor:
        return ByeProcessor(session, advance=self._propagate, clock=self.clock)


def _session_of(instance) -> Session:
    session = object_session(instance)
    if session is None:
        raise ValueError(f"{instance!r} is not attached to a session")
    return session
