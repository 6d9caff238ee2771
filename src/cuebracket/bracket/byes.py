"""
Bye resolution.

A slot is "dead" when no participant can ever arrive in it:
- an empty round-1 slot (a seed number above the participant count), or
- a later-round slot whose feeder match ended without producing someone
  to advance (expired, cancelled), or
- a third-place slot whose semi-final ended without a loser.

A scheduled match is resolvable when every slot is either filled or dead
and at least one slot is dead. With one participant present the match is
completed as a bye for them (no scores). Round-1 byes are retyped as
``bye``; a later-round bye keeps its round type so a final stays a final.
With nobody present the match is cancelled. Either way the outcome is pushed downstream through the
generator's advancement path, which may make further matches resolvable.

Resolution runs over an explicit worklist, never recursion, so arbitrarily
deep cascades of byes use constant stack.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from cuebracket.clock import Clock
from cuebracket.db.models import Match
from cuebracket.statuses import (
    MATCH_BYE,
    MATCH_CANCELLED,
    MATCH_COMPLETED,
    MATCH_SCHEDULED,
    MATCH_THIRD_PLACE,
    SLOT_PLAYER1,
)

logger = logging.getLogger(__name__)

# Propagates a terminal match downstream; returns the matches it touched.
AdvanceFn = Callable[[Match], list[Match]]


class ByeProcessor:
    def __init__(self, session: Session, advance: AdvanceFn, clock: Clock) -> None:
        self.session = session
        self._advance = advance
        self.clock = clock

    @staticmethod
    def is_bye_match(match: Match) -> bool:
        """Exactly one slot filled."""
        return (match.player1_id is None) != (match.player2_id is None)

    def process_byes(self, matches: Iterable[Match]) -> int:
        """
        Resolve every match reachable from ``matches`` that became a bye.

        Returns:
            Number of matches resolved (byes plus matches cancelled because
            both slots were dead).
        """
        queue = deque(matches)
        processed = 0
        while queue:
            match = queue.popleft()
            if not self.is_resolvable(match):
                continue
            queue.extend(self.process_bye(match))
            processed += 1
        return processed

    def is_resolvable(self, match: Match) -> bool:
        if match.status != MATCH_SCHEDULED:
            return False
        empty = match.empty_slots
        if not empty:
            return False
        return all(self._slot_is_dead(match, side) for side in empty)

    def process_bye(self, match: Match) -> list[Match]:
        """Resolve one match whose empty slots are all dead; return touched matches."""
        present = match.player1_id if match.player1_id is not None else match.player2_id
        now = self.clock.now()

        match.player1_score = None
        match.player2_score = None
        match.loser_id = None
        match.completed_at = now
        if present is not None:
            if match.round_number == 1:
                match.match_type = MATCH_BYE
            match.status = MATCH_COMPLETED
            match.winner_id = present
            logger.debug(
                "Bye: participant %s advances from round %d position %d",
                present, match.round_number, match.bracket_position,
            )
        else:
            match.status = MATCH_CANCELLED
            match.winner_id = None
            match.cancelled_reason = "No participant can reach this match"
            logger.warning(
                "Match %s (round %d position %d) cancelled: both feeders ended without a winner",
                match.id, match.round_number, match.bracket_position,
            )
        self.session.flush()
        return self._advance(match)

    # -------------------------------------------------------------------------
    # Slot inspection
    # -------------------------------------------------------------------------

    def _slot_is_dead(self, match: Match, side: str) -> bool:
        if match.slot_player_id(side) is not None:
            return False

        if match.match_type == MATCH_THIRD_PLACE:
            feeder = self._semi_final_feeder(match, side)
            if feeder is None:
                return False
            return feeder.is_terminal and feeder.loser_id is None

        if match.round_number == 1:
            return True

        feeder = self._feeder(match, side)
        if feeder is None:
            logger.warning("Match %s has no feeder for slot %s", match.id, side)
            return False
        return feeder.is_terminal and feeder.winner_id is None

    def _feeder(self, match: Match, side: str) -> Optional[Match]:
        self.session.flush()
        return self.session.execute(
            select(Match).where(
                Match.next_match_id == match.id,
                Match.next_match_slot == side,
            )
        ).scalar_one_or_none()

    def _semi_final_feeder(self, match: Match, side: str) -> Optional[Match]:
        self.session.flush()
        position = 0 if side == SLOT_PLAYER1 else 1
        return self.session.execute(
            select(Match).where(
                Match.tournament_id == match.tournament_id,
                Match.round_number == match.round_number - 1,
                Match.bracket_position == position,
            )
        ).scalar_one_or_none()
