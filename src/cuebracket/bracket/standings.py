"""
Final standings for a finished single-elimination bracket.

Positions 1 and 2 come from the final, 3 and 4 from the third-place match
when it produced a winner. A slot nobody earned (a final decided by a bye
has no runner-up) stays vacant. Everyone else is numbered on from the last
taken podium place, ranked by:

1. Elimination round (reaching a later round ranks higher)
2. Frame difference (higher is better)
3. Frames won (higher is better)
4. Seed (lower is better)
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from cuebracket.bracket.generator import THIRD_PLACE_POSITION
from cuebracket.db.models import Match, Participant, Tournament

logger = logging.getLogger(__name__)


def _deepest_rounds(matches: list[Match], total_rounds: int) -> dict[int, int]:
    """Latest bracket round each participant appeared in (third place excluded)."""
    deepest: dict[int, int] = {}
    for match in matches:
        if match.round_number == total_rounds and match.bracket_position == THIRD_PLACE_POSITION:
            continue
        for participant_id in match.player_ids:
            if participant_id is not None:
                deepest[participant_id] = max(deepest.get(participant_id, 0), match.round_number)
    return deepest


def _podium(final: Optional[Match], third_place: Optional[Match]) -> dict[int, int]:
    """Fixed places: 1 and 2 from the final, 3 and 4 from the third-place match."""
    placed: dict[int, int] = {}
    for match, first in ((final, 1), (third_place, 3)):
        if match is None:
            continue
        if match.winner_id is not None:
            placed[match.winner_id] = first
        if match.loser_id is not None:
            placed[match.loser_id] = first + 1
    return placed


def calculate_final_positions(session: Session, tournament: Tournament) -> list[Participant]:
    """
    Rank every seeded participant and write ``final_position``.

    Returns:
        Participants in finishing order (position 1 first).
    """
    session.flush()
    matches = list(
        session.execute(
            select(Match)
            .where(Match.tournament_id == tournament.id)
            .order_by(Match.round_number, Match.bracket_position)
        ).scalars()
    )
    seeded = [p for p in tournament.participants if p.seed is not None]
    if not matches:
        return []

    total_rounds = tournament.total_rounds or max(m.round_number for m in matches)
    final = next(
        (m for m in matches if m.round_number == total_rounds and m.bracket_position == 0),
        None,
    )
    third_place = next(
        (
            m for m in matches
            if m.round_number == total_rounds and m.bracket_position == THIRD_PLACE_POSITION
        ),
        None,
    )

    podium = _podium(final, third_place)
    deepest = _deepest_rounds(matches, total_rounds)
    by_id = {p.id: p for p in seeded}
    rest = sorted(
        (p for p in seeded if p.id not in podium),
        key=lambda p: (
            -deepest.get(p.id, 0),
            -p.frame_difference,
            -(p.frames_won or 0),
            p.seed,
        ),
    )

    placed = sorted((position, pid) for pid, position in podium.items() if pid in by_id)
    for position, pid in placed:
        by_id[pid].final_position = position
    # Vacant podium slots are not filled from below
    next_position = placed[-1][0] + 1 if placed else 1
    for position, participant in enumerate(rest, start=next_position):
        participant.final_position = position

    ordered = [by_id[pid] for _, pid in placed] + rest
    logger.info(
        "Final standings for tournament %s: %s",
        tournament.id,
        ", ".join(f"{p.final_position}. participant {p.id}" for p in ordered[:4]),
    )
    return ordered
