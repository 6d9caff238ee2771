"""Bracket skeleton: sizes, per-round metadata and round-1 slot filling."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence

from cuebracket import draw
from cuebracket.bracket.seeding import SeedAssignment


@dataclass(frozen=True)
class RoundInfo:
    round_number: int
    name: str
    match_type: str
    match_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "round_number": self.round_number,
            "name": self.name,
            "match_type": self.match_type,
            "match_count": self.match_count,
        }


@dataclass(frozen=True)
class BracketStructure:
    participant_count: int
    bracket_size: int
    total_rounds: int
    bye_count: int
    rounds: tuple[RoundInfo, ...]
    slot_order: tuple[int, ...]

    def round(self, round_number: int) -> RoundInfo:
        return self.rounds[round_number - 1]


SlotPair = tuple[Optional[SeedAssignment], Optional[SeedAssignment]]


class BracketStructureBuilder:
    """
    Computes the bracket skeleton for a participant count.

    The seed-to-slot mapping follows standard seed pairing (see
    ``draw.seed_positions``), so the same seed list always lands in the
    same slots and seeds 1 and 2 can only meet in the final.
    """

    def build(self, participant_count: int) -> BracketStructure:
        bracket_size = draw.calculate_bracket_size(participant_count)
        total_rounds = draw.calculate_total_rounds(bracket_size)
        rounds = tuple(
            RoundInfo(
                round_number=r,
                name=draw.round_name(r, total_rounds),
                match_type=draw.match_type_for_round(r, total_rounds),
                match_count=draw.round_match_count(bracket_size, r),
            )
            for r in range(1, total_rounds + 1)
        )
        return BracketStructure(
            participant_count=participant_count,
            bracket_size=bracket_size,
            total_rounds=total_rounds,
            bye_count=draw.calculate_bye_count(bracket_size, participant_count),
            rounds=rounds,
            slot_order=tuple(draw.seed_positions(bracket_size)),
        )

    def assign_slots(
        self,
        seeds: Sequence[SeedAssignment],
        structure: BracketStructure,
    ) -> list[SlotPair]:
        """
        Round-1 pairings in bracket-position order.

        Each pair is (player1, player2); ``None`` marks a bye slot for a seed
        number above the participant count.
        """
        by_seed = {assignment.seed: assignment for assignment in seeds}
        if sorted(by_seed) != list(range(1, len(seeds) + 1)):
            raise ValueError("Seed numbers must be unique and run 1..N without gaps")
        if len(seeds) != structure.participant_count:
            raise ValueError(
                f"Structure built for {structure.participant_count} participants, "
                f"got {len(seeds)} seeds"
            )

        slots = [by_seed.get(seed) for seed in structure.slot_order]
        return [(slots[i], slots[i + 1]) for i in range(0, len(slots), 2)]
