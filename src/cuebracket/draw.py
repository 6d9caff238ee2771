"""
Bracket positional math.

Pure functions over single-elimination bracket geometry. Rounds are
numbered from 1 (the opening round) up to ``total_rounds`` (the final).
Slot indices are 0-based within each round:

    Round r, slot i  →  Round r+1, slot i // 2, side "player1" if i is even
                                                 else "player2"

So slots 0 and 1 of round 1 feed slot 0 of round 2 (as player1 and
player2 respectively), slots 2 and 3 feed slot 1, and so on.

These functions are used by:
- Bracket structure building (sizes, round names, seed pairing)
- Bracket generation (pre-wiring next_match_id / next_match_slot)
- Bye processing (finding the feeder of an empty slot)
"""

from typing import NamedTuple

from cuebracket.statuses import (
    MATCH_FINAL,
    MATCH_QUARTER_FINAL,
    MATCH_REGULAR,
    MATCH_SEMI_FINAL,
    SLOT_PLAYER1,
    SLOT_PLAYER2,
)

MIN_BRACKET_SIZE = 2


class NextSlot(NamedTuple):
    """Where the winner of a slot goes in the following round."""

    round_number: int
    slot_index: int
    side: str


def is_power_of_two(value: int) -> bool:
    return value >= 1 and value & (value - 1) == 0


def calculate_bracket_size(participant_count: int) -> int:
    """
    Smallest power of two that fits every participant.

    Args:
        participant_count: Number of seeded participants (at least 2)

    Returns:
        Bracket size (2, 4, 8, 16, ...)

    Raises:
        ValueError: If fewer than two participants are given. A lone
            participant is handled by the caller without building a bracket.

    Examples:
        >>> calculate_bracket_size(2)
        2
        >>> calculate_bracket_size(5)
        8
        >>> calculate_bracket_size(16)
        16
    """
    if participant_count < MIN_BRACKET_SIZE:
        raise ValueError(
            f"A bracket needs at least {MIN_BRACKET_SIZE} participants, got {participant_count}"
        )
    size = MIN_BRACKET_SIZE
    while size < participant_count:
        size *= 2
    return size


def calculate_total_rounds(bracket_size: int) -> int:
    """
    Number of rounds for a bracket size (log2 of the size).

    Examples:
        >>> calculate_total_rounds(8)
        3
        >>> calculate_total_rounds(2)
        1
    """
    if bracket_size < MIN_BRACKET_SIZE or not is_power_of_two(bracket_size):
        raise ValueError(f"Bracket size must be a power of two >= 2, got {bracket_size}")
    return bracket_size.bit_length() - 1


def calculate_bye_count(bracket_size: int, participant_count: int) -> int:
    """Number of empty round-1 slots."""
    if participant_count > bracket_size:
        raise ValueError(f"{participant_count} participants do not fit a bracket of {bracket_size}")
    return bracket_size - participant_count


def round_match_count(bracket_size: int, round_number: int) -> int:
    """
    Matches in a given round.

    Examples:
        >>> round_match_count(8, 1)
        4
        >>> round_match_count(8, 3)
        1
    """
    return bracket_size >> round_number


def seed_positions(bracket_size: int) -> list[int]:
    """
    Seed numbers in bracket order for a bracket size.

    Built by repeated doubling: every seed ``s`` in the current order is
    replaced by the pair ``(s, size + 1 - s)``. Consecutive pairs of the
    result are the round-1 matches, which keeps the top seeds apart until
    the latest possible round. Seed numbers above the participant count
    are byes.

    Examples:
        >>> seed_positions(4)
        [1, 4, 2, 3]
        >>> seed_positions(8)
        [1, 8, 4, 5, 2, 7, 3, 6]
    """
    calculate_total_rounds(bracket_size)
    order = [1, 2]
    while len(order) < bracket_size:
        doubled = len(order) * 2
        order = [seed for s in order for seed in (s, doubled + 1 - s)]
    return order


def slot_side(slot_index: int) -> str:
    """
    Side of the next match a slot's winner lands in.

    Examples:
        >>> slot_side(0)
        'player1'
        >>> slot_side(3)
        'player2'
    """
    return SLOT_PLAYER1 if slot_index % 2 == 0 else SLOT_PLAYER2


def parent_slot(round_number: int, slot_index: int) -> NextSlot:
    """
    Map a slot in one round to its slot in the next round.

    Examples:
        >>> parent_slot(1, 5)
        NextSlot(round_number=2, slot_index=2, side='player2')
    """
    if slot_index < 0:
        raise ValueError(f"Slot index must be >= 0, got {slot_index}")
    return NextSlot(round_number + 1, slot_index // 2, slot_side(slot_index))


def feeder_slots(slot_index: int) -> tuple[int, int]:
    """
    Slots in the previous round that feed a slot (player1 feeder first).

    Examples:
        >>> feeder_slots(2)
        (4, 5)
    """
    return 2 * slot_index, 2 * slot_index + 1


def rounds_from_final(round_number: int, total_rounds: int) -> int:
    if not 1 <= round_number <= total_rounds:
        raise ValueError(f"Round {round_number} outside 1..{total_rounds}")
    return total_rounds - round_number


def round_name(round_number: int, total_rounds: int) -> str:
    """
    Display name of a round, derived from its distance to the final.

    Examples:
        >>> round_name(3, 3)
        'Final'
        >>> round_name(1, 3)
        'Quarter-Finals'
        >>> round_name(1, 5)
        'Round of 32'
    """
    distance = rounds_from_final(round_number, total_rounds)
    if distance == 0:
        return "Final"
    if distance == 1:
        return "Semi-Finals"
    if distance == 2:
        return "Quarter-Finals"
    return f"Round of {2 ** (distance + 1)}"


def match_type_for_round(round_number: int, total_rounds: int) -> str:
    distance = rounds_from_final(round_number, total_rounds)
    return {0: MATCH_FINAL, 1: MATCH_SEMI_FINAL, 2: MATCH_QUARTER_FINAL}.get(
        distance, MATCH_REGULAR
    )
