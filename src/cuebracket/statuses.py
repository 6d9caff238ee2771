"""Shared status and type vocabularies.

This module is the single source of truth for the short string values
stored in status/type columns, and for the status groups reused by the
bracket service, the state machine and the background sweeps.
"""

from __future__ import annotations

# -----------------------------------------------------------------------------
# Tournaments
# -----------------------------------------------------------------------------

FORMAT_SINGLE_ELIMINATION = "single_elimination"

TOURNAMENT_DRAFT = "draft"
TOURNAMENT_REGISTRATION = "registration"
TOURNAMENT_ACTIVE = "active"
TOURNAMENT_COMPLETED = "completed"
TOURNAMENT_CANCELLED = "cancelled"

ALL_TOURNAMENT_STATUSES: tuple[str, ...] = (
    TOURNAMENT_DRAFT,
    TOURNAMENT_REGISTRATION,
    TOURNAMENT_ACTIVE,
    TOURNAMENT_COMPLETED,
    TOURNAMENT_CANCELLED,
)

# -----------------------------------------------------------------------------
# Participants
# -----------------------------------------------------------------------------

PARTICIPANT_REGISTERED = "registered"
PARTICIPANT_ACTIVE = "active"
PARTICIPANT_ELIMINATED = "eliminated"
PARTICIPANT_DISQUALIFIED = "disqualified"
PARTICIPANT_WINNER = "winner"

# Participants that can be seeded into a new bracket.
SEEDABLE_PARTICIPANT_STATUSES: tuple[str, ...] = (
    PARTICIPANT_REGISTERED,
    PARTICIPANT_ACTIVE,
)

# -----------------------------------------------------------------------------
# Matches
# -----------------------------------------------------------------------------

MATCH_SCHEDULED = "scheduled"
MATCH_PENDING_CONFIRMATION = "pending_confirmation"
MATCH_COMPLETED = "completed"
MATCH_DISPUTED = "disputed"
MATCH_EXPIRED = "expired"
MATCH_CANCELLED = "cancelled"

ALL_MATCH_STATUSES: tuple[str, ...] = (
    MATCH_SCHEDULED,
    MATCH_PENDING_CONFIRMATION,
    MATCH_COMPLETED,
    MATCH_DISPUTED,
    MATCH_EXPIRED,
    MATCH_CANCELLED,
)

MATCH_STATUS_GROUPS: dict[str, tuple[str, ...]] = {
    # Matches that still need a human (or a sweep) to act.
    "open": (MATCH_SCHEDULED, MATCH_PENDING_CONFIRMATION, MATCH_DISPUTED),
    # Once here a match never changes again.
    "terminal": (MATCH_COMPLETED, MATCH_EXPIRED, MATCH_CANCELLED),
    "all": ALL_MATCH_STATUSES,
}

MATCH_REGULAR = "regular"
MATCH_QUARTER_FINAL = "quarter_final"
MATCH_SEMI_FINAL = "semi_final"
MATCH_FINAL = "final"
MATCH_THIRD_PLACE = "third_place"
MATCH_BYE = "bye"
MATCH_GROUP = "group"

ALL_MATCH_TYPES: tuple[str, ...] = (
    MATCH_REGULAR,
    MATCH_QUARTER_FINAL,
    MATCH_SEMI_FINAL,
    MATCH_FINAL,
    MATCH_THIRD_PLACE,
    MATCH_BYE,
    MATCH_GROUP,
)

# Match types played over ``finals_race_to`` when the tournament sets one.
FINALS_MATCH_TYPES: tuple[str, ...] = (MATCH_SEMI_FINAL, MATCH_FINAL, MATCH_THIRD_PLACE)

FORFEIT_NO_SHOW = "no_show"
FORFEIT_DOUBLE = "double_forfeit"
FORFEIT_WALKOVER = "walkover"

# Slots inside a match that a winner can be advanced into.
SLOT_PLAYER1 = "player1"
SLOT_PLAYER2 = "player2"
SLOTS: tuple[str, ...] = (SLOT_PLAYER1, SLOT_PLAYER2)


def get_status_group(group_name: str) -> tuple[str, ...]:
    """Return a named match status group, raising KeyError for unknown names."""
    return MATCH_STATUS_GROUPS[group_name]


def is_terminal(status: str) -> bool:
    return status in MATCH_STATUS_GROUPS["terminal"]
