"""
SQLAlchemy ORM models for cuebracket.

This module defines the three tables the bracket engine reads and writes.
A tournament owns its participants and its matches; matches point at each
other through ``next_match_id`` to form the bracket tree rooted at the
final.

Key design decisions:
- Match slots reference participants (not users), so results update the
  participant's tournament statistics directly
- Bracket geometry is stored explicitly (round_number, bracket_position,
  next_match_id, next_match_slot) so advancement never recomputes it
- One row per bracket slot, enforced by a unique constraint, so a second
  generation for the same tournament cannot slip in duplicate matches
- Status/type columns are short strings; the vocabularies live in
  cuebracket.statuses

Tables:
- tournaments: Tournament configuration and lifecycle status
- participants: Registered entrants with rating, seed and statistics
- matches: Every bracket match from round 1 to the final
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from cuebracket.statuses import (
    FORMAT_SINGLE_ELIMINATION,
    MATCH_COMPLETED,
    MATCH_REGULAR,
    MATCH_SCHEDULED,
    PARTICIPANT_REGISTERED,
    SLOT_PLAYER1,
    SLOT_PLAYER2,
    SLOTS,
    TOURNAMENT_DRAFT,
    is_terminal,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# =============================================================================
# Tournament
# =============================================================================

class Tournament(Base):
    """
    A knockout event and its match configuration.

    Lifecycle: draft -> registration -> active -> completed, with cancelled
    reachable from any non-terminal status. The bracket is generated on the
    registration -> active transition.

    Race-to and deadline columns are nullable; unset values fall back to
    the defaults in settings.
    """
    __tablename__ = "tournaments"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    format: Mapped[str] = mapped_column(String(30), default=FORMAT_SINGLE_ELIMINATION)
    status: Mapped[str] = mapped_column(String(20), default=TOURNAMENT_DRAFT)

    # Frames needed to win; finals_race_to applies to semi-finals, final and third place
    race_to: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    finals_race_to: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Deadlines (hours)
    confirmation_hours: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    match_deadline_hours: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    winners_count: Mapped[int] = mapped_column(Integer, default=1)
    third_place_match: Mapped[bool] = mapped_column(Boolean, default=False)
    auto_confirm_results: Mapped[bool] = mapped_column(Boolean, default=True)
    double_forfeit_on_expiry: Mapped[bool] = mapped_column(Boolean, default=True)

    # Populated by bracket generation
    bracket_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    total_rounds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    matches_count: Mapped[int] = mapped_column(Integer, default=0)

    starts_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    ends_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    participants: Mapped[list["Participant"]] = relationship(
        back_populates="tournament",
        cascade="all, delete-orphan",
        order_by="Participant.id",
    )
    matches: Mapped[list["Match"]] = relationship(
        back_populates="tournament",
        cascade="all, delete-orphan",
        order_by="[Match.round_number, Match.bracket_position]",
    )

    __table_args__ = (
        Index("idx_tournaments_status", "status"),
    )

    @property
    def participant_count(self) -> int:
        return len(self.participants)

    def __repr__(self) -> str:
        return f"<Tournament(id={self.id}, name='{self.name}', status='{self.status}')>"


# =============================================================================
# Participant
# =============================================================================

class Participant(Base):
    """
    A player's entry in one tournament.

    ``player_id`` is the platform's user/player identity and is not a foreign
    key here; identity lives outside the bracket engine. Status moves only
    through match results: active -> eliminated on a decisive loss, or
    active -> winner for the final's victor.
    """
    __tablename__ = "participants"

    id: Mapped[int] = mapped_column(primary_key=True)
    tournament_id: Mapped[int] = mapped_column(
        ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False
    )
    player_id: Mapped[int] = mapped_column(Integer, nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Seeding signal
    rating: Mapped[int] = mapped_column(Integer, default=0)

    status: Mapped[str] = mapped_column(String(20), default=PARTICIPANT_REGISTERED)
    seed: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    final_position: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Statistics (updated as matches complete, byes excluded)
    matches_played: Mapped[int] = mapped_column(Integer, default=0)
    matches_won: Mapped[int] = mapped_column(Integer, default=0)
    matches_lost: Mapped[int] = mapped_column(Integer, default=0)
    frames_won: Mapped[int] = mapped_column(Integer, default=0)
    frames_lost: Mapped[int] = mapped_column(Integer, default=0)

    eliminated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    tournament: Mapped["Tournament"] = relationship(back_populates="participants")

    __table_args__ = (
        UniqueConstraint("tournament_id", "player_id", name="uq_participant_tournament_player"),
        Index("idx_participants_tournament_status", "tournament_id", "status"),
    )

    @property
    def frame_difference(self) -> int:
        return (self.frames_won or 0) - (self.frames_lost or 0)

    def __repr__(self) -> str:
        return (
            f"<Participant(id={self.id}, player_id={self.player_id}, "
            f"seed={self.seed}, status='{self.status}')>"
        )


# =============================================================================
# Match
# =============================================================================

class Match(Base):
    """
    One bracket match, from creation by the generator to a terminal status.

    Status lifecycle:
    - 'scheduled': Waiting for a result (one slot may still be empty)
    - 'pending_confirmation': A player submitted scores, opponent to respond
    - 'disputed': Opponent rejected the submitted scores, arbiter to resolve
    - 'completed': Winner decided (played, confirmed, resolved, or a bye)
    - 'expired': Deadline passed with no submission, no winner
    - 'cancelled': Administratively cancelled

    Completed, expired and cancelled are terminal.

    Bracket links:
    - next_match_id/next_match_slot: where this match's winner goes. Null only
      for the final and the third-place match.
    - Scores are stored as player1/player2, never from a submitter's view.
    """
    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(primary_key=True)
    tournament_id: Mapped[int] = mapped_column(
        ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False
    )

    # Bracket geometry
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    round_name: Mapped[str] = mapped_column(String(50), nullable=False)
    bracket_position: Mapped[int] = mapped_column(Integer, nullable=False)
    match_type: Mapped[str] = mapped_column(String(20), default=MATCH_REGULAR)
    race_to: Mapped[int] = mapped_column(Integer, nullable=False)

    # Player slots (either may be empty until a feeder resolves)
    player1_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("participants.id"), nullable=True
    )
    player2_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("participants.id"), nullable=True
    )
    player1_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    player2_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    winner_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("participants.id"), nullable=True
    )
    loser_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("participants.id"), nullable=True
    )

    status: Mapped[str] = mapped_column(String(30), default=MATCH_SCHEDULED)

    # ==========================================================================
    # Submission / confirmation / dispute trail
    # ==========================================================================
    submitted_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    confirmation_deadline_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    confirmed_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    auto_confirmed: Mapped[bool] = mapped_column(Boolean, default=False)

    disputed_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    disputed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    dispute_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # A no-show report is a dispute raised before any result was submitted
    no_show_reported_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    no_show_reported_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Arbiter (support/admin user id, not a participant)
    resolved_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    resolution_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ==========================================================================
    # Timing
    # ==========================================================================
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    played_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    forfeit_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    cancelled_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ==========================================================================
    # Advancement link
    # ==========================================================================
    next_match_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("matches.id"), nullable=True
    )
    next_match_slot: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    tournament: Mapped["Tournament"] = relationship(back_populates="matches")
    player1: Mapped[Optional["Participant"]] = relationship(foreign_keys=[player1_id])
    player2: Mapped[Optional["Participant"]] = relationship(foreign_keys=[player2_id])
    winner: Mapped[Optional["Participant"]] = relationship(foreign_keys=[winner_id])

    __table_args__ = (
        UniqueConstraint(
            "tournament_id", "round_number", "bracket_position",
            name="uq_matches_bracket_slot",
        ),
        Index("idx_matches_next_match", "next_match_id"),
        # Sweep lookups: scheduled matches by deadline, pending by confirmation deadline
        Index("idx_matches_status_expires", "status", "expires_at"),
        Index("idx_matches_status_confirmation", "status", "confirmation_deadline_at"),
    )

    def slot_player_id(self, side: str) -> Optional[int]:
        if side == SLOT_PLAYER1:
            return self.player1_id
        if side == SLOT_PLAYER2:
            return self.player2_id
        raise ValueError(f"Unknown slot: {side}")

    def set_slot_player_id(self, side: str, participant_id: Optional[int]) -> None:
        if side == SLOT_PLAYER1:
            self.player1_id = participant_id
        elif side == SLOT_PLAYER2:
            self.player2_id = participant_id
        else:
            raise ValueError(f"Unknown slot: {side}")

    @property
    def player_ids(self) -> tuple[Optional[int], Optional[int]]:
        return self.player1_id, self.player2_id

    @property
    def has_both_players(self) -> bool:
        return self.player1_id is not None and self.player2_id is not None

    @property
    def empty_slots(self) -> list[str]:
        return [side for side in SLOTS if self.slot_player_id(side) is None]

    def has_player(self, participant_id: int) -> bool:
        return participant_id is not None and participant_id in self.player_ids

    def opponent_of(self, participant_id: int) -> Optional[int]:
        if participant_id == self.player1_id:
            return self.player2_id
        if participant_id == self.player2_id:
            return self.player1_id
        return None

    @property
    def is_bye(self) -> bool:
        """Completed with a winner but never played: one slot stayed empty."""
        return (
            self.status == MATCH_COMPLETED
            and self.winner_id is not None
            and not self.has_both_players
        )

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    def __repr__(self) -> str:
        return (
            f"<Match(id={self.id}, round={self.round_number}, pos={self.bracket_position}, "
            f"{self.player1_id} vs {self.player2_id}, status='{self.status}')>"
        )
