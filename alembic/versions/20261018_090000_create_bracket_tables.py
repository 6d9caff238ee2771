"""Create tournaments, participants and matches tables

Revision ID: 3f1a6c2b9d40
Revises:
Create Date: 2026-10-18 09:00:00.000000+00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# Revision identifiers, used by Alembic.
revision: str = "3f1a6c2b9d40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "tournaments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("format", sa.String(length=30), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("race_to", sa.Integer(), nullable=True),
        sa.Column("finals_race_to", sa.Integer(), nullable=True),
        sa.Column("confirmation_hours", sa.Integer(), nullable=True),
        sa.Column("match_deadline_hours", sa.Integer(), nullable=True),
        sa.Column("winners_count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("third_place_match", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("auto_confirm_results", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "double_forfeit_on_expiry", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column("bracket_size", sa.Integer(), nullable=True),
        sa.Column("total_rounds", sa.Integer(), nullable=True),
        sa.Column("matches_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("starts_at", sa.DateTime(), nullable=True),
        sa.Column("ends_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_tournaments_status", "tournaments", ["status"])

    op.create_table(
        "participants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("seed", sa.Integer(), nullable=True),
        sa.Column("final_position", sa.Integer(), nullable=True),
        sa.Column("matches_played", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("matches_won", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("matches_lost", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("frames_won", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("frames_lost", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("eliminated_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournaments.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tournament_id", "player_id", name="uq_participant_tournament_player"),
    )
    op.create_index(
        "idx_participants_tournament_status", "participants", ["tournament_id", "status"]
    )

    op.create_table(
        "matches",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("round_name", sa.String(length=50), nullable=False),
        sa.Column("bracket_position", sa.Integer(), nullable=False),
        sa.Column("match_type", sa.String(length=20), nullable=False),
        sa.Column("race_to", sa.Integer(), nullable=False),
        sa.Column("player1_id", sa.Integer(), nullable=True),
        sa.Column("player2_id", sa.Integer(), nullable=True),
        sa.Column("player1_score", sa.Integer(), nullable=True),
        sa.Column("player2_score", sa.Integer(), nullable=True),
        sa.Column("winner_id", sa.Integer(), nullable=True),
        sa.Column("loser_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=30), nullable=False),
        sa.Column("submitted_by", sa.Integer(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(), nullable=True),
        sa.Column("confirmation_deadline_at", sa.DateTime(), nullable=True),
        sa.Column("confirmed_by", sa.Integer(), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(), nullable=True),
        sa.Column("auto_confirmed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("disputed_by", sa.Integer(), nullable=True),
        sa.Column("disputed_at", sa.DateTime(), nullable=True),
        sa.Column("dispute_reason", sa.Text(), nullable=True),
        sa.Column("no_show_reported_by", sa.Integer(), nullable=True),
        sa.Column("no_show_reported_at", sa.DateTime(), nullable=True),
        sa.Column("resolved_by", sa.Integer(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("played_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("forfeit_type", sa.String(length=20), nullable=True),
        sa.Column("cancelled_reason", sa.Text(), nullable=True),
        sa.Column("next_match_id", sa.Integer(), nullable=True),
        sa.Column("next_match_slot", sa.String(length=10), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournaments.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["player1_id"], ["participants.id"]),
        sa.ForeignKeyConstraint(["player2_id"], ["participants.id"]),
        sa.ForeignKeyConstraint(["winner_id"], ["participants.id"]),
        sa.ForeignKeyConstraint(["loser_id"], ["participants.id"]),
        sa.ForeignKeyConstraint(["next_match_id"], ["matches.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "tournament_id", "round_number", "bracket_position", name="uq_matches_bracket_slot"
        ),
    )
    op.create_index("idx_matches_next_match", "matches", ["next_match_id"])
    op.create_index("idx_matches_status_expires", "matches", ["status", "expires_at"])
    op.create_index(
        "idx_matches_status_confirmation", "matches", ["status", "confirmation_deadline_at"]
    )


def downgrade() -> None:
    op.drop_index("idx_matches_status_confirmation", table_name="matches")
    op.drop_index("idx_matches_status_expires", table_name="matches")
    op.drop_index("idx_matches_next_match", table_name="matches")
    op.drop_table("matches")
    op.drop_index("idx_participants_tournament_status", table_name="participants")
    op.drop_table("participants")
    op.drop_index("idx_tournaments_status", table_name="tournaments")
    op.drop_table("tournaments")
