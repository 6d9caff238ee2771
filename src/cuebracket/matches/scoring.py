"""Score and free-text validation for match results."""

from __future__ import annotations

from typing import Optional

from cuebracket.db.models import Match
from cuebracket.errors import ScoreValidationError, ValidationError

MIN_DISPUTE_REASON_LENGTH = 10
MAX_DISPUTE_REASON_LENGTH = 500
MAX_RESOLUTION_NOTES_LENGTH = 2000


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_race_to_score(player1_score: int, player2_score: int, race_to: int) -> None:
    """
    Check a score pair is a finished race-to result.

    Valid iff both scores are non-negative integers, exactly one side
    reached ``race_to`` and the other is strictly below it.

    Examples:
        >>> validate_race_to_score(3, 1, 3)
        >>> validate_race_to_score(3, 3, 3)
        Traceback (most recent call last):
        ...
        cuebracket.errors.ScoreValidationError: Exactly one side must reach 3 (got 3-3)
    """
    if not (_is_int(player1_score) and _is_int(player2_score)):
        raise ScoreValidationError(
            f"Scores must be integers (got {player1_score!r}-{player2_score!r})"
        )
    if player1_score < 0 or player2_score < 0:
        raise ScoreValidationError(
            f"Scores cannot be negative (got {player1_score}-{player2_score})"
        )
    player1_won = player1_score == race_to and player2_score < race_to
    player2_won = player2_score == race_to and player1_score < race_to
    if not (player1_won or player2_won):
        raise ScoreValidationError(
            f"Exactly one side must reach {race_to} (got {player1_score}-{player2_score})"
        )


def determine_result(match: Match) -> tuple[int, int]:
    """Return (winner_id, loser_id) from the stored scores; the higher score wins."""
    if match.player1_score is None or match.player2_score is None:
        raise ScoreValidationError(f"Match {match.id} has no scores to decide a winner")
    if match.player1_score == match.player2_score:
        raise ScoreValidationError(f"Match {match.id} is tied {match.player1_score}-all")
    if match.player1_score > match.player2_score:
        return match.player1_id, match.player2_id
    return match.player2_id, match.player1_id


def validate_dispute_reason(reason: Optional[str]) -> str:
    text = (reason or "").strip()
    if len(text) < MIN_DISPUTE_REASON_LENGTH:
        raise ValidationError(
            f"Dispute reason must be at least {MIN_DISPUTE_REASON_LENGTH} characters"
        )
    if len(text) > MAX_DISPUTE_REASON_LENGTH:
        raise ValidationError(
            f"Dispute reason must be at most {MAX_DISPUTE_REASON_LENGTH} characters"
        )
    return text


def validate_resolution_notes(notes: Optional[str]) -> Optional[str]:
    if notes is None:
        return None
    text = notes.strip()
    if len(text) > MAX_RESOLUTION_NOTES_LENGTH:
        raise ValidationError(
            f"Resolution notes must be at most {MAX_RESOLUTION_NOTES_LENGTH} characters"
        )
    return text or None
