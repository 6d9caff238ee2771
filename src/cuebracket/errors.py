"""
Exception hierarchy for bracket generation and match progression.

Every error raised on purpose by cuebracket derives from CueBracketError,
grouped by how a caller is expected to react:

- PreconditionError: the request can never succeed as-is (wrong tournament
  status, too few participants, no generator for the format). Nothing was
  written.
- InvalidTransitionError: a match operation was called from a state that
  forbids it, or by someone who may not perform it. The match is unchanged.
- ValidationError: malformed input (scores, dispute text). Raised before
  any mutation.
- BracketIntegrityError: the stored bracket contradicts itself, e.g. a slot
  already holds a different participant.
- GenerationFailedError: bracket generation kept failing on infrastructure
  errors until the retry budget ran out.
"""

from __future__ import annotations


class CueBracketError(Exception):
    """Base class for all cuebracket errors."""


# =============================================================================
# Preconditions
# =============================================================================

class PreconditionError(CueBracketError):
    """An operation's preconditions do not hold."""


class InsufficientParticipantsError(PreconditionError):
    def __init__(self, count: int, minimum: int) -> None:
        self.count = count
        self.minimum = minimum
        super().__init__(
            f"Insufficient participants: {count} eligible, at least {minimum} required"
        )


class TournamentStateError(PreconditionError):
    """The tournament is in the wrong status for the requested operation."""


class NoMatchingGeneratorError(PreconditionError):
    """No registered bracket generator supports the tournament."""


# =============================================================================
# Match transitions
# =============================================================================

class InvalidTransitionError(CueBracketError):
    """A match transition was rejected without touching the match."""


class InvalidMatchStateError(InvalidTransitionError):
    def __init__(
        self,
        match_id: int | None,
        status: str,
        action: str,
        detail: str | None = None,
    ) -> None:
        self.match_id = match_id
        self.status = status
        self.action = action
        self.detail = detail
        message = f"Cannot {action} match {match_id} in status '{status}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class StaleMatchStateError(InvalidTransitionError):
    """Another writer changed the match status between read and update."""

    def __init__(self, match_id: int | None, expected_status: str) -> None:
        self.match_id = match_id
        self.expected_status = expected_status
        super().__init__(
            f"Match {match_id} is no longer '{expected_status}' (concurrent update)"
        )


class NotAuthorizedError(InvalidTransitionError):
    """The acting user may not perform this transition."""


# =============================================================================
# Validation
# =============================================================================

class ValidationError(CueBracketError, ValueError):
    """Input rejected before any mutation."""


class ScoreValidationError(ValidationError):
    """Score pair is not a legal race-to result."""


# =============================================================================
# Integrity and infrastructure
# =============================================================================

class BracketIntegrityError(CueBracketError):
    """Stored bracket links or slots are inconsistent."""


class GenerationFailedError(CueBracketError):
    """Bracket generation failed on every attempt."""

    def __init__(self, tournament_id: int, attempts: int, cause: BaseException | None) -> None:
        self.tournament_id = tournament_id
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"Bracket generation for tournament {tournament_id} failed after "
            f"{attempts} attempt(s): {cause}"
        )
