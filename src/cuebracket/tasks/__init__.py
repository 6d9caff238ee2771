"""Background work: match sweeps, bracket generation job and advisory locks."""

from cuebracket.tasks.generation import BracketGenerationJob, start_tournament
from cuebracket.tasks.locks import advisory_lock_key, postgres_advisory_lock, tournament_lock_key
from cuebracket.tasks.runtime import SweepResult
from cuebracket.tasks.sweeps import (
    auto_confirm_matches,
    expire_scheduled_matches,
    send_match_reminders,
)

__all__ = [
    "BracketGenerationJob",
    "SweepResult",
    "advisory_lock_key",
    "auto_confirm_matches",
    "expire_scheduled_matches",
    "postgres_advisory_lock",
    "send_match_reminders",
    "start_tournament",
    "tournament_lock_key",
]
