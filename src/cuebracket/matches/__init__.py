"""Match life cycle: state machine and result validation."""

from cuebracket.matches.scoring import determine_result, validate_race_to_score
from cuebracket.matches.state_machine import Arbiter, MatchStateMachine

__all__ = [
    "Arbiter",
    "MatchStateMachine",
    "determine_result",
    "validate_race_to_score",
]
