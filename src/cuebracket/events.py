"""
Domain events emitted by bracket generation and match transitions.

Every transition produces one immutable event value carrying the full
payload a notification dispatcher needs (match and tournament ids, both
players, scores, the acting user and a timestamp). Delivery is not handled
here: events go to an EventSink supplied by the caller.

Usage:
    sink = CollectingEventSink()
    machine = MatchStateMachine(session, events=sink)
    machine.submit_result(match, submitter_id=7, my_score=3, opponent_score=1)
    sink.events[-1].to_dict()
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, ClassVar, Optional, Protocol, TypeVar

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DomainEvent:
    event_type: ClassVar[str] = "domain_event"

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"event_type": self.event_type}
        for key, value in asdict(self).items():
            payload[key] = value.isoformat() if isinstance(value, datetime) else value
        return payload


# =============================================================================
# Match events
# =============================================================================

@dataclass(frozen=True)
class MatchEvent(DomainEvent):
    """Fields shared by every per-match event."""

    match_id: int
    tournament_id: int
    round_name: str
    player1_id: Optional[int]
    player2_id: Optional[int]
    player1_score: Optional[int]
    player2_score: Optional[int]
    actor_id: Optional[int]
    occurred_at: datetime


@dataclass(frozen=True)
class MatchResultSubmitted(MatchEvent):
    event_type: ClassVar[str] = "match.result_submitted"

    confirmation_deadline_at: Optional[datetime] = None


@dataclass(frozen=True)
class MatchResultConfirmed(MatchEvent):
    event_type: ClassVar[str] = "match.result_confirmed"

    winner_id: Optional[int] = None
    loser_id: Optional[int] = None
    auto_confirmed: bool = False


@dataclass(frozen=True)
class MatchDisputed(MatchEvent):
    event_type: ClassVar[str] = "match.disputed"

    reason: str = ""


@dataclass(frozen=True)
class MatchResolved(MatchEvent):
    event_type: ClassVar[str] = "match.resolved"

    winner_id: Optional[int] = None
    loser_id: Optional[int] = None
    resolution_notes: Optional[str] = None


@dataclass(frozen=True)
class MatchNoShowReported(MatchEvent):
    event_type: ClassVar[str] = "match.no_show_reported"

    reason: str = ""


@dataclass(frozen=True)
class MatchWalkoverAwarded(MatchEvent):
    event_type: ClassVar[str] = "match.walkover_awarded"

    winner_id: Optional[int] = None
    loser_id: Optional[int] = None
    forfeit_type: Optional[str] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class MatchExpired(MatchEvent):
    event_type: ClassVar[str] = "match.expired"

    forfeit_type: Optional[str] = None


@dataclass(frozen=True)
class MatchCancelled(MatchEvent):
    event_type: ClassVar[str] = "match.cancelled"

    reason: str = ""


@dataclass(frozen=True)
class MatchReminderDue(MatchEvent):
    event_type: ClassVar[str] = "match.reminder_due"

    expires_at: Optional[datetime] = None
    hours_remaining: int = 0


# =============================================================================
# Tournament events
# =============================================================================

@dataclass(frozen=True)
class TournamentStarted(DomainEvent):
    event_type: ClassVar[str] = "tournament.started"

    tournament_id: int
    participant_count: int
    bracket_size: int
    total_rounds: int
    matches_created: int
    occurred_at: datetime


@dataclass(frozen=True)
class TournamentCompleted(DomainEvent):
    event_type: ClassVar[str] = "tournament.completed"

    tournament_id: int
    winner_participant_id: Optional[int]
    occurred_at: datetime


def match_event_fields(match, actor_id: Optional[int], occurred_at: datetime) -> dict[str, Any]:
    """Common MatchEvent keyword arguments read from a Match row."""
    return {
        "match_id": match.id,
        "tournament_id": match.tournament_id,
        "round_name": match.round_name,
        "player1_id": match.player1_id,
        "player2_id": match.player2_id,
        "player1_score": match.player1_score,
        "player2_score": match.player2_score,
        "actor_id": actor_id,
        "occurred_at": occurred_at,
    }


# =============================================================================
# Sinks
# =============================================================================

E = TypeVar("E", bound=DomainEvent)


class EventSink(Protocol):
    def publish(self, event: DomainEvent) -> None: ...


class CollectingEventSink:
    """Keeps published events in memory (tests, and per-item buffering in sweeps)."""

    def __init__(self) -> None:
        self.events: list[DomainEvent] = []

    def publish(self, event: DomainEvent) -> None:
        self.events.append(event)

    def of_type(self, event_cls: type[E]) -> list[E]:
        return [event for event in self.events if isinstance(event, event_cls)]

    def drain_to(self, sink: "EventSink") -> int:
        """Forward buffered events to another sink and clear the buffer."""
        forwarded = 0
        for event in self.events:
            sink.publish(event)
            forwarded += 1
        self.events.clear()
        return forwarded

    def clear(self) -> None:
        self.events.clear()


class LoggingEventSink:
    """Writes each event to the log. Default sink when none is configured."""

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    def publish(self, event: DomainEvent) -> None:
        logger.log(self.level, "Event %s: %s", event.event_type, event.to_dict())
