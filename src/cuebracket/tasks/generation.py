"""
Tournament start / bracket generation job.

Moves a tournament from registration to active by generating its bracket.
The whole operation is one transaction: either every match exists and is
linked, the participants are active and the tournament is active, or none
of it happened.

Serialisation:
- the tournament row is locked (SELECT ... FOR UPDATE) for the transaction
- optionally, a PostgreSQL advisory lock keyed on the tournament id is held
  around every attempt (pass ``lock_engine``)
- a tournament that is no longer in registration is a precondition failure,
  so a duplicate trigger cannot generate twice

Retries: transient database errors are retried with exponential backoff up
to ``generation_max_attempts``. Precondition errors are never retried. When
the attempts run out, a tournament left active without matches is put back
into registration and GenerationFailedError is raised.

A tournament with exactly one eligible participant completes immediately
with that participant as winner and no matches.
"""

from __future__ import annotations

import logging
import time
from contextlib import nullcontext
from typing import Callable, Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, IntegrityError

from cuebracket.bracket.generator import BracketResult
from cuebracket.bracket.seeding import eligible_participants
from cuebracket.bracket.service import BracketService, build_bracket_service
from cuebracket.clock import Clock, SystemClock
from cuebracket.config import Settings, get_settings
from cuebracket.db.models import Match, Tournament
from cuebracket.db.session import SessionFactory, get_session_factory, session_scope
from cuebracket.errors import (
    GenerationFailedError,
    InsufficientParticipantsError,
    TournamentStateError,
)
from cuebracket.events import (
    DomainEvent,
    EventSink,
    LoggingEventSink,
    TournamentCompleted,
    TournamentStarted,
)
from cuebracket.statuses import (
    PARTICIPANT_ACTIVE,
    PARTICIPANT_WINNER,
    TOURNAMENT_ACTIVE,
    TOURNAMENT_COMPLETED,
    TOURNAMENT_REGISTRATION,
)
from cuebracket.tasks.locks import postgres_advisory_lock, tournament_lock_key

logger = logging.getLogger(__name__)


class BracketGenerationJob:
    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        bracket_service: Optional[BracketService] = None,
        clock: Optional[Clock] = None,
        events: Optional[EventSink] = None,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], None] = time.sleep,
        lock_engine: Optional[Engine] = None,
    ) -> None:
        self.session_factory = session_factory
        self.clock = clock or SystemClock()
        self.settings = settings or get_settings()
        self.bracket_service = bracket_service or build_bracket_service(
            clock=self.clock, settings=self.settings
        )
        self.events = events or LoggingEventSink()
        self.sleep = sleep
        self.lock_engine = lock_engine

    def run(self, tournament_id: int) -> Optional[BracketResult]:
        """
        Start the tournament, retrying transient failures.

        Returns:
            The BracketResult, or None when a single participant won outright.

        Raises:
            PreconditionError: Wrong status, too few participants, no generator
            GenerationFailedError: Every attempt failed on a database error
        """
        max_attempts = self.settings.generation_max_attempts
        last_error: Optional[BaseException] = None

        for attempt in range(1, max_attempts + 1):
            try:
                with self._tournament_lock(tournament_id):
                    return self._attempt(tournament_id)
            except IntegrityError as exc:
                # A concurrent generation won the unique bracket-slot race
                raise TournamentStateError(
                    f"Tournament {tournament_id} bracket was created concurrently"
                ) from exc
            except DBAPIError as exc:
                last_error = exc
                logger.warning(
                    "Bracket generation for tournament %s failed (attempt %d/%d): %s",
                    tournament_id, attempt, max_attempts, exc,
                )
                if attempt < max_attempts:
                    delay = self.settings.generation_retry_backoff_seconds * 2 ** (attempt - 1)
                    self.sleep(delay)

        self._revert_status(tournament_id)
        logger.error(
            "Bracket generation for tournament %s gave up after %d attempts",
            tournament_id, max_attempts,
        )
        raise GenerationFailedError(tournament_id, max_attempts, last_error) from last_error

    def _tournament_lock(self, tournament_id: int):
        if self.lock_engine is None:
            return nullcontext(False)
        return postgres_advisory_lock(
            self.lock_engine, key=tournament_lock_key(tournament_id), timeout_seconds=30.0
        )

    def _attempt(self, tournament_id: int) -> Optional[BracketResult]:
        pending_events: list[DomainEvent] = []
        result: Optional[BracketResult] = None

        with session_scope(self.session_factory) as session:
            tournament = session.execute(
                select(Tournament).where(Tournament.id == tournament_id).with_for_update()
            ).scalar_one_or_none()
            if tournament is None:
                raise TournamentStateError(f"Tournament {tournament_id} does not exist")
            if tournament.status != TOURNAMENT_REGISTRATION:
                raise TournamentStateError(
                    f"Tournament {tournament_id} is '{tournament.status}', "
                    f"only tournaments in registration can be started"
                )

            now = self.clock.now()
            eligible = eligible_participants(tournament)
            if len(eligible) == 1:
                pending_events.append(self._declare_sole_winner(tournament, now))
            elif not eligible:
                raise InsufficientParticipantsError(0, 2)
            else:
                result = self.bracket_service.generate(tournament)
                for participant in eligible:
                    participant.status = PARTICIPANT_ACTIVE
                tournament.status = TOURNAMENT_ACTIVE
                tournament.matches_count = result.matches_created
                tournament.starts_at = tournament.starts_at or now
                session.flush()
                pending_events.append(
                    TournamentStarted(
                        tournament_id=tournament.id,
                        participant_count=result.participant_count,
                        bracket_size=result.bracket_size,
                        total_rounds=result.total_rounds,
                        matches_created=result.matches_created,
                        occurred_at=now,
                    )
                )
                logger.info(
                    "Tournament %s started: %d participants, %d matches",
                    tournament.id, result.participant_count, result.matches_created,
                )

        for event in pending_events:
            self.events.publish(event)
        return result

    @staticmethod
    def _declare_sole_winner(tournament: Tournament, now) -> TournamentCompleted:
        (participant,) = eligible_participants(tournament)
        participant.status = PARTICIPANT_WINNER
        participant.seed = 1
        participant.final_position = 1
        tournament.status = TOURNAMENT_COMPLETED
        tournament.matches_count = 0
        tournament.starts_at = tournament.starts_at or now
        tournament.ends_at = now
        logger.info(
            "Tournament %s has a single participant (%s); declared winner without a bracket",
            tournament.id, participant.id,
        )
        return TournamentCompleted(
            tournament_id=tournament.id,
            winner_participant_id=participant.id,
            occurred_at=now,
        )

    def _revert_status(self, tournament_id: int) -> None:
        """Put a tournament left active without matches back into registration."""
        try:
            with session_scope(self.session_factory) as session:
                tournament = session.get(Tournament, tournament_id)
                if tournament is None or tournament.status != TOURNAMENT_ACTIVE:
                    return
                match_count = session.execute(
                    select(func.count(Match.id)).where(Match.tournament_id == tournament_id)
                ).scalar_one()
                if match_count == 0:
                    tournament.status = TOURNAMENT_REGISTRATION
                    logger.warning(
                        "Tournament %s reverted to registration after failed generation",
                        tournament_id,
                    )
        except DBAPIError:
            logger.error(
                "Could not revert tournament %s after failed generation",
                tournament_id, exc_info=True,
            )


def start_tournament(
    tournament_id: int,
    session_factory: Optional[SessionFactory] = None,
    **kwargs,
) -> Optional[BracketResult]:
    """Convenience wrapper: run the generation job against the configured database."""
    job = BracketGenerationJob(session_factory or get_session_factory(), **kwargs)
    return job.run(tournament_id)
