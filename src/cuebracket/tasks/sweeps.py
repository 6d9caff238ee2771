"""
Periodic match sweeps.

Three independent batch jobs, safe to run in any order and to re-run:

- expire_scheduled_matches: scheduled matches past ``expires_at``
- auto_confirm_matches: pending results past their confirmation deadline
- send_match_reminders: scheduled matches whose deadline is N hours away

Each sweep selects candidate ids first, then handles every match in its
own session and transaction. A failure on one match is logged and counted
and the sweep moves on. A match that another writer already moved is
skipped, not treated as an error. Events for a match are published only
after its transaction commits.

Usage:
    from cuebracket.db import get_session_factory
    result = expire_scheduled_matches(get_session_factory())
    logger.info(result.summary())
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from cuebracket.bracket.service import build_bracket_service
from cuebracket.clock import Clock, SystemClock
from cuebracket.config import Settings, get_settings
from cuebracket.db.models import Match, Tournament
from cuebracket.db.session import SessionFactory, session_scope
from cuebracket.errors import InvalidTransitionError
from cuebracket.events import (
    CollectingEventSink,
    EventSink,
    LoggingEventSink,
    MatchReminderDue,
    match_event_fields,
)
from cuebracket.matches.state_machine import MatchStateMachine
from cuebracket.statuses import MATCH_PENDING_CONFIRMATION, MATCH_SCHEDULED
from cuebracket.tasks.runtime import SweepResult

logger = logging.getLogger(__name__)

# Handles one match inside an open transaction; returns True if it changed something.
MatchHandler = Callable[[MatchStateMachine, Match], bool]


def _candidate_ids(session_factory: SessionFactory, query) -> list[int]:
    with session_scope(session_factory) as session:
        return list(session.execute(query).scalars())


def _run_sweep(
    sweep_name: str,
    session_factory: SessionFactory,
    candidate_query,
    handler: MatchHandler,
    *,
    clock: Clock,
    events: EventSink,
    settings: Settings,
) -> SweepResult:
    result = SweepResult(sweep_name=sweep_name, started_at=clock.now())
    match_ids = _candidate_ids(session_factory, candidate_query)
    result.candidates = len(match_ids)
    logger.info("%s: %d candidate match(es)", sweep_name, len(match_ids))

    bracket_service = build_bracket_service(clock=clock, settings=settings)
    for match_id in match_ids:
        buffer = CollectingEventSink()
        try:
            with session_scope(session_factory) as session:
                match = session.get(Match, match_id)
                if match is None:
                    result.skipped += 1
                    continue
                machine = MatchStateMachine(
                    session,
                    bracket_service=bracket_service,
                    clock=clock,
                    events=buffer,
                    settings=settings,
                )
                changed = handler(machine, match)
        except InvalidTransitionError as exc:
            logger.info("%s: match %s skipped (%s)", sweep_name, match_id, exc)
            result.skipped += 1
            continue
        except Exception as exc:
            logger.error("%s: match %s failed: %s", sweep_name, match_id, exc, exc_info=True)
            result.record_error(match_id, exc)
            continue

        if changed:
            result.processed += 1
            buffer.drain_to(events)
        else:
            result.skipped += 1

    result.ended_at = clock.now()
    logger.info(result.summary())
    return result


def expire_scheduled_matches(
    session_factory: SessionFactory,
    *,
    clock: Optional[Clock] = None,
    events: Optional[EventSink] = None,
    settings: Optional[Settings] = None,
    limit: Optional[int] = None,
) -> SweepResult:
    clock = clock or SystemClock()
    now = clock.now()
    query = (
        select(Match.id)
        .where(
            Match.status == MATCH_SCHEDULED,
            Match.expires_at.is_not(None),
            Match.expires_at <= now,
        )
        .order_by(Match.expires_at, Match.id)
        .limit(limit)
    )

    def handle(machine: MatchStateMachine, match: Match) -> bool:
        machine.expire(match)
        return True

    return _run_sweep(
        "expire_scheduled_matches",
        session_factory,
        query,
        handle,
        clock=clock,
        events=events or LoggingEventSink(),
        settings=settings or get_settings(),
    )


def auto_confirm_matches(
    session_factory: SessionFactory,
    *,
    clock: Optional[Clock] = None,
    events: Optional[EventSink] = None,
    settings: Optional[Settings] = None,
    limit: Optional[int] = None,
) -> SweepResult:
    clock = clock or SystemClock()
    now = clock.now()
    query = (
        select(Match.id)
        .join(Tournament, Tournament.id == Match.tournament_id)
        .where(
            Match.status == MATCH_PENDING_CONFIRMATION,
            Match.confirmation_deadline_at.is_not(None),
            Match.confirmation_deadline_at <= now,
            Tournament.auto_confirm_results.is_(True),
        )
        .order_by(Match.confirmation_deadline_at, Match.id)
        .limit(limit)
    )

    def handle(machine: MatchStateMachine, match: Match) -> bool:
        return machine.auto_confirm(match)

    return _run_sweep(
        "auto_confirm_matches",
        session_factory,
        query,
        handle,
        clock=clock,
        events=events or LoggingEventSink(),
        settings=settings or get_settings(),
    )


def send_match_reminders(
    session_factory: SessionFactory,
    *,
    clock: Optional[Clock] = None,
    events: Optional[EventSink] = None,
    settings: Optional[Settings] = None,
) -> SweepResult:
    """
    Emit MatchReminderDue for scheduled matches due in each reminder window.

    A match whose deadline falls in ``[now + h, now + h + 1h)`` gets one
    reminder for window ``h``. Running the sweep hourly therefore reminds
    each match once per window.
    """
    clock = clock or SystemClock()
    events = events or LoggingEventSink()
    settings = settings or get_settings()
    now = clock.now()

    result = SweepResult(sweep_name="send_match_reminders", started_at=now)
    for hours in settings.reminder_windows_hours:
        window_start = now + timedelta(hours=hours)
        window_end = window_start + timedelta(hours=1)
        try:
            with session_scope(session_factory) as session:
                matches = _due_in_window(session, window_start, window_end)
                result.candidates += len(matches)
                for match in matches:
                    events.publish(
                        MatchReminderDue(
                            **match_event_fields(match, None, now),
                            expires_at=match.expires_at,
                            hours_remaining=hours,
                        )
                    )
                    result.processed += 1
        except Exception as exc:
            logger.error(
                "send_match_reminders: %dh window failed: %s", hours, exc, exc_info=True
            )
            result.failed += 1
            result.errors.append(f"{hours}h window: {type(exc).__name__}: {exc}")

    result.ended_at = clock.now()
    logger.info(result.summary())
    return result


def _due_in_window(session: Session, window_start, window_end) -> list[Match]:
    return list(
        session.execute(
            select(Match)
            .where(
                Match.status == MATCH_SCHEDULED,
                Match.expires_at >= window_start,
                Match.expires_at < window_end,
            )
            .order_by(Match.expires_at, Match.id)
        ).scalars()
    )
