"""
Match state machine.

Governs one match from scheduling to a terminal status:

    scheduled ──submit──▶ pending_confirmation ──confirm / auto-confirm──▶ completed
        │                        │
        │                        └──dispute──▶ disputed ──resolve──▶ completed
        ├──no-show report──────────────────────▶ disputed
        └──expire──▶ expired

    any non-terminal ──walkover──▶ completed
    any non-terminal ──cancel──▶ cancelled

Every transition:
- checks status and actor before touching anything (invalid calls leave
  the match exactly as it was)
- writes through a compare-and-swap UPDATE guarded by the expected
  status, so two concurrent writers cannot both succeed
- emits one domain event to the configured sink

Completions record participant statistics, settle participant statuses and
advance the winner through the BracketService. When the last playable match
finishes, final standings are written and the tournament is completed.

The state machine runs inside the caller's transaction and never commits.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from cuebracket.bracket.generator import THIRD_PLACE_POSITION
from cuebracket.bracket.service import BracketService, build_bracket_service
from cuebracket.bracket.standings import calculate_final_positions
from cuebracket.clock import Clock, SystemClock
from cuebracket.config import Settings, get_settings
from cuebracket.db.models import Match, Participant, Tournament
from cuebracket.errors import (
    InvalidMatchStateError,
    NotAuthorizedError,
    StaleMatchStateError,
    ValidationError,
)
from cuebracket.events import (
    EventSink,
    LoggingEventSink,
    MatchCancelled,
    MatchDisputed,
    MatchExpired,
    MatchNoShowReported,
    MatchResolved,
    MatchResultConfirmed,
    MatchResultSubmitted,
    MatchWalkoverAwarded,
    TournamentCompleted,
    match_event_fields,
)
from cuebracket.matches.scoring import (
    determine_result,
    validate_dispute_reason,
    validate_race_to_score,
    validate_resolution_notes,
)
from cuebracket.statuses import (
    FORFEIT_DOUBLE,
    FORFEIT_NO_SHOW,
    FORFEIT_WALKOVER,
    MATCH_CANCELLED,
    MATCH_COMPLETED,
    MATCH_DISPUTED,
    MATCH_EXPIRED,
    MATCH_PENDING_CONFIRMATION,
    MATCH_SCHEDULED,
    PARTICIPANT_ACTIVE,
    PARTICIPANT_ELIMINATED,
    PARTICIPANT_WINNER,
    TOURNAMENT_ACTIVE,
    TOURNAMENT_COMPLETED,
)

logger = logging.getLogger(__name__)

NO_SHOW_REASON_PREFIX = "No-show: "
DEFAULT_WALKOVER_NOTES = "Walkover awarded by organiser"


@dataclass(frozen=True)
class Arbiter:
    """An authenticated staff user acting on a match."""

    user_id: int
    is_support: bool = False
    is_super_admin: bool = False

    @property
    def can_arbitrate(self) -> bool:
        return self.is_support or self.is_super_admin


class MatchStateMachine:
    def __init__(
        self,
        session: Session,
        bracket_service: Optional[BracketService] = None,
        clock: Optional[Clock] = None,
        events: Optional[EventSink] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.session = session
        self.clock = clock or SystemClock()
        self.settings = settings or get_settings()
        self.bracket_service = bracket_service or build_bracket_service(
            clock=self.clock, settings=self.settings
        )
        self.events = events or LoggingEventSink()

    # =========================================================================
    # Player actions
    # =========================================================================

    def submit_result(
        self,
        match: Match,
        submitter_id: int,
        my_score: int,
        opponent_score: int,
    ) -> Match:
        """
        Record a result reported by one of the two players.

        Scores are given from the submitter's perspective and stored as
        player1/player2. The opponent then has ``confirmation_hours`` to
        confirm or dispute.

        Raises:
            InvalidMatchStateError: Not scheduled, opponent unknown, or deadline passed
            NotAuthorizedError: Submitter is not one of the two players
            ScoreValidationError: Scores are not a finished race-to result
        """
        self._require_status(match, MATCH_SCHEDULED, "submit a result for")
        if not match.has_player(submitter_id):
            raise NotAuthorizedError(
                f"Participant {submitter_id} is not a player in match {match.id}"
            )
        if not match.has_both_players:
            raise InvalidMatchStateError(
                match.id, match.status, "submit a result for", "opponent not yet decided"
            )

        now = self.clock.now()
        if match.expires_at is not None and now > match.expires_at:
            raise InvalidMatchStateError(
                match.id, match.status, "submit a result for", "match deadline has passed"
            )

        if submitter_id == match.player1_id:
            player1_score, player2_score = my_score, opponent_score
        else:
            player1_score, player2_score = opponent_score, my_score
        validate_race_to_score(player1_score, player2_score, match.race_to)

        deadline = now + timedelta(hours=self._confirmation_hours(match.tournament))
        self._transition(
            match,
            MATCH_SCHEDULED,
            MATCH_PENDING_CONFIRMATION,
            player1_score=player1_score,
            player2_score=player2_score,
            submitted_by=submitter_id,
            submitted_at=now,
            confirmation_deadline_at=deadline,
        )
        logger.info(
            "Match %s: result %d-%d submitted by participant %s",
            match.id, player1_score, player2_score, submitter_id,
        )
        self.events.publish(
            MatchResultSubmitted(
                **match_event_fields(match, submitter_id, now),
                confirmation_deadline_at=deadline,
            )
        )
        return match

    def confirm_result(self, match: Match, confirmer_id: int) -> Match:
        self._require_status(match, MATCH_PENDING_CONFIRMATION, "confirm")
        self._require_opponent(match, confirmer_id, "confirm")

        now = self.clock.now()
        winner_id, loser_id = determine_result(match)
        self._transition(
            match,
            MATCH_PENDING_CONFIRMATION,
            MATCH_COMPLETED,
            winner_id=winner_id,
            loser_id=loser_id,
            confirmed_by=confirmer_id,
            confirmed_at=now,
            played_at=match.submitted_at,
            completed_at=now,
        )
        logger.info("Match %s: result confirmed by participant %s", match.id, confirmer_id)
        self._after_completion(match, now)
        self.events.publish(
            MatchResultConfirmed(
                **match_event_fields(match, confirmer_id, now),
                winner_id=winner_id,
                loser_id=loser_id,
                auto_confirmed=False,
            )
        )
        self._complete_tournament_if_finished(match.tournament, now)
        return match

    def dispute_result(self, match: Match, disputer_id: int, reason: str) -> Match:
        self._require_status(match, MATCH_PENDING_CONFIRMATION, "dispute")
        self._require_opponent(match, disputer_id, "dispute")
        text = validate_dispute_reason(reason)

        now = self.clock.now()
        self._transition(
            match,
            MATCH_PENDING_CONFIRMATION,
            MATCH_DISPUTED,
            disputed_by=disputer_id,
            disputed_at=now,
            dispute_reason=text,
        )
        logger.info("Match %s: result disputed by participant %s", match.id, disputer_id)
        self.events.publish(
            MatchDisputed(**match_event_fields(match, disputer_id, now), reason=text)
        )
        return match

    def report_no_show(self, match: Match, reporter_id: int, description: str) -> Match:
        """
        Flag that the opponent never turned up to a scheduled match.

        The match goes straight to disputed so an arbiter can award a
        walkover or settle it otherwise. A match can only be reported once,
        since it is no longer scheduled afterwards.
        """
        self._require_status(match, MATCH_SCHEDULED, "report a no-show for")
        if not match.has_player(reporter_id):
            raise NotAuthorizedError(
                f"Participant {reporter_id} is not a player in match {match.id}"
            )
        if not match.has_both_players:
            raise InvalidMatchStateError(
                match.id, match.status, "report a no-show for", "opponent not yet decided"
            )
        reason = f"{NO_SHOW_REASON_PREFIX}{validate_dispute_reason(description)}"

        now = self.clock.now()
        self._transition(
            match,
            MATCH_SCHEDULED,
            MATCH_DISPUTED,
            no_show_reported_by=reporter_id,
            no_show_reported_at=now,
            disputed_by=reporter_id,
            disputed_at=now,
            dispute_reason=reason,
        )
        logger.info("Match %s: no-show reported by participant %s", match.id, reporter_id)
        self.events.publish(
            MatchNoShowReported(**match_event_fields(match, reporter_id, now), reason=reason)
        )
        return match

    # =========================================================================
    # Arbiter actions
    # =========================================================================

    def resolve_dispute(
        self,
        match: Match,
        arbiter: Arbiter,
        player1_score: int,
        player2_score: int,
        notes: Optional[str] = None,
    ) -> Match:
        """
        Settle a disputed match with the arbiter's scores.

        The arbiter's scores replace whatever was submitted.
        """
        self._require_status(match, MATCH_DISPUTED, "resolve")
        self._require_arbiter(arbiter, match, "resolve")
        validate_race_to_score(player1_score, player2_score, match.race_to)
        resolution_notes = validate_resolution_notes(notes)

        now = self.clock.now()
        if player1_score > player2_score:
            winner_id, loser_id = match.player1_id, match.player2_id
        else:
            winner_id, loser_id = match.player2_id, match.player1_id
        self._transition(
            match,
            MATCH_DISPUTED,
            MATCH_COMPLETED,
            player1_score=player1_score,
            player2_score=player2_score,
            winner_id=winner_id,
            loser_id=loser_id,
            resolved_by=arbiter.user_id,
            resolved_at=now,
            resolution_notes=resolution_notes,
            played_at=match.submitted_at or now,
            completed_at=now,
        )
        logger.info(
            "Match %s: dispute resolved %d-%d by user %s",
            match.id, player1_score, player2_score, arbiter.user_id,
        )
        self._after_completion(match, now)
        self.events.publish(
            MatchResolved(
                **match_event_fields(match, arbiter.user_id, now),
                winner_id=winner_id,
                loser_id=loser_id,
                resolution_notes=resolution_notes,
            )
        )
        self._complete_tournament_if_finished(match.tournament, now)
        return match

    def award_walkover(
        self,
        match: Match,
        arbiter: Arbiter,
        winner_id: int,
        reason: Optional[str] = None,
    ) -> Match:
        """
        Complete an unfinished match in one player's favour without play.

        The winner is credited with a full race (race_to-0). Awarded after a
        no-show report the forfeit is recorded as a no-show, otherwise as a
        walkover.
        """
        if match.is_terminal:
            raise InvalidMatchStateError(match.id, match.status, "award a walkover for")
        self._require_arbiter(arbiter, match, "award a walkover for")
        if not match.has_both_players:
            raise InvalidMatchStateError(
                match.id, match.status, "award a walkover for", "opponent not yet decided"
            )
        if not match.has_player(winner_id):
            raise ValidationError(
                f"Participant {winner_id} is not a player in match {match.id}"
            )
        notes = validate_resolution_notes(reason) or DEFAULT_WALKOVER_NOTES

        now = self.clock.now()
        loser_id = match.opponent_of(winner_id)
        if winner_id == match.player1_id:
            player1_score, player2_score = match.race_to, 0
        else:
            player1_score, player2_score = 0, match.race_to
        forfeit_type = (
            FORFEIT_NO_SHOW if match.no_show_reported_by is not None else FORFEIT_WALKOVER
        )
        self._transition(
            match,
            match.status,
            MATCH_COMPLETED,
            player1_score=player1_score,
            player2_score=player2_score,
            winner_id=winner_id,
            loser_id=loser_id,
            forfeit_type=forfeit_type,
            resolved_by=arbiter.user_id,
            resolved_at=now,
            resolution_notes=notes,
            played_at=now,
            completed_at=now,
        )
        logger.info(
            "Match %s: %s awarded to participant %s by user %s",
            match.id, forfeit_type, winner_id, arbiter.user_id,
        )
        self._after_completion(match, now)
        self.events.publish(
            MatchWalkoverAwarded(
                **match_event_fields(match, arbiter.user_id, now),
                winner_id=winner_id,
                loser_id=loser_id,
                forfeit_type=forfeit_type,
                reason=notes,
            )
        )
        self._complete_tournament_if_finished(match.tournament, now)
        return match

    def cancel(self, match: Match, arbiter: Arbiter, reason: str) -> Match:
        if match.is_terminal:
            raise InvalidMatchStateError(match.id, match.status, "cancel")
        self._require_arbiter(arbiter, match, "cancel")

        now = self.clock.now()
        self._transition(
            match,
            match.status,
            MATCH_CANCELLED,
            cancelled_reason=reason,
            completed_at=now,
        )
        logger.info("Match %s cancelled by user %s: %s", match.id, arbiter.user_id, reason)
        self.bracket_service.advance_winner(match)
        self.events.publish(
            MatchCancelled(**match_event_fields(match, arbiter.user_id, now), reason=reason)
        )
        self._complete_tournament_if_finished(match.tournament, now)
        return match

    # =========================================================================
    # Sweep actions
    # =========================================================================

    def auto_confirm(self, match: Match) -> bool:
        """
        Accept a submitted result once the confirmation deadline has passed.

        Treated as the opponent's implicit confirmation, so the submitter's
        scores stand. Returns False (without raising) when the match was
        already completed, when another writer got there first, or when the
        tournament has auto-confirmation turned off.
        """
        if match.status == MATCH_COMPLETED:
            logger.debug("Match %s already completed, auto-confirm skipped", match.id)
            return False
        self._require_status(match, MATCH_PENDING_CONFIRMATION, "auto-confirm")
        if not match.tournament.auto_confirm_results:
            logger.info(
                "Match %s: auto-confirm disabled for tournament %s",
                match.id, match.tournament_id,
            )
            return False

        now = self.clock.now()
        if match.confirmation_deadline_at is None or now < match.confirmation_deadline_at:
            raise InvalidMatchStateError(
                match.id, match.status, "auto-confirm", "confirmation deadline not reached"
            )

        winner_id, loser_id = determine_result(match)
        try:
            self._transition(
                match,
                MATCH_PENDING_CONFIRMATION,
                MATCH_COMPLETED,
                winner_id=winner_id,
                loser_id=loser_id,
                confirmed_by=match.opponent_of(match.submitted_by),
                confirmed_at=now,
                auto_confirmed=True,
                played_at=match.submitted_at,
                completed_at=now,
            )
        except StaleMatchStateError:
            logger.info("Match %s changed concurrently, auto-confirm skipped", match.id)
            return False

        logger.info("Match %s: result auto-confirmed after deadline", match.id)
        self._after_completion(match, now)
        self.events.publish(
            MatchResultConfirmed(
                **match_event_fields(match, None, now),
                winner_id=winner_id,
                loser_id=loser_id,
                auto_confirmed=True,
            )
        )
        self._complete_tournament_if_finished(match.tournament, now)
        return True

    def expire(self, match: Match) -> Match:
        """
        Close a scheduled match whose deadline passed without a submission.

        No winner is produced. The match is recorded as a double forfeit and,
        when the tournament asks for it, both players are eliminated. The
        downstream slot stays empty and is treated as a bye for whoever
        arrives from the other side.
        """
        self._require_status(match, MATCH_SCHEDULED, "expire")
        now = self.clock.now()
        if match.expires_at is None or now < match.expires_at:
            raise InvalidMatchStateError(
                match.id, match.status, "expire", "match deadline not reached"
            )

        self._transition(
            match,
            MATCH_SCHEDULED,
            MATCH_EXPIRED,
            forfeit_type=FORFEIT_DOUBLE,
            completed_at=now,
        )
        if match.tournament.double_forfeit_on_expiry:
            for participant_id in match.player_ids:
                if participant_id is not None:
                    self._eliminate(participant_id, now)
        if match.next_match_id is not None:
            logger.warning(
                "Match %s expired with no winner; slot %s of match %s will stay empty",
                match.id, match.next_match_slot, match.next_match_id,
            )
        else:
            logger.warning("Match %s expired with no winner", match.id)

        self.bracket_service.advance_winner(match)
        self.events.publish(
            MatchExpired(**match_event_fields(match, None, now), forfeit_type=FORFEIT_DOUBLE)
        )
        self._complete_tournament_if_finished(match.tournament, now)
        return match

    # =========================================================================
    # Guards and writes
    # =========================================================================

    @staticmethod
    def _require_status(match: Match, expected: str, action: str) -> None:
        if match.status != expected:
            raise InvalidMatchStateError(match.id, match.status, action)

    @staticmethod
    def _require_opponent(match: Match, participant_id: int, action: str) -> None:
        if not match.has_player(participant_id):
            raise NotAuthorizedError(
                f"Participant {participant_id} is not a player in match {match.id}"
            )
        if participant_id == match.submitted_by:
            raise NotAuthorizedError(
                f"Participant {participant_id} submitted the result and cannot {action} it"
            )

    @staticmethod
    def _require_arbiter(arbiter: Arbiter, match: Match, action: str) -> None:
        if not arbiter.can_arbitrate:
            raise NotAuthorizedError(
                f"User {arbiter.user_id} may not {action} match {match.id}"
            )

    def _transition(self, match: Match, expected: str, new_status: str, **values: Any) -> None:
        """Compare-and-swap on status; refresh ``match`` with the stored row."""
        self.session.flush()
        result = self.session.execute(
            update(Match)
            .where(Match.id == match.id, Match.status == expected)
            .values(status=new_status, updated_at=self.clock.now(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StaleMatchStateError(match.id, expected)
        self.session.refresh(match)

    def _confirmation_hours(self, tournament: Tournament) -> int:
        return tournament.confirmation_hours or self.settings.default_confirmation_hours

    # =========================================================================
    # Completion side effects
    # =========================================================================

    def _after_completion(self, match: Match, now: datetime) -> None:
        self._record_stats(match)
        self._settle_participants(match, now)
        self.bracket_service.advance_winner(match)

    def _record_stats(self, match: Match) -> None:
        if not match.has_both_players or match.player1_score is None:
            return
        sides = (
            (match.player1_id, match.player1_score, match.player2_score),
            (match.player2_id, match.player2_score, match.player1_score),
        )
        for participant_id, frames_for, frames_against in sides:
            participant = self.session.get(Participant, participant_id)
            if participant is None:
                continue
            participant.matches_played = (participant.matches_played or 0) + 1
            participant.frames_won = (participant.frames_won or 0) + frames_for
            participant.frames_lost = (participant.frames_lost or 0) + frames_against
            if participant_id == match.winner_id:
                participant.matches_won = (participant.matches_won or 0) + 1
            else:
                participant.matches_lost = (participant.matches_lost or 0) + 1

    def _settle_participants(self, match: Match, now: datetime) -> None:
        tournament = match.tournament
        if match.loser_id is not None and not self._loser_plays_on(match):
            self._eliminate(match.loser_id, now)

        is_final = (
            match.round_number == tournament.total_rounds and match.bracket_position == 0
        )
        if is_final and match.winner_id is not None:
            winner = self.session.get(Participant, match.winner_id)
            winner.status = PARTICIPANT_WINNER
            winner.final_position = 1
            logger.info(
                "Tournament %s won by participant %s", tournament.id, winner.id
            )

    def _loser_plays_on(self, match: Match) -> bool:
        """A semi-final loser still has the third-place match to play."""
        total_rounds = match.tournament.total_rounds
        if total_rounds is None or match.round_number != total_rounds - 1:
            return False
        third_place = self.session.execute(
            select(Match.id).where(
                Match.tournament_id == match.tournament_id,
                Match.round_number == total_rounds,
                Match.bracket_position == THIRD_PLACE_POSITION,
            )
        ).scalar_one_or_none()
        return third_place is not None

    def _eliminate(self, participant_id: int, now: datetime) -> None:
        participant = self.session.get(Participant, participant_id)
        if participant is None or participant.status != PARTICIPANT_ACTIVE:
            return
        participant.status = PARTICIPANT_ELIMINATED
        participant.eliminated_at = now

    def _complete_tournament_if_finished(self, tournament: Tournament, now: datetime) -> None:
        if tournament.status != TOURNAMENT_ACTIVE:
            return
        if not self.bracket_service.is_bracket_complete(tournament):
            return

        calculate_final_positions(self.session, tournament)
        # The final may have been decided by a bye, which never went through settlement
        final = self.session.execute(
            select(Match).where(
                Match.tournament_id == tournament.id,
                Match.round_number == tournament.total_rounds,
                Match.bracket_position == 0,
            )
        ).scalar_one_or_none()
        winner_id = final.winner_id if final is not None else None
        for participant in tournament.participants:
            if participant.id == winner_id:
                participant.status = PARTICIPANT_WINNER
            elif participant.status == PARTICIPANT_ACTIVE:
                participant.status = PARTICIPANT_ELIMINATED
                participant.eliminated_at = participant.eliminated_at or now
        tournament.status = TOURNAMENT_COMPLETED
        tournament.ends_at = now
        self.session.flush()

        logger.info("Tournament %s completed (winner: %s)", tournament.id, winner_id)
        self.events.publish(
            TournamentCompleted(
                tournament_id=tournament.id,
                winner_participant_id=winner_id,
                occurred_at=now,
            )
        )
