"""
Seeding strategies.

A Seeder turns a tournament's eligible participants into an ordered list of
SeedAssignment values numbered 1..N with no gaps. The bracket generator
only depends on the Seeder interface; strategies are interchangeable.

Strategies:
- RatingSeeder (default): rating descending, ties by participant id
  ascending so identical inputs always give identical seeds
- RandomSeeder: shuffled, reproducible when given a seed value
- ManualSeeder: an organiser-supplied order of participant ids
"""

from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from cuebracket.db.models import Participant, Tournament
from cuebracket.errors import InsufficientParticipantsError, ValidationError
from cuebracket.statuses import SEEDABLE_PARTICIPANT_STATUSES

logger = logging.getLogger(__name__)

MIN_SEEDED_PARTICIPANTS = 2


@dataclass(frozen=True)
class SeedAssignment:
    """Immutable result of seeding one participant."""

    participant_id: int
    seed: int
    rating: int


def eligible_participants(tournament: Tournament) -> list[Participant]:
    """Participants that can enter the bracket, in id order."""
    return sorted(
        (p for p in tournament.participants if p.status in SEEDABLE_PARTICIPANT_STATUSES),
        key=lambda p: p.id,
    )


class Seeder(ABC):
    """Orders participants into seeds."""

    name: str = "base"

    def seed(self, tournament: Tournament) -> list[SeedAssignment]:
        participants = eligible_participants(tournament)
        if len(participants) < MIN_SEEDED_PARTICIPANTS:
            raise InsufficientParticipantsError(len(participants), MIN_SEEDED_PARTICIPANTS)

        ordered = self.order(participants)
        assignments = [
            SeedAssignment(participant_id=p.id, seed=position, rating=p.rating or 0)
            for position, p in enumerate(ordered, start=1)
        ]
        logger.debug(
            "Seeded %d participants for tournament %s using %s",
            len(assignments), tournament.id, self.name,
        )
        return assignments

    @abstractmethod
    def order(self, participants: list[Participant]) -> list[Participant]:
        """Return participants best seed first. Input is sorted by id."""


class RatingSeeder(Seeder):
    name = "rating"

    def order(self, participants: list[Participant]) -> list[Participant]:
        return sorted(participants, key=lambda p: (-(p.rating or 0), p.id))


class RandomSeeder(Seeder):
    name = "random"

    def __init__(self, random_seed: Optional[int] = None) -> None:
        self.random_seed = random_seed

    def order(self, participants: list[Participant]) -> list[Participant]:
        shuffled = list(participants)
        random.Random(self.random_seed).shuffle(shuffled)
        return shuffled


class ManualSeeder(Seeder):
    """Seeds in an explicit order of participant ids (first id = seed 1)."""

    name = "manual"

    def __init__(self, participant_ids: Sequence[int]) -> None:
        self.participant_ids = list(participant_ids)

    def order(self, participants: list[Participant]) -> list[Participant]:
        by_id = {p.id: p for p in participants}
        if len(set(self.participant_ids)) != len(self.participant_ids):
            raise ValidationError("Manual seed order contains duplicate participant ids")
        if set(self.participant_ids) != set(by_id):
            missing = sorted(set(by_id) - set(self.participant_ids))
            unknown = sorted(set(self.participant_ids) - set(by_id))
            raise ValidationError(
                f"Manual seed order must list every eligible participant "
                f"(missing={missing}, unknown={unknown})"
            )
        return [by_id[pid] for pid in self.participant_ids]
