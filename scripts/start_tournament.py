#!/usr/bin/env python3
"""
Close registration and generate the bracket for a tournament.

Usage:
    python scripts/start_tournament.py 42
    python scripts/start_tournament.py 42 --seeder random --random-seed 7
    python scripts/start_tournament.py 42 --dry-run
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cuebracket.bracket import RandomSeeder, RatingSeeder, build_bracket_service
from cuebracket.bracket.seeding import eligible_participants
from cuebracket.clock import SystemClock
from cuebracket.config import settings
from cuebracket.db import Tournament, get_engine, get_session, get_session_factory
from cuebracket.errors import CueBracketError
from cuebracket.tasks import BracketGenerationJob

logger = logging.getLogger("start_tournament")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Start a tournament by generating its bracket.")
    parser.add_argument("tournament_id", type=int, help="Tournament to start.")
    parser.add_argument(
        "--seeder",
        choices=("rating", "random"),
        default="rating",
        help="Seeding strategy (default: rating).",
    )
    parser.add_argument(
        "--random-seed",
        type=int,
        default=None,
        help="Seed for --seeder random, for a reproducible draw.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report whether the tournament can start without writing anything.",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(level=settings.log_level, format=settings.log_format)

    clock = SystemClock()
    seeder = RandomSeeder(args.random_seed) if args.seeder == "random" else RatingSeeder()
    service = build_bracket_service(clock=clock, seeder=seeder)

    if args.dry_run:
        with get_session() as session:
            tournament = session.get(Tournament, args.tournament_id)
            if tournament is None:
                logger.error("Tournament %s not found", args.tournament_id)
                return 1
            can_start = service.can_start_tournament(tournament)
            logger.info(
                "Tournament %s (%s): %d eligible participant(s), can start: %s",
                tournament.id, tournament.status,
                len(eligible_participants(tournament)), can_start,
            )
            session.rollback()
        return 0 if can_start else 1

    job = BracketGenerationJob(
        get_session_factory(),
        bracket_service=service,
        clock=clock,
        lock_engine=get_engine(),
    )
    try:
        result = job.run(args.tournament_id)
    except CueBracketError as exc:
        logger.error("Could not start tournament %s: %s", args.tournament_id, exc)
        return 1

    if result is None:
        print(json.dumps({"tournament_id": args.tournament_id, "sole_winner": True}))
    else:
        print(json.dumps(result.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
