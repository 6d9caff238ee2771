#!/usr/bin/env python3
"""
Run the periodic match sweeps (expiry, auto-confirmation, reminders).

Intended for cron / a scheduler every few minutes. An advisory lock keeps
overlapping runs from processing the same matches twice.

Usage:
    python scripts/run_sweeps.py
    python scripts/run_sweeps.py --only expire --only auto-confirm --limit 500
    python scripts/run_sweeps.py --json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cuebracket.config import settings
from cuebracket.db import get_engine, get_session_factory
from cuebracket.tasks import (
    advisory_lock_key,
    auto_confirm_matches,
    expire_scheduled_matches,
    postgres_advisory_lock,
    send_match_reminders,
)

logger = logging.getLogger("run_sweeps")

SWEEP_NAMES = ("expire", "auto-confirm", "reminders")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run match expiry/auto-confirm/reminder sweeps.")
    parser.add_argument(
        "--only",
        action="append",
        choices=SWEEP_NAMES,
        help="Run only the named sweep (repeatable). Default: all sweeps.",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum matches per expiry/auto-confirm sweep.",
    )
    parser.add_argument(
        "--no-lock",
        action="store_true",
        help="Skip the advisory lock (only for manual debugging).",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print sweep results as JSON.",
    )
    return parser.parse_args()


def run(selected: list[str], limit: int | None) -> list[dict]:
    factory = get_session_factory()
    results = []
    if "expire" in selected:
        results.append(expire_scheduled_matches(factory, limit=limit))
    if "auto-confirm" in selected:
        results.append(auto_confirm_matches(factory, limit=limit))
    if "reminders" in selected:
        results.append(send_match_reminders(factory))
    return [result.to_dict() for result in results]


def main() -> int:
    args = parse_args()
    logging.basicConfig(level=settings.log_level, format=settings.log_format)
    selected = args.only or list(SWEEP_NAMES)

    try:
        if args.no_lock:
            payload = run(selected, args.limit)
        else:
            key = advisory_lock_key(settings.sweep_lock_name)
            with postgres_advisory_lock(
                get_engine(),
                key=key,
                timeout_seconds=settings.sweep_lock_timeout_seconds,
            ):
                payload = run(selected, args.limit)
    except TimeoutError:
        logger.warning("Another sweep run holds the lock; exiting")
        return 0

    if args.json:
        print(json.dumps(payload, indent=2))

    failed = [item for item in payload if item["status"] in ("failed", "partial")]
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
