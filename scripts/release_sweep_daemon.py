"""
Daemon that periodically evaluates pending heirs and releases the due ones.
"""

from __future__ import annotations

import argparse
import logging
import random
import sys
import time
from collections import Counter
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from grove.dependencies import get_db_client, get_queue_client, get_storage_client
from grove.legacy import run_release_sweep

logger = logging.getLogger(__name__)


def run_once(*, dry_run: bool) -> int:
    results = run_release_sweep(
        get_db_client(), get_storage_client(), get_queue_client(), dry_run=dry_run
    )
    outcome = Counter(r.status.name for r in results if r.success)
    failures = [r for r in results if not r.success]
    logger.info(
        "Sweep %s: %s, %d failed",
        "(dry run)" if dry_run else "complete",
        dict(outcome) or "nothing due",
        len(failures),
    )
    for failure in failures:
        logger.warning("Heir %s failed: %s", failure.heir_id, failure.error)
    return len(failures)


def main() -> int:
    parser = argparse.ArgumentParser(description="Heir release sweep daemon")
    parser.add_argument(
        "--interval-seconds",
        type=int,
        default=3600,
        help="Seconds between sweeps",
    )
    parser.add_argument(
        "--jitter-seconds",
        type=int,
        default=60,
        help="Max random jitter added to sleep",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single sweep and exit",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report which heirs are due without changing anything",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    while True:
        try:
            failures = run_once(dry_run=args.dry_run)
        except Exception as exc:
            logger.exception("Sweep failed: %s", exc)
            failures = 1

        if args.once:
            return 1 if failures else 0

        sleep_for = args.interval_seconds + random.uniform(0, args.jitter_seconds)
        logger.info("Sleeping for %.1fs", sleep_for)
        time.sleep(sleep_for)


if __name__ == "__main__":
    raise SystemExit(main())
