"""
Backfill content hashes for memories.

Recomputes the fingerprint of every entry and rewrites the ones that are
missing or stale (for example after a normalization change). Safe to rerun.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from grove.db import DbClient
from grove.dependencies import get_db_client
from grove.fingerprint import compute_content_hash

logger = logging.getLogger(__name__)


def backfill(
    db: DbClient,
    *,
    dry_run: bool,
    batch_size: int = 500,
    limit: Optional[int] = None,
) -> tuple[int, int]:
    """Return (scanned, updated) counts."""
    scanned = 0
    updated = 0
    offset = 0
    while True:
        page_size = batch_size if limit is None else min(batch_size, limit - scanned)
        if page_size <= 0:
            break
        entries = db.list_entries_page(offset, page_size)
        if not entries:
            break

        for entry in entries:
            scanned += 1
            expected = compute_content_hash(
                entry.text, entry.media_url, entry.audio_url, entry.video_url
            )
            if entry.content_hash == expected:
                continue
            updated += 1
            if dry_run:
                logger.info("Would update %s", entry.entry_id)
                continue
            entry.content_hash = expected
            db.save_entry(entry)

        offset += len(entries)

    return scanned, updated


def main() -> int:
    parser = argparse.ArgumentParser(description="Backfill memory content hashes")
    parser.add_argument(
        "--batch-size",
        type=int,
        default=500,
        help="Entries per page",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Max number of entries to scan",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report how many entries would change without saving",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    scanned, updated = backfill(
        get_db_client(),
        dry_run=args.dry_run,
        batch_size=args.batch_size,
        limit=args.limit,
    )
    logger.info(
        "Scanned %d entries, %s %d", scanned, "would update" if args.dry_run else "updated", updated
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
