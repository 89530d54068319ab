"""
Content fingerprints and the duplicate-submission guard.
"""

from __future__ import annotations

import hashlib
import json
import re
import time
from typing import Optional

from grove.db import DbClient, EntryRecord

DEFAULT_WINDOW_MINUTES = 5


def normalize_text(value: str | None) -> str:
    return re.sub(r"\s+", " ", value or "").strip().lower()


def compute_content_hash(
    text: str | None,
    media_url: str | None = None,
    audio_url: str | None = None,
    video_url: str | None = None,
) -> str:
    """
    Return the sha256 hex digest of the normalized text and the media URLs.

    Only the text is normalized; URLs are compared verbatim. The fields are
    encoded as a JSON array so no value can spill into a neighbouring slot.
    """
    payload = json.dumps(
        [normalize_text(text), media_url or "", audio_url or "", video_url or ""],
        ensure_ascii=False,
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def find_duplicate(
    db: DbClient,
    *,
    author_id: str,
    branch_id: str,
    content_hash: str,
    now: float | None = None,
    window_minutes: int = DEFAULT_WINDOW_MINUTES,
) -> Optional[EntryRecord]:
    """
    Return the latest active entry with the same fingerprint inside the window.

    Advisory only: the caller decides whether to block or warn, and two
    concurrent submissions can both pass this check.
    """
    if window_minutes <= 0:
        return None
    now = now if now is not None else time.time()
    since = now - window_minutes * 60
    return db.find_recent_entry_by_hash(author_id, branch_id, content_hash, since)
