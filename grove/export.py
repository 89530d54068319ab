"""
Legacy archive bundles handed to heirs.

The bundle is plain JSON; rendering it into HTML or PDF happens elsewhere.
"""

from __future__ import annotations

import re
import time
from datetime import datetime, timezone
from typing import Any, Dict

from grove.db import BranchRecord, DbClient, EntryRecord
from grove.types import EntryStatus


def sanitize_filename(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (name or "").lower())
    return slug.strip("-") or "branch"


def _iso(ts: float | None) -> str | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def _entry_payload(entry: EntryRecord, author_names: Dict[str, str | None]) -> Dict[str, Any]:
    return {
        "id": entry.entry_id,
        "authorName": author_names.get(entry.author_id),
        "text": entry.text,
        "mediaUrl": entry.media_url,
        "audioUrl": entry.audio_url,
        "videoUrl": entry.video_url,
        "createdAt": _iso(entry.created_at),
    }


def build_legacy_bundle(
    db: DbClient, branch: BranchRecord, now: float | None = None
) -> Dict[str, Any]:
    entries = db.list_entries(branch.branch_id, EntryStatus.ACTIVE)
    author_names: Dict[str, str | None] = {}
    for entry in entries:
        if entry.author_id not in author_names:
            author = db.get_user(entry.author_id)
            author_names[entry.author_id] = (author.name or author.email) if author else None

    return {
        "filename": f"{sanitize_filename(branch.title)}-legacy-archive.json",
        "generatedAt": _iso(now if now is not None else time.time()),
        "branch": {
            "id": branch.branch_id,
            "title": branch.title,
            "description": branch.description,
            "birthDate": branch.birth_date,
            "deathDate": branch.death_date,
        },
        "memories": [_entry_payload(entry, author_names) for entry in entries],
    }
