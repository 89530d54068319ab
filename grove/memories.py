"""
Memory submission, editing and soft deletion.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

from grove.analytics import track_event
from grove.auth import SessionContext
from grove.branches import get_branch_or_404, has_branch_access, write_audit
from grove.db import DbClient, EntryRecord
from grove.errors import ForbiddenError, NotFoundError, ValidationError
from grove.fingerprint import DEFAULT_WINDOW_MINUTES, compute_content_hash, find_duplicate
from grove.types import EntryStatus

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 20000
EDITABLE_FIELDS = ("text", "media_url", "audio_url", "video_url")


@dataclass
class MemorySubmission:
    """Outcome of a submission: either a new entry or the entry it duplicates."""

    entry: Optional[EntryRecord] = None
    duplicate: Optional[EntryRecord] = None

    @property
    def is_duplicate(self) -> bool:
        return self.entry is None and self.duplicate is not None


def _validate_content(text: str, media_urls: list[Optional[str]]) -> None:
    if len(text) > MAX_TEXT_LENGTH:
        raise ValidationError(f"text must be at most {MAX_TEXT_LENGTH} characters")
    if not text.strip() and not any(media_urls):
        raise ValidationError("A memory needs text or media")


def create_memory(
    db: DbClient,
    ctx: SessionContext,
    *,
    branch_id: str,
    text: str | None,
    media_url: str | None = None,
    audio_url: str | None = None,
    video_url: str | None = None,
    allow_duplicate: bool = False,
    window_minutes: int = DEFAULT_WINDOW_MINUTES,
    now: float | None = None,
) -> MemorySubmission:
    if not branch_id:
        raise ValidationError("branchId is required")
    branch = get_branch_or_404(db, branch_id)
    if not has_branch_access(db, branch, ctx):
        raise ForbiddenError("You are not a member of this branch")
    if branch.archived:
        raise ValidationError("This branch is archived")

    text = text or ""
    _validate_content(text, [media_url, audio_url, video_url])

    now = now if now is not None else time.time()
    content_hash = compute_content_hash(text, media_url, audio_url, video_url)
    duplicate = find_duplicate(
        db,
        author_id=ctx.user_id,
        branch_id=branch_id,
        content_hash=content_hash,
        now=now,
        window_minutes=window_minutes,
    )
    if duplicate and not allow_duplicate:
        logger.info(
            "Likely duplicate of entry %s on branch %s", duplicate.entry_id, branch_id
        )
        track_event(
            db,
            "duplicate_memory_flagged",
            ctx.user_id,
            {"branchId": branch_id, "existingEntryId": duplicate.entry_id},
        )
        return MemorySubmission(duplicate=duplicate)

    entry = db.save_entry(
        EntryRecord(
            branch_id=branch_id,
            author_id=ctx.user_id,
            text=text,
            media_url=media_url,
            audio_url=audio_url,
            video_url=video_url,
            content_hash=content_hash,
            created_at=now,
            updated_at=now,
        )
    )
    track_event(
        db,
        "memory_created",
        ctx.user_id,
        {"branchId": branch_id, "hasMedia": bool(media_url or audio_url or video_url)},
    )
    return MemorySubmission(entry=entry, duplicate=duplicate)


def _get_own_entry(db: DbClient, ctx: SessionContext, entry_id: str, verb: str) -> EntryRecord:
    entry = db.get_entry(entry_id)
    if not entry:
        raise NotFoundError("Memory not found")
    if entry.author_id != ctx.user_id:
        raise ForbiddenError(f"You can only {verb} your own memories")
    return entry


def edit_memory(
    db: DbClient,
    ctx: SessionContext,
    entry_id: str,
    changes: dict,
    now: float | None = None,
) -> EntryRecord:
    """Apply a partial update; keys outside ``EDITABLE_FIELDS`` are ignored."""
    entry = _get_own_entry(db, ctx, entry_id, "edit")
    if entry.status != EntryStatus.ACTIVE:
        raise ValidationError("Only active memories can be edited")

    for key in EDITABLE_FIELDS:
        if key in changes:
            value = changes[key]
            if key == "text":
                value = value or ""
            setattr(entry, key, value)
    _validate_content(entry.text, [entry.media_url, entry.audio_url, entry.video_url])

    entry.content_hash = compute_content_hash(
        entry.text, entry.media_url, entry.audio_url, entry.video_url
    )
    entry.updated_at = now if now is not None else time.time()
    return db.save_entry(entry)


def withdraw_memory(
    db: DbClient, ctx: SessionContext, entry_id: str, now: float | None = None
) -> EntryRecord:
    entry = _get_own_entry(db, ctx, entry_id, "withdraw")
    if entry.status == EntryStatus.WITHDRAWN:
        raise ValidationError("This memory has already been withdrawn")
    if entry.status == EntryStatus.DELETED:
        raise ValidationError("This memory has been deleted and cannot be withdrawn")

    now = now if now is not None else time.time()
    previous_status = entry.status
    entry.status = EntryStatus.WITHDRAWN
    entry.withdrawn_at = now
    entry.updated_at = now
    db.save_entry(entry)
    write_audit(
        db,
        ctx.user_id,
        "WITHDRAW",
        "ENTRY",
        entry.entry_id,
        previousStatus=previous_status.value,
        branchId=entry.branch_id,
    )
    return entry


def restore_memory(
    db: DbClient, ctx: SessionContext, entry_id: str, now: float | None = None
) -> EntryRecord:
    entry = _get_own_entry(db, ctx, entry_id, "restore")
    if entry.status != EntryStatus.WITHDRAWN:
        raise ValidationError("Only withdrawn memories can be restored")

    entry.status = EntryStatus.ACTIVE
    entry.withdrawn_at = None
    entry.updated_at = now if now is not None else time.time()
    db.save_entry(entry)
    write_audit(
        db,
        ctx.user_id,
        "RESTORE",
        "ENTRY",
        entry.entry_id,
        branchId=entry.branch_id,
    )
    return entry


def list_memories(db: DbClient, ctx: SessionContext, branch_id: str) -> list[EntryRecord]:
    branch = get_branch_or_404(db, branch_id)
    if not has_branch_access(db, branch, ctx):
        raise ForbiddenError("You do not have access to this branch")
    return db.list_entries(branch_id, EntryStatus.ACTIVE)
