"""
Branch lifecycle and access control.

Branches are never hard-deleted: owners archive and restore them, mark them
legacy once the person has passed, and owners or admins soft-delete them.
"""

from __future__ import annotations

import logging
import time
from datetime import date
from typing import Optional

from grove.analytics import track_event
from grove.auth import SessionContext
from grove.db import AuditRecord, BranchRecord, DbClient, MemberRecord
from grove.errors import ForbiddenError, NotFoundError, ValidationError
from grove.types import BranchStatus, PersonStatus

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200


def write_audit(
    db: DbClient,
    actor_id: Optional[str],
    action: str,
    target_type: str,
    target_id: str,
    **metadata,
) -> None:
    db.record_audit(
        AuditRecord(
            actor_id=actor_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            metadata=metadata,
        )
    )


def get_branch_or_404(db: DbClient, branch_id: str) -> BranchRecord:
    branch = db.get_branch(branch_id)
    if not branch or branch.is_deleted:
        raise NotFoundError("Branch not found")
    return branch


def require_owner(branch: BranchRecord, ctx: SessionContext, message: str) -> None:
    if branch.owner_id != ctx.user_id:
        raise ForbiddenError(message)


def has_branch_access(db: DbClient, branch: BranchRecord, ctx: SessionContext) -> bool:
    """Owners and members can see a branch; admins can see everything."""
    if ctx.is_admin or branch.owner_id == ctx.user_id:
        return True
    return db.get_member(branch.branch_id, ctx.user_id) is not None


def create_branch(
    db: DbClient,
    ctx: SessionContext,
    title: str,
    description: Optional[str] = None,
) -> BranchRecord:
    title = (title or "").strip()
    if not title:
        raise ValidationError("title is required")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"title must be at most {MAX_TITLE_LENGTH} characters")

    branch = db.save_branch(
        BranchRecord(owner_id=ctx.user_id, title=title, description=description)
    )
    track_event(db, "branch_created", ctx.user_id, {"branchId": branch.branch_id})
    return branch


def get_branch(db: DbClient, ctx: SessionContext, branch_id: str) -> BranchRecord:
    branch = get_branch_or_404(db, branch_id)
    if not has_branch_access(db, branch, ctx):
        raise ForbiddenError("You do not have access to this branch")
    return branch


def list_branches(db: DbClient, ctx: SessionContext) -> list[BranchRecord]:
    return db.list_branches_for_user(ctx.user_id)


def archive_branch(
    db: DbClient, ctx: SessionContext, branch_id: str, now: float | None = None
) -> BranchRecord:
    branch = get_branch_or_404(db, branch_id)
    require_owner(branch, ctx, "Only the branch owner can archive a branch")
    if branch.archived:
        raise ValidationError("This branch is already archived")

    now = now if now is not None else time.time()
    previous_status = branch.status
    branch.archived = True
    branch.archived_at = now
    branch.archived_by = ctx.user_id
    branch.status = BranchStatus.ARCHIVED
    branch.updated_at = now
    db.save_branch(branch)
    write_audit(
        db,
        ctx.user_id,
        "ARCHIVE",
        "BRANCH",
        branch.branch_id,
        branchTitle=branch.title,
        entryCount=len(db.list_entries(branch.branch_id)),
        previousStatus=previous_status.value,
    )
    return branch


def restore_branch(
    db: DbClient, ctx: SessionContext, branch_id: str, now: float | None = None
) -> BranchRecord:
    branch = get_branch_or_404(db, branch_id)
    require_owner(branch, ctx, "Only the branch owner can restore a branch")
    if not branch.archived:
        raise ValidationError("This branch is not archived")

    previous_status = branch.status
    branch.archived = False
    branch.archived_at = None
    branch.archived_by = None
    branch.status = BranchStatus.ACTIVE
    branch.updated_at = now if now is not None else time.time()
    db.save_branch(branch)
    write_audit(
        db,
        ctx.user_id,
        "RESTORE",
        "BRANCH",
        branch.branch_id,
        branchTitle=branch.title,
        previousStatus=previous_status.value,
    )
    return branch


def _validate_life_dates(
    birth_date: Optional[date], death_date: Optional[date], today: date
) -> None:
    if death_date is None:
        return
    if birth_date and death_date < birth_date:
        raise ValidationError("Death date cannot be before birth date")
    if death_date > today:
        raise ValidationError("Death date cannot be in the future")


def mark_legacy(
    db: DbClient,
    ctx: SessionContext,
    branch_id: str,
    *,
    birth_date: Optional[date] = None,
    death_date: Optional[date] = None,
    proof_url: Optional[str] = None,
    affirmation: Optional[str] = None,
    update_dates_only: bool = False,
    today: Optional[date] = None,
    now: float | None = None,
) -> BranchRecord:
    """
    Put a branch into legacy mode, or update the dates of a legacy branch.

    New legacy branches need either an affirmation or a proof URL. Heirs with
    an ``AFTER_DEATH`` condition become releasable on the next sweep.

    Both dates are replaced on every call, dates-only updates included: an
    omitted ``birth_date`` clears the stored one. Clients resend both dates.
    """
    branch = get_branch_or_404(db, branch_id)
    require_owner(branch, ctx, "Only the branch owner can set legacy status")

    today = today or date.today()
    now = now if now is not None else time.time()
    dates_only = update_dates_only and branch.is_legacy

    if not dates_only and not affirmation and not proof_url:
        raise ValidationError("Please affirm or provide proof that this person has passed")
    _validate_life_dates(birth_date, death_date, today)

    branch.birth_date = birth_date.isoformat() if birth_date else None
    branch.death_date = death_date.isoformat() if death_date else None
    branch.updated_at = now

    if dates_only:
        db.save_branch(branch)
        write_audit(
            db,
            ctx.user_id,
            "BRANCH_DATES_UPDATED",
            "BRANCH",
            branch.branch_id,
            birthDate=branch.birth_date,
            deathDate=branch.death_date,
        )
        return branch

    branch.person_status = PersonStatus.LEGACY
    branch.legacy_entered_at = now
    branch.legacy_marked_by = ctx.user_id
    branch.legacy_proof_url = proof_url
    db.save_branch(branch)
    write_audit(
        db,
        ctx.user_id,
        "BRANCH_MARKED_LEGACY",
        "BRANCH",
        branch.branch_id,
        birthDate=branch.birth_date,
        deathDate=branch.death_date,
        hasProof=bool(proof_url),
        affirmation=affirmation,
    )
    logger.info("Branch %s entered legacy mode", branch.branch_id)
    return branch


def delete_branch(
    db: DbClient, ctx: SessionContext, branch_id: str, now: float | None = None
) -> BranchRecord:
    branch = get_branch_or_404(db, branch_id)
    if not ctx.is_admin:
        require_owner(branch, ctx, "Only the branch owner can delete a branch")

    now = now if now is not None else time.time()
    previous_status = branch.status
    branch.status = BranchStatus.DELETED
    branch.deleted_at = now
    branch.updated_at = now
    db.save_branch(branch)
    write_audit(
        db,
        ctx.user_id,
        "DELETE",
        "BRANCH",
        branch.branch_id,
        branchTitle=branch.title,
        previousStatus=previous_status.value,
        byAdmin=ctx.is_admin and branch.owner_id != ctx.user_id,
    )
    return branch


def add_member(
    db: DbClient,
    ctx: SessionContext,
    branch_id: str,
    email: str,
    role: str = "member",
) -> MemberRecord:
    branch = get_branch_or_404(db, branch_id)
    require_owner(branch, ctx, "Only the branch owner can add members")

    if not email or "@" not in email:
        raise ValidationError("A valid email is required")
    user = db.get_user_by_email(email)
    if not user:
        raise NotFoundError("No user with that email")
    if user.user_id == branch.owner_id:
        raise ValidationError("The owner is already part of this branch")

    member = MemberRecord(branch_id=branch.branch_id, user_id=user.user_id, role=role)
    db.add_member(member)
    write_audit(
        db,
        ctx.user_id,
        "MEMBER_ADDED",
        "BRANCH",
        branch.branch_id,
        memberId=user.user_id,
        role=role,
    )
    return member
