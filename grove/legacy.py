"""
Heir release workflow.

Owners attach heirs to a branch with a release condition. ``evaluate_heir``
is a pure function deciding the next state of a pending heir; the sweep and
explicit releases apply its verdict, store an archive and queue a notice.

States::

    PENDING -> RELEASED (terminal)
    PENDING -> CANCELLED
    PENDING -> EXPIRED

Revoking a released heir keeps it ``RELEASED`` but stamps ``revoked_at``,
which makes its download token expire.
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional

from grove.analytics import track_event
from grove.auth import SessionContext
from grove.branches import get_branch_or_404, require_owner, write_audit
from grove.db import BranchRecord, DbClient, HeirRecord
from grove.errors import ExpiredError, ForbiddenError, NotFoundError, ValidationError
from grove.export import build_legacy_bundle
from grove.queue import NOTICE_REVOKED, HeirNotice, JobQueue
from grove.storage import StorageClient, archive_key
from grove.types import HeirStatus, ReleaseCondition

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


@dataclass(frozen=True)
class HeirEvaluation:
    status: HeirStatus
    token: Optional[str] = None


@dataclass
class SweepResult:
    heir_id: str
    status: HeirStatus
    success: bool = True
    error: Optional[str] = None


def generate_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_release_date(value: datetime | date | str | None) -> Optional[datetime]:
    """Accept datetimes, dates and ISO-8601 strings; naive values are UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return _as_utc(datetime.fromisoformat(text))
    except ValueError:
        raise ValidationError("releaseDate must be an ISO-8601 date") from None


def evaluate_heir(
    heir: HeirRecord, now: datetime, branch: Optional[BranchRecord]
) -> HeirEvaluation:
    """
    Decide the next state of ``heir`` at ``now`` given its branch.

    Only pending heirs move. A missing or deleted branch expires the heir;
    ``AFTER_DATE`` releases at or after the release date; ``AFTER_DEATH``
    releases once the branch is marked legacy; ``MANUAL`` never releases here.
    A transition to ``RELEASED`` carries a fresh token.
    """
    if heir.status != HeirStatus.PENDING:
        return HeirEvaluation(status=heir.status)
    if branch is None or branch.is_deleted:
        return HeirEvaluation(status=HeirStatus.EXPIRED)

    released = False
    if heir.release_condition == ReleaseCondition.AFTER_DATE:
        released = heir.release_date is not None and _as_utc(now) >= _as_utc(
            heir.release_date
        )
    elif heir.release_condition == ReleaseCondition.AFTER_DEATH:
        released = branch.is_legacy

    if released:
        return HeirEvaluation(status=HeirStatus.RELEASED, token=generate_token())
    return HeirEvaluation(status=HeirStatus.PENDING)


def add_heir(
    db: DbClient,
    ctx: SessionContext,
    branch_id: str,
    heir_email: str | None,
    release_condition: str | ReleaseCondition | None,
    release_date: datetime | date | str | None = None,
) -> HeirRecord:
    if not heir_email or not release_condition:
        raise ValidationError("heirEmail and releaseCondition are required")
    heir_email = heir_email.strip().lower()
    if "@" not in heir_email:
        raise ValidationError("heirEmail must be an email address")

    branch = get_branch_or_404(db, branch_id)
    require_owner(branch, ctx, "Only the branch owner can add heirs")

    if isinstance(release_condition, ReleaseCondition):
        condition = release_condition
    else:
        try:
            condition = ReleaseCondition.parse(release_condition)
        except ValueError:
            raise ValidationError(
                "releaseCondition must be one of AFTER_DATE, AFTER_DEATH, MANUAL"
            ) from None

    parsed_date = parse_release_date(release_date)
    if condition == ReleaseCondition.AFTER_DATE and parsed_date is None:
        raise ValidationError("releaseDate is required for a date-based release")

    heir = db.save_heir(
        HeirRecord(
            branch_id=branch.branch_id,
            heir_email=heir_email,
            release_condition=condition,
            release_date=parsed_date,
        )
    )
    write_audit(
        db,
        ctx.user_id,
        "HEIR_ADDED",
        "BRANCH",
        branch.branch_id,
        heirId=heir.heir_id,
        releaseCondition=condition.value,
    )
    return heir


def list_heirs(db: DbClient, ctx: SessionContext, branch_id: str) -> list[HeirRecord]:
    branch = get_branch_or_404(db, branch_id)
    require_owner(branch, ctx, "Only the branch owner can view heirs")
    return db.list_heirs(branch.branch_id)


def archive_path_for(heir: HeirRecord) -> str:
    return archive_key(heir.branch_id, heir.heir_id)


def release_heir(
    db: DbClient,
    heir: HeirRecord,
    branch: BranchRecord,
    token: str,
    *,
    storage: StorageClient,
    queue: JobQueue,
    actor_id: Optional[str] = None,
    now: float | None = None,
) -> HeirRecord:
    """Persist a release: store the archive, activate the token, queue a notice."""
    now = now if now is not None else time.time()
    path = archive_path_for(heir)
    storage.upload_json(path, build_legacy_bundle(db, branch, now=now))

    heir.status = HeirStatus.RELEASED
    heir.download_token = token
    heir.released_at = now
    heir.archive_path = path
    db.save_heir(heir)
    write_audit(
        db,
        actor_id,
        "HEIR_RELEASED",
        "HEIR",
        heir.heir_id,
        branchId=branch.branch_id,
        releaseCondition=heir.release_condition.value,
    )
    queue.enqueue(HeirNotice(heir_id=heir.heir_id))
    logger.info("Released branch %s to heir %s", branch.branch_id, heir.heir_id)
    return heir


def _expire_heir(db: DbClient, heir: HeirRecord) -> HeirRecord:
    heir.status = HeirStatus.EXPIRED
    db.save_heir(heir)
    write_audit(db, None, "HEIR_EXPIRED", "HEIR", heir.heir_id, branchId=heir.branch_id)
    return heir


def run_release_sweep(
    db: DbClient,
    storage: StorageClient,
    queue: JobQueue,
    now: datetime | None = None,
    dry_run: bool = False,
) -> list[SweepResult]:
    """
    Evaluate every pending heir once and apply the transitions that are due.

    Failures are reported per heir; the heir stays pending and is picked up
    again by the next sweep.
    """
    now = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    results: list[SweepResult] = []
    for heir in db.list_pending_heirs():
        try:
            branch = db.get_branch(heir.branch_id)
            verdict = evaluate_heir(heir, now, branch)
            if verdict.status == HeirStatus.PENDING:
                continue
            if not dry_run:
                if verdict.status == HeirStatus.RELEASED:
                    release_heir(
                        db,
                        heir,
                        branch,
                        verdict.token,
                        storage=storage,
                        queue=queue,
                        now=now.timestamp(),
                    )
                elif verdict.status == HeirStatus.EXPIRED:
                    _expire_heir(db, heir)
            results.append(SweepResult(heir_id=heir.heir_id, status=verdict.status))
        except Exception as exc:
            logger.exception("Failed to evaluate heir %s", heir.heir_id)
            results.append(
                SweepResult(
                    heir_id=heir.heir_id,
                    status=HeirStatus.PENDING,
                    success=False,
                    error=str(exc),
                )
            )
    return results


def release_now(
    db: DbClient,
    ctx: SessionContext,
    heir_id: str,
    *,
    storage: StorageClient,
    queue: JobQueue,
    now: float | None = None,
) -> HeirRecord:
    """Explicit release: admins release any heir, owners their manual heirs."""
    heir = db.get_heir(heir_id)
    if not heir:
        raise NotFoundError("Heir not found")
    branch = get_branch_or_404(db, heir.branch_id)

    owner_manual = (
        branch.owner_id == ctx.user_id
        and heir.release_condition == ReleaseCondition.MANUAL
    )
    if not (ctx.is_admin or owner_manual):
        raise ForbiddenError("You cannot release this heir")
    if heir.status != HeirStatus.PENDING:
        raise ValidationError("Only pending heirs can be released")

    return release_heir(
        db,
        heir,
        branch,
        generate_token(),
        storage=storage,
        queue=queue,
        actor_id=ctx.user_id,
        now=now,
    )


def cancel_heir(
    db: DbClient,
    ctx: SessionContext,
    heir_id: str,
    *,
    storage: StorageClient | None = None,
    queue: JobQueue | None = None,
    now: float | None = None,
) -> HeirRecord:
    """
    Cancel a pending heir, or revoke a released one.

    Revoking removes the stored archive, expires the download token and
    queues a revocation notice for the heir.
    """
    heir = db.get_heir(heir_id)
    if not heir:
        raise NotFoundError("Heir not found")
    branch = get_branch_or_404(db, heir.branch_id)
    require_owner(branch, ctx, "Only the branch owner can cancel heirs")

    now = now if now is not None else time.time()
    revoked = False
    if heir.status == HeirStatus.PENDING:
        heir.status = HeirStatus.CANCELLED
        heir.cancelled_at = now
        action = "HEIR_CANCELLED"
    elif heir.status == HeirStatus.RELEASED and heir.revoked_at is None:
        if storage is not None and heir.archive_path:
            storage.delete_object(heir.archive_path)
            heir.archive_path = None
        heir.revoked_at = now
        action = "HEIR_REVOKED"
        revoked = True
    else:
        raise ValidationError("This heir can no longer be cancelled")

    db.save_heir(heir)
    write_audit(db, ctx.user_id, action, "HEIR", heir.heir_id, branchId=branch.branch_id)
    if revoked and queue is not None:
        queue.enqueue(HeirNotice(heir_id=heir.heir_id, kind=NOTICE_REVOKED))
    return heir


def get_legacy_download(
    db: DbClient,
    token: str,
    storage: StorageClient | None = None,
    url_expires_in: int = 3600,
) -> dict:
    """Return the export bundle for a released heir's token."""
    heir = db.get_heir_by_token(token) if token else None
    if not heir or heir.status not in (HeirStatus.RELEASED, HeirStatus.CANCELLED):
        raise NotFoundError("Invalid or inactive download link")
    if heir.status == HeirStatus.CANCELLED or heir.revoked_at is not None:
        raise ExpiredError("This download link has been revoked")

    branch = db.get_branch(heir.branch_id)
    if not branch or branch.is_deleted:
        raise ExpiredError("The branch behind this download link was deleted")

    bundle = build_legacy_bundle(db, branch)
    if storage is not None and heir.archive_path:
        bundle["archiveUrl"] = storage.presign_get(
            heir.archive_path, expires_in=url_expires_in
        )
    track_event(db, "legacy_download", None, {"heirId": heir.heir_id})
    return bundle
