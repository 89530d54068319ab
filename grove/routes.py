"""
HTTP routes for the Firefly Grove API.

Handlers stay thin: resolve the session, call a service function, shape the
response. Errors raised by services are turned into the JSON envelope by the
handlers registered in ``grove.app``.
"""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from grove import branches as branch_service
from grove import legacy as legacy_service
from grove import memories as memory_service
from grove.auth import SessionContext
from grove.config import get_settings
from grove.db import DbClient
from grove.dependencies import (
    get_db_client,
    get_queue_client,
    get_session_context,
    get_storage_client,
)
from grove.errors import ForbiddenError
from grove.queue import JobQueue
from grove.schemas import (
    AddMemberRequest,
    BranchListResponse,
    BranchResponse,
    CreateBranchRequest,
    CreateHeirRequest,
    CreateMemoryRequest,
    DuplicateResponse,
    EditMemoryRequest,
    EntryResponse,
    HeirListResponse,
    HeirResponse,
    MarkLegacyRequest,
    MemberResponse,
    MemoryListResponse,
    SignUrlResponse,
    StatusResponse,
    SweepResponse,
    SweepResultItem,
)
from grove.storage import StorageClient, upload_key

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=StatusResponse)
def health():
    return StatusResponse(status="ok")


# Memories


@router.post(
    "/memories",
    response_model=EntryResponse,
    status_code=201,
    responses={409: {"model": DuplicateResponse}},
)
def create_memory(
    payload: CreateMemoryRequest,
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
):
    """
    Create a memory. A likely duplicate is returned as an advisory 409 unless
    the client resubmits with ``allowDuplicate``.
    """
    settings = get_settings()
    submission = memory_service.create_memory(
        db,
        ctx,
        branch_id=payload.branch_id,
        text=payload.text,
        media_url=payload.media_url,
        audio_url=payload.audio_url,
        video_url=payload.video_url,
        allow_duplicate=payload.allow_duplicate,
        window_minutes=settings.duplicate_window_minutes,
    )
    if submission.is_duplicate:
        body = DuplicateResponse(
            existing_entry=EntryResponse.from_record(submission.duplicate)
        )
        return JSONResponse(status_code=409, content=body.model_dump(by_alias=True))
    return EntryResponse.from_record(submission.entry)


@router.patch("/memories/{entry_id}", response_model=EntryResponse)
def edit_memory(
    entry_id: str,
    payload: EditMemoryRequest,
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
):
    changes = payload.model_dump(exclude_unset=True)
    entry = memory_service.edit_memory(db, ctx, entry_id, changes)
    return EntryResponse.from_record(entry)


@router.post("/memories/{entry_id}/withdraw", response_model=EntryResponse)
def withdraw_memory(
    entry_id: str,
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
):
    return EntryResponse.from_record(memory_service.withdraw_memory(db, ctx, entry_id))


@router.post("/memories/{entry_id}/restore", response_model=EntryResponse)
def restore_memory(
    entry_id: str,
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
):
    return EntryResponse.from_record(memory_service.restore_memory(db, ctx, entry_id))


# Branches


@router.post("/branches", response_model=BranchResponse, status_code=201)
def create_branch(
    payload: CreateBranchRequest,
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
):
    branch = branch_service.create_branch(db, ctx, payload.title, payload.description)
    return BranchResponse.from_record(branch)


@router.get("/branches", response_model=BranchListResponse)
def list_branches(
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
):
    items = branch_service.list_branches(db, ctx)
    return BranchListResponse(branches=[BranchResponse.from_record(b) for b in items])


@router.get("/branches/{branch_id}", response_model=BranchResponse)
def get_branch(
    branch_id: str,
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
):
    return BranchResponse.from_record(branch_service.get_branch(db, ctx, branch_id))


@router.delete("/branches/{branch_id}", response_model=BranchResponse)
def delete_branch(
    branch_id: str,
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
):
    return BranchResponse.from_record(branch_service.delete_branch(db, ctx, branch_id))


@router.post("/branches/{branch_id}/archive", response_model=BranchResponse)
def archive_branch(
    branch_id: str,
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
):
    return BranchResponse.from_record(branch_service.archive_branch(db, ctx, branch_id))


@router.post("/branches/{branch_id}/restore", response_model=BranchResponse)
def restore_branch(
    branch_id: str,
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
):
    return BranchResponse.from_record(branch_service.restore_branch(db, ctx, branch_id))


@router.patch("/branches/{branch_id}/legacy", response_model=BranchResponse)
def mark_legacy(
    branch_id: str,
    payload: MarkLegacyRequest,
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
):
    branch = branch_service.mark_legacy(
        db,
        ctx,
        branch_id,
        birth_date=payload.birth_date,
        death_date=payload.death_date,
        proof_url=payload.proof_url,
        affirmation=payload.affirmation,
        update_dates_only=payload.update_dates_only,
    )
    return BranchResponse.from_record(branch)


@router.post(
    "/branches/{branch_id}/members", response_model=MemberResponse, status_code=201
)
def add_member(
    branch_id: str,
    payload: AddMemberRequest,
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
):
    member = branch_service.add_member(db, ctx, branch_id, payload.email, payload.role)
    return MemberResponse.from_record(member)


@router.get("/branches/{branch_id}/memories", response_model=MemoryListResponse)
def list_memories(
    branch_id: str,
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
):
    entries = memory_service.list_memories(db, ctx, branch_id)
    return MemoryListResponse(memories=[EntryResponse.from_record(e) for e in entries])


# Heirs and legacy release


@router.post(
    "/branches/{branch_id}/heirs", response_model=HeirResponse, status_code=201
)
def add_heir(
    branch_id: str,
    payload: CreateHeirRequest,
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
):
    heir = legacy_service.add_heir(
        db,
        ctx,
        branch_id,
        payload.heir_email,
        payload.release_condition,
        payload.release_date,
    )
    return HeirResponse.from_record(heir)


@router.get("/branches/{branch_id}/heirs", response_model=HeirListResponse)
def list_heirs(
    branch_id: str,
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
):
    heirs = legacy_service.list_heirs(db, ctx, branch_id)
    return HeirListResponse(heirs=[HeirResponse.from_record(h) for h in heirs])


@router.delete("/heirs/{heir_id}", response_model=HeirResponse)
def cancel_heir(
    heir_id: str,
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    queue: JobQueue = Depends(get_queue_client),
):
    heir = legacy_service.cancel_heir(db, ctx, heir_id, storage=storage, queue=queue)
    return HeirResponse.from_record(heir)


@router.post("/heirs/{heir_id}/release", response_model=HeirResponse)
def release_heir(
    heir_id: str,
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    queue: JobQueue = Depends(get_queue_client),
):
    heir = legacy_service.release_now(db, ctx, heir_id, storage=storage, queue=queue)
    return HeirResponse.from_record(heir, include_token=True)


@router.post("/admin/legacy/sweep", response_model=SweepResponse)
def run_sweep(
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    queue: JobQueue = Depends(get_queue_client),
):
    if not ctx.is_admin:
        raise ForbiddenError("Admin access required")
    started = time.time()
    results = legacy_service.run_release_sweep(db, storage, queue)
    logger.info(
        "Sweep by %s processed %d heirs in %.2fs",
        ctx.user_id,
        len(results),
        time.time() - started,
    )
    return SweepResponse(
        results=[
            SweepResultItem(
                heir_id=r.heir_id, status=r.status.name, success=r.success, error=r.error
            )
            for r in results
        ]
    )


@router.get("/legacy/download")
def legacy_download(
    token: str = Query(..., min_length=1),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    settings = get_settings()
    return legacy_service.get_legacy_download(
        db, token, storage, url_expires_in=settings.archive_url_expires_in
    )


# Uploads


@router.get("/uploads/sign-url", response_model=SignUrlResponse)
def sign_url(
    path: str = Query(..., description="Object path in storage"),
    op: str = Query("put", pattern="^(get|put)$"),
    expires_in: int = Query(3600, ge=60, le=86400),
    ctx: SessionContext = Depends(get_session_context),
    storage: StorageClient = Depends(get_storage_client),
):
    # Users may only touch objects under their own prefix.
    key = upload_key(ctx.user_id, path)
    if ".." in key.split("/"):
        raise ForbiddenError("Invalid object path")
    if op == "get":
        url = storage.presign_get(key, expires_in=expires_in)
    else:
        url = storage.presign_put(key, expires_in=expires_in)
    return SignUrlResponse(url=url)
