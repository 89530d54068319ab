"""
Pydantic schemas for the Firefly Grove API.

Payloads use camelCase on the wire; Python code uses snake_case.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from grove.db import BranchRecord, EntryRecord, HeirRecord, MemberRecord


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateMemoryRequest(ApiModel):
    branch_id: str = Field(..., max_length=64)
    text: Optional[str] = None
    media_url: Optional[str] = Field(default=None, max_length=2048)
    audio_url: Optional[str] = Field(default=None, max_length=2048)
    video_url: Optional[str] = Field(default=None, max_length=2048)
    allow_duplicate: bool = False


class EditMemoryRequest(ApiModel):
    text: Optional[str] = None
    media_url: Optional[str] = Field(default=None, max_length=2048)
    audio_url: Optional[str] = Field(default=None, max_length=2048)
    video_url: Optional[str] = Field(default=None, max_length=2048)


class EntryResponse(ApiModel):
    id: str
    branch_id: str
    author_id: str
    text: str
    media_url: Optional[str] = None
    audio_url: Optional[str] = None
    video_url: Optional[str] = None
    content_hash: str
    status: str
    created_at: float
    updated_at: float

    @classmethod
    def from_record(cls, entry: EntryRecord) -> "EntryResponse":
        return cls(
            id=entry.entry_id,
            branch_id=entry.branch_id,
            author_id=entry.author_id,
            text=entry.text,
            media_url=entry.media_url,
            audio_url=entry.audio_url,
            video_url=entry.video_url,
            content_hash=entry.content_hash,
            status=entry.status.name,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )


class DuplicateResponse(ApiModel):
    is_duplicate: Literal[True] = True
    existing_entry: EntryResponse


class MemoryListResponse(ApiModel):
    memories: list[EntryResponse]


class CreateBranchRequest(ApiModel):
    title: str = Field(..., max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)


class MarkLegacyRequest(ApiModel):
    birth_date: Optional[date] = None
    death_date: Optional[date] = None
    proof_url: Optional[str] = Field(default=None, max_length=2048)
    affirmation: Optional[Union[bool, str]] = None
    update_dates_only: bool = False


class AddMemberRequest(ApiModel):
    email: str = Field(..., max_length=320)
    role: Literal["member", "moderator"] = "member"


class BranchResponse(ApiModel):
    id: str
    owner_id: str
    title: str
    description: Optional[str] = None
    status: str
    archived: bool
    archived_at: Optional[float] = None
    person_status: str
    birth_date: Optional[str] = None
    death_date: Optional[str] = None
    legacy_entered_at: Optional[float] = None
    created_at: float
    updated_at: float

    @classmethod
    def from_record(cls, branch: BranchRecord) -> "BranchResponse":
        return cls(
            id=branch.branch_id,
            owner_id=branch.owner_id,
            title=branch.title,
            description=branch.description,
            status=branch.status.name,
            archived=branch.archived,
            archived_at=branch.archived_at,
            person_status=branch.person_status.name,
            birth_date=branch.birth_date,
            death_date=branch.death_date,
            legacy_entered_at=branch.legacy_entered_at,
            created_at=branch.created_at,
            updated_at=branch.updated_at,
        )


class BranchListResponse(ApiModel):
    branches: list[BranchResponse]


class MemberResponse(ApiModel):
    branch_id: str
    user_id: str
    role: str

    @classmethod
    def from_record(cls, member: MemberRecord) -> "MemberResponse":
        return cls(branch_id=member.branch_id, user_id=member.user_id, role=member.role)


class CreateHeirRequest(ApiModel):
    # Required-ness is checked by the service so the error matches the
    # shared envelope.
    heir_email: Optional[str] = Field(default=None, max_length=320)
    release_condition: Optional[str] = None
    release_date: Optional[str] = None


class HeirResponse(ApiModel):
    id: str
    branch_id: str
    heir_email: str
    release_condition: str
    release_date: Optional[datetime] = None
    status: str
    download_token: Optional[str] = None
    released_at: Optional[float] = None
    notified_at: Optional[float] = None
    cancelled_at: Optional[float] = None
    revoked_at: Optional[float] = None
    created_at: float

    @classmethod
    def from_record(cls, heir: HeirRecord, include_token: bool = False) -> "HeirResponse":
        return cls(
            id=heir.heir_id,
            branch_id=heir.branch_id,
            heir_email=heir.heir_email,
            release_condition=heir.release_condition.name,
            release_date=heir.release_date,
            status=heir.status.name,
            download_token=heir.download_token if include_token else None,
            released_at=heir.released_at,
            notified_at=heir.notified_at,
            cancelled_at=heir.cancelled_at,
            revoked_at=heir.revoked_at,
            created_at=heir.created_at,
        )


class HeirListResponse(ApiModel):
    heirs: list[HeirResponse]


class SweepResultItem(ApiModel):
    heir_id: str
    status: str
    success: bool
    error: Optional[str] = None


class SweepResponse(ApiModel):
    results: list[SweepResultItem]


class SignUrlResponse(ApiModel):
    url: str


class StatusResponse(ApiModel):
    status: Literal["ok"]
