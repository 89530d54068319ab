"""
Database abstraction for Postgres and an in-memory test implementation.
"""

from __future__ import annotations

import secrets
import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    String,
    Text,
    create_engine,
    select,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from grove.types import (
    BranchStatus,
    EntryStatus,
    HeirStatus,
    PersonStatus,
    ReleaseCondition,
)


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> float:
    return time.time()


def _to_epoch(value: Optional[datetime]) -> Optional[float]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def _from_epoch(value: Optional[float]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


class DbClient(Protocol):
    """Interface for database access."""

    def create_user(
        self, email: str, name: str | None = None, is_admin: bool = False
    ) -> "UserRecord":
        ...

    def get_user(self, user_id: str) -> Optional["UserRecord"]:
        ...

    def get_user_by_email(self, email: str) -> Optional["UserRecord"]:
        ...

    def create_session(self, user_id: str, ttl_seconds: float) -> "SessionRecord":
        ...

    def get_session(self, token: str) -> Optional["SessionRecord"]:
        ...

    def save_branch(self, branch: "BranchRecord") -> "BranchRecord":
        ...

    def get_branch(self, branch_id: str) -> Optional["BranchRecord"]:
        ...

    def list_branches_for_user(self, user_id: str) -> list["BranchRecord"]:
        ...

    def add_member(self, member: "MemberRecord") -> None:
        ...

    def get_member(self, branch_id: str, user_id: str) -> Optional["MemberRecord"]:
        ...

    def save_entry(self, entry: "EntryRecord") -> "EntryRecord":
        ...

    def get_entry(self, entry_id: str) -> Optional["EntryRecord"]:
        ...

    def list_entries(
        self, branch_id: str, status: EntryStatus | None = EntryStatus.ACTIVE
    ) -> list["EntryRecord"]:
        ...

    def list_entries_page(self, offset: int, limit: int) -> list["EntryRecord"]:
        ...

    def find_recent_entry_by_hash(
        self, author_id: str, branch_id: str, content_hash: str, since: float
    ) -> Optional["EntryRecord"]:
        ...

    def save_heir(self, heir: "HeirRecord") -> "HeirRecord":
        ...

    def get_heir(self, heir_id: str) -> Optional["HeirRecord"]:
        ...

    def get_heir_by_token(self, token: str) -> Optional["HeirRecord"]:
        ...

    def list_heirs(self, branch_id: str) -> list["HeirRecord"]:
        ...

    def list_pending_heirs(self) -> list["HeirRecord"]:
        ...

    def record_audit(self, audit: "AuditRecord") -> None:
        ...

    def list_audits(self, target_id: str) -> list["AuditRecord"]:
        ...

    def record_event(self, event: "EventRecord") -> None:
        ...


@dataclass
class UserRecord:
    email: str
    name: Optional[str] = None
    is_admin: bool = False
    user_id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=_now)


@dataclass
class SessionRecord:
    user_id: str
    expires_at: float
    token: str = field(default_factory=lambda: secrets.token_urlsafe(32))
    created_at: float = field(default_factory=_now)

    def is_expired(self, now: float | None = None) -> bool:
        return (now if now is not None else time.time()) >= self.expires_at


@dataclass
class BranchRecord:
    owner_id: str
    title: str
    description: Optional[str] = None
    status: BranchStatus = BranchStatus.ACTIVE
    archived: bool = False
    archived_at: Optional[float] = None
    archived_by: Optional[str] = None
    person_status: PersonStatus = PersonStatus.LIVING
    birth_date: Optional[str] = None
    death_date: Optional[str] = None
    legacy_entered_at: Optional[float] = None
    legacy_marked_by: Optional[str] = None
    legacy_proof_url: Optional[str] = None
    deleted_at: Optional[float] = None
    branch_id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)

    @property
    def is_deleted(self) -> bool:
        return self.status == BranchStatus.DELETED

    @property
    def is_legacy(self) -> bool:
        return self.person_status == PersonStatus.LEGACY


@dataclass
class MemberRecord:
    branch_id: str
    user_id: str
    role: str = "member"
    created_at: float = field(default_factory=_now)


@dataclass
class EntryRecord:
    branch_id: str
    author_id: str
    text: str
    content_hash: str
    media_url: Optional[str] = None
    audio_url: Optional[str] = None
    video_url: Optional[str] = None
    status: EntryStatus = EntryStatus.ACTIVE
    withdrawn_at: Optional[float] = None
    deleted_at: Optional[float] = None
    entry_id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)

    @property
    def is_active(self) -> bool:
        return self.status == EntryStatus.ACTIVE and self.deleted_at is None


@dataclass
class HeirRecord:
    branch_id: str
    heir_email: str
    release_condition: ReleaseCondition
    release_date: Optional[datetime] = None
    status: HeirStatus = HeirStatus.PENDING
    download_token: Optional[str] = None
    released_at: Optional[float] = None
    notified_at: Optional[float] = None
    cancelled_at: Optional[float] = None
    revoked_at: Optional[float] = None
    archive_path: Optional[str] = None
    heir_id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=_now)


@dataclass
class AuditRecord:
    actor_id: Optional[str]
    action: str
    target_type: str
    target_id: str
    metadata: dict = field(default_factory=dict)
    audit_id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=_now)


@dataclass
class EventRecord:
    event_type: str
    user_id: Optional[str] = None
    metadata: dict = field(default_factory=dict)
    event_id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=_now)


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.users: Dict[str, UserRecord] = {}
        self.sessions: Dict[str, SessionRecord] = {}
        self.branches: Dict[str, BranchRecord] = {}
        self.members: Dict[tuple[str, str], MemberRecord] = {}
        self.entries: Dict[str, EntryRecord] = {}
        self.heirs: Dict[str, HeirRecord] = {}
        self.audits: list[AuditRecord] = []
        self.events: list[EventRecord] = []

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.users.clear()
        self.sessions.clear()
        self.branches.clear()
        self.members.clear()
        self.entries.clear()
        self.heirs.clear()
        self.audits.clear()
        self.events.clear()

    def create_user(
        self, email: str, name: str | None = None, is_admin: bool = False
    ) -> UserRecord:
        record = UserRecord(email=email.strip().lower(), name=name, is_admin=is_admin)
        self.users[record.user_id] = record
        return replace(record)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        user = self.users.get(user_id)
        return replace(user) if user else None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        wanted = email.strip().lower()
        for user in self.users.values():
            if user.email == wanted:
                return replace(user)
        return None

    def create_session(self, user_id: str, ttl_seconds: float) -> SessionRecord:
        record = SessionRecord(user_id=user_id, expires_at=time.time() + ttl_seconds)
        self.sessions[record.token] = record
        return replace(record)

    def get_session(self, token: str) -> Optional[SessionRecord]:
        session = self.sessions.get(token)
        return replace(session) if session else None

    def save_branch(self, branch: BranchRecord) -> BranchRecord:
        self.branches[branch.branch_id] = replace(branch)
        return branch

    def get_branch(self, branch_id: str) -> Optional[BranchRecord]:
        branch = self.branches.get(branch_id)
        return replace(branch) if branch else None

    def list_branches_for_user(self, user_id: str) -> list[BranchRecord]:
        member_of = {b for (b, u) in self.members if u == user_id}
        items = [
            replace(branch)
            for branch in self.branches.values()
            if branch.status != BranchStatus.DELETED
            and (branch.owner_id == user_id or branch.branch_id in member_of)
        ]
        return sorted(items, key=lambda b: b.created_at, reverse=True)

    def add_member(self, member: MemberRecord) -> None:
        self.members[(member.branch_id, member.user_id)] = replace(member)

    def get_member(self, branch_id: str, user_id: str) -> Optional[MemberRecord]:
        member = self.members.get((branch_id, user_id))
        return replace(member) if member else None

    def save_entry(self, entry: EntryRecord) -> EntryRecord:
        self.entries[entry.entry_id] = replace(entry)
        return entry

    def get_entry(self, entry_id: str) -> Optional[EntryRecord]:
        entry = self.entries.get(entry_id)
        return replace(entry) if entry else None

    def list_entries(
        self, branch_id: str, status: EntryStatus | None = EntryStatus.ACTIVE
    ) -> list[EntryRecord]:
        items = [
            replace(entry)
            for entry in self.entries.values()
            if entry.branch_id == branch_id
            and (status is None or entry.status == status)
        ]
        return sorted(items, key=lambda e: e.created_at)

    def list_entries_page(self, offset: int, limit: int) -> list[EntryRecord]:
        items = sorted(self.entries.values(), key=lambda e: (e.created_at, e.entry_id))
        return [replace(entry) for entry in items[offset : offset + limit]]

    def find_recent_entry_by_hash(
        self, author_id: str, branch_id: str, content_hash: str, since: float
    ) -> Optional[EntryRecord]:
        matches = [
            entry
            for entry in self.entries.values()
            if entry.author_id == author_id
            and entry.branch_id == branch_id
            and entry.content_hash == content_hash
            and entry.is_active
            and entry.created_at >= since
        ]
        if not matches:
            return None
        return replace(max(matches, key=lambda e: e.created_at))

    def save_heir(self, heir: HeirRecord) -> HeirRecord:
        self.heirs[heir.heir_id] = replace(heir)
        return heir

    def get_heir(self, heir_id: str) -> Optional[HeirRecord]:
        heir = self.heirs.get(heir_id)
        return replace(heir) if heir else None

    def get_heir_by_token(self, token: str) -> Optional[HeirRecord]:
        if not token:
            return None
        for heir in self.heirs.values():
            if heir.download_token == token:
                return replace(heir)
        return None

    def list_heirs(self, branch_id: str) -> list[HeirRecord]:
        items = [replace(h) for h in self.heirs.values() if h.branch_id == branch_id]
        return sorted(items, key=lambda h: h.created_at, reverse=True)

    def list_pending_heirs(self) -> list[HeirRecord]:
        items = [
            replace(h) for h in self.heirs.values() if h.status == HeirStatus.PENDING
        ]
        return sorted(items, key=lambda h: h.created_at)

    def record_audit(self, audit: AuditRecord) -> None:
        self.audits.append(replace(audit))

    def list_audits(self, target_id: str) -> list[AuditRecord]:
        return [replace(a) for a in self.audits if a.target_id == target_id]

    def record_event(self, event: EventRecord) -> None:
        self.events.append(replace(event))


class SqlDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDbClient")
        engine_kwargs: dict = {"future": True, "pool_pre_ping": True}
        if not database_url.startswith("sqlite"):
            engine_kwargs["pool_recycle"] = 1800
        else:
            # In-memory SQLite needs a single shared connection across threads.
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            engine_kwargs["poolclass"] = StaticPool
        self.engine = create_engine(database_url, **engine_kwargs)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    # Users and sessions

    def create_user(
        self, email: str, name: str | None = None, is_admin: bool = False
    ) -> UserRecord:
        record = UserRecord(email=email.strip().lower(), name=name, is_admin=is_admin)
        with self.Session() as session:
            session.add(
                UserRow(
                    user_id=record.user_id,
                    email=record.email,
                    name=record.name,
                    is_admin=record.is_admin,
                    created_at=record.created_at,
                )
            )
            session.commit()
        return record

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.get(UserRow, user_id)
            return _to_user_record(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        with self.Session() as session:
            stmt = select(UserRow).where(UserRow.email == email.strip().lower())
            row = session.execute(stmt).scalar_one_or_none()
            return _to_user_record(row) if row else None

    def create_session(self, user_id: str, ttl_seconds: float) -> SessionRecord:
        record = SessionRecord(user_id=user_id, expires_at=time.time() + ttl_seconds)
        with self.Session() as session:
            session.add(
                SessionRow(
                    token=record.token,
                    user_id=record.user_id,
                    created_at=record.created_at,
                    expires_at=record.expires_at,
                )
            )
            session.commit()
        return record

    def get_session(self, token: str) -> Optional[SessionRecord]:
        with self.Session() as session:
            row = session.get(SessionRow, token)
            if not row:
                return None
            return SessionRecord(
                token=row.token,
                user_id=row.user_id,
                created_at=row.created_at,
                expires_at=row.expires_at,
            )

    # Branches and members

    def save_branch(self, branch: BranchRecord) -> BranchRecord:
        with self.Session() as session:
            session.merge(_branch_row(branch))
            session.commit()
        return branch

    def get_branch(self, branch_id: str) -> Optional[BranchRecord]:
        with self.Session() as session:
            row = session.get(BranchRow, branch_id)
            return _to_branch_record(row) if row else None

    def list_branches_for_user(self, user_id: str) -> list[BranchRecord]:
        with self.Session() as session:
            member_ids = select(MemberRow.branch_id).where(MemberRow.user_id == user_id)
            stmt = (
                select(BranchRow)
                .where(
                    BranchRow.status != BranchStatus.DELETED.value,
                    (BranchRow.owner_id == user_id)
                    | (BranchRow.branch_id.in_(member_ids)),
                )
                .order_by(BranchRow.created_at.desc())
            )
            rows = session.execute(stmt).scalars().all()
            return [_to_branch_record(row) for row in rows]

    def add_member(self, member: MemberRecord) -> None:
        with self.Session() as session:
            session.merge(
                MemberRow(
                    branch_id=member.branch_id,
                    user_id=member.user_id,
                    role=member.role,
                    created_at=member.created_at,
                )
            )
            session.commit()

    def get_member(self, branch_id: str, user_id: str) -> Optional[MemberRecord]:
        with self.Session() as session:
            row = session.get(MemberRow, (branch_id, user_id))
            if not row:
                return None
            return MemberRecord(
                branch_id=row.branch_id,
                user_id=row.user_id,
                role=row.role,
                created_at=row.created_at,
            )

    # Entries

    def save_entry(self, entry: EntryRecord) -> EntryRecord:
        with self.Session() as session:
            session.merge(_entry_row(entry))
            session.commit()
        return entry

    def get_entry(self, entry_id: str) -> Optional[EntryRecord]:
        with self.Session() as session:
            row = session.get(EntryRow, entry_id)
            return _to_entry_record(row) if row else None

    def list_entries(
        self, branch_id: str, status: EntryStatus | None = EntryStatus.ACTIVE
    ) -> list[EntryRecord]:
        with self.Session() as session:
            stmt = select(EntryRow).where(EntryRow.branch_id == branch_id)
            if status is not None:
                stmt = stmt.where(EntryRow.status == status.value)
            stmt = stmt.order_by(EntryRow.created_at.asc())
            rows = session.execute(stmt).scalars().all()
            return [_to_entry_record(row) for row in rows]

    def list_entries_page(self, offset: int, limit: int) -> list[EntryRecord]:
        with self.Session() as session:
            stmt = (
                select(EntryRow)
                .order_by(EntryRow.created_at.asc(), EntryRow.entry_id.asc())
                .offset(offset)
                .limit(limit)
            )
            rows = session.execute(stmt).scalars().all()
            return [_to_entry_record(row) for row in rows]

    def find_recent_entry_by_hash(
        self, author_id: str, branch_id: str, content_hash: str, since: float
    ) -> Optional[EntryRecord]:
        with self.Session() as session:
            stmt = (
                select(EntryRow)
                .where(
                    EntryRow.author_id == author_id,
                    EntryRow.branch_id == branch_id,
                    EntryRow.content_hash == content_hash,
                    EntryRow.status == EntryStatus.ACTIVE.value,
                    EntryRow.deleted_at.is_(None),
                    EntryRow.created_at >= since,
                )
                .order_by(EntryRow.created_at.desc())
                .limit(1)
            )
            row = session.execute(stmt).scalar_one_or_none()
            return _to_entry_record(row) if row else None

    # Heirs

    def save_heir(self, heir: HeirRecord) -> HeirRecord:
        with self.Session() as session:
            session.merge(_heir_row(heir))
            session.commit()
        return heir

    def get_heir(self, heir_id: str) -> Optional[HeirRecord]:
        with self.Session() as session:
            row = session.get(HeirRow, heir_id)
            return _to_heir_record(row) if row else None

    def get_heir_by_token(self, token: str) -> Optional[HeirRecord]:
        if not token:
            return None
        with self.Session() as session:
            stmt = select(HeirRow).where(HeirRow.download_token == token)
            row = session.execute(stmt).scalar_one_or_none()
            return _to_heir_record(row) if row else None

    def list_heirs(self, branch_id: str) -> list[HeirRecord]:
        with self.Session() as session:
            stmt = (
                select(HeirRow)
                .where(HeirRow.branch_id == branch_id)
                .order_by(HeirRow.created_at.desc())
            )
            rows = session.execute(stmt).scalars().all()
            return [_to_heir_record(row) for row in rows]

    def list_pending_heirs(self) -> list[HeirRecord]:
        with self.Session() as session:
            stmt = (
                select(HeirRow)
                .where(HeirRow.status == HeirStatus.PENDING.value)
                .order_by(HeirRow.created_at.asc())
            )
            rows = session.execute(stmt).scalars().all()
            return [_to_heir_record(row) for row in rows]

    # Audit and analytics

    def record_audit(self, audit: AuditRecord) -> None:
        with self.Session() as session:
            session.add(
                AuditRow(
                    audit_id=audit.audit_id,
                    actor_id=audit.actor_id,
                    action=audit.action,
                    target_type=audit.target_type,
                    target_id=audit.target_id,
                    details=audit.metadata,
                    created_at=audit.created_at,
                )
            )
            session.commit()

    def list_audits(self, target_id: str) -> list[AuditRecord]:
        with self.Session() as session:
            stmt = (
                select(AuditRow)
                .where(AuditRow.target_id == target_id)
                .order_by(AuditRow.created_at.asc())
            )
            rows = session.execute(stmt).scalars().all()
            return [
                AuditRecord(
                    audit_id=row.audit_id,
                    actor_id=row.actor_id,
                    action=row.action,
                    target_type=row.target_type,
                    target_id=row.target_id,
                    metadata=row.details or {},
                    created_at=row.created_at,
                )
                for row in rows
            ]

    def record_event(self, event: EventRecord) -> None:
        with self.Session() as session:
            session.add(
                EventRow(
                    event_id=event.event_id,
                    event_type=event.event_type,
                    user_id=event.user_id,
                    details=event.metadata,
                    created_at=event.created_at,
                )
            )
            session.commit()


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    user_id = Column(String, primary_key=True)
    email = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=True)
    is_admin = Column(Boolean, nullable=False, default=False)
    created_at = Column(Float, nullable=False)


class SessionRow(Base):
    __tablename__ = "sessions"

    token = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    created_at = Column(Float, nullable=False)
    expires_at = Column(Float, nullable=False)


class BranchRow(Base):
    __tablename__ = "branches"

    branch_id = Column(String, primary_key=True)
    owner_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String, nullable=False, index=True)
    archived = Column(Boolean, nullable=False, default=False)
    archived_at = Column(Float, nullable=True)
    archived_by = Column(String, nullable=True)
    person_status = Column(String, nullable=False)
    birth_date = Column(String, nullable=True)
    death_date = Column(String, nullable=True)
    legacy_entered_at = Column(Float, nullable=True)
    legacy_marked_by = Column(String, nullable=True)
    legacy_proof_url = Column(String, nullable=True)
    deleted_at = Column(Float, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class MemberRow(Base):
    __tablename__ = "branch_members"

    branch_id = Column(String, primary_key=True)
    user_id = Column(String, primary_key=True, index=True)
    role = Column(String, nullable=False, default="member")
    created_at = Column(Float, nullable=False)


class EntryRow(Base):
    __tablename__ = "entries"

    entry_id = Column(String, primary_key=True)
    branch_id = Column(String, nullable=False, index=True)
    author_id = Column(String, nullable=False, index=True)
    text = Column(Text, nullable=False)
    media_url = Column(String, nullable=True)
    audio_url = Column(String, nullable=True)
    video_url = Column(String, nullable=True)
    content_hash = Column(String(64), nullable=False, index=True)
    status = Column(String, nullable=False, index=True)
    withdrawn_at = Column(Float, nullable=True)
    deleted_at = Column(Float, nullable=True)
    created_at = Column(Float, nullable=False, index=True)
    updated_at = Column(Float, nullable=False)


class HeirRow(Base):
    __tablename__ = "heirs"

    heir_id = Column(String, primary_key=True)
    branch_id = Column(String, nullable=False, index=True)
    heir_email = Column(String, nullable=False)
    release_condition = Column(String, nullable=False)
    release_at = Column(Float, nullable=True)
    status = Column(String, nullable=False, index=True)
    download_token = Column(String, nullable=True, unique=True)
    released_at = Column(Float, nullable=True)
    notified_at = Column(Float, nullable=True)
    cancelled_at = Column(Float, nullable=True)
    revoked_at = Column(Float, nullable=True)
    archive_path = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)


class AuditRow(Base):
    __tablename__ = "audits"

    audit_id = Column(String, primary_key=True)
    actor_id = Column(String, nullable=True)
    action = Column(String, nullable=False)
    target_type = Column(String, nullable=False)
    target_id = Column(String, nullable=False, index=True)
    details = Column("metadata", JSON, nullable=False)
    created_at = Column(Float, nullable=False)


class EventRow(Base):
    __tablename__ = "analytics_events"

    event_id = Column(String, primary_key=True)
    event_type = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=True)
    details = Column("metadata", JSON, nullable=False)
    created_at = Column(Float, nullable=False)


def _to_user_record(row: UserRow) -> UserRecord:
    return UserRecord(
        user_id=row.user_id,
        email=row.email,
        name=row.name,
        is_admin=bool(row.is_admin),
        created_at=row.created_at,
    )


def _branch_row(branch: BranchRecord) -> BranchRow:
    return BranchRow(
        branch_id=branch.branch_id,
        owner_id=branch.owner_id,
        title=branch.title,
        description=branch.description,
        status=branch.status.value,
        archived=branch.archived,
        archived_at=branch.archived_at,
        archived_by=branch.archived_by,
        person_status=branch.person_status.value,
        birth_date=branch.birth_date,
        death_date=branch.death_date,
        legacy_entered_at=branch.legacy_entered_at,
        legacy_marked_by=branch.legacy_marked_by,
        legacy_proof_url=branch.legacy_proof_url,
        deleted_at=branch.deleted_at,
        created_at=branch.created_at,
        updated_at=branch.updated_at,
    )


def _to_branch_record(row: BranchRow) -> BranchRecord:
    return BranchRecord(
        branch_id=row.branch_id,
        owner_id=row.owner_id,
        title=row.title,
        description=row.description,
        status=BranchStatus(row.status),
        archived=bool(row.archived),
        archived_at=row.archived_at,
        archived_by=row.archived_by,
        person_status=PersonStatus(row.person_status),
        birth_date=row.birth_date,
        death_date=row.death_date,
        legacy_entered_at=row.legacy_entered_at,
        legacy_marked_by=row.legacy_marked_by,
        legacy_proof_url=row.legacy_proof_url,
        deleted_at=row.deleted_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _entry_row(entry: EntryRecord) -> EntryRow:
    return EntryRow(
        entry_id=entry.entry_id,
        branch_id=entry.branch_id,
        author_id=entry.author_id,
        text=entry.text,
        media_url=entry.media_url,
        audio_url=entry.audio_url,
        video_url=entry.video_url,
        content_hash=entry.content_hash,
        status=entry.status.value,
        withdrawn_at=entry.withdrawn_at,
        deleted_at=entry.deleted_at,
        created_at=entry.created_at,
        updated_at=entry.updated_at,
    )


def _to_entry_record(row: EntryRow) -> EntryRecord:
    return EntryRecord(
        entry_id=row.entry_id,
        branch_id=row.branch_id,
        author_id=row.author_id,
        text=row.text,
        media_url=row.media_url,
        audio_url=row.audio_url,
        video_url=row.video_url,
        content_hash=row.content_hash,
        status=EntryStatus(row.status),
        withdrawn_at=row.withdrawn_at,
        deleted_at=row.deleted_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _heir_row(heir: HeirRecord) -> HeirRow:
    return HeirRow(
        heir_id=heir.heir_id,
        branch_id=heir.branch_id,
        heir_email=heir.heir_email,
        release_condition=heir.release_condition.value,
        release_at=_to_epoch(heir.release_date),
        status=heir.status.value,
        download_token=heir.download_token,
        released_at=heir.released_at,
        notified_at=heir.notified_at,
        cancelled_at=heir.cancelled_at,
        revoked_at=heir.revoked_at,
        archive_path=heir.archive_path,
        created_at=heir.created_at,
    )


def _to_heir_record(row: HeirRow) -> HeirRecord:
    return HeirRecord(
        heir_id=row.heir_id,
        branch_id=row.branch_id,
        heir_email=row.heir_email,
        release_condition=ReleaseCondition(row.release_condition),
        release_date=_from_epoch(row.release_at),
        status=HeirStatus(row.status),
        download_token=row.download_token,
        released_at=row.released_at,
        notified_at=row.notified_at,
        cancelled_at=row.cancelled_at,
        revoked_at=row.revoked_at,
        archive_path=row.archive_path,
        created_at=row.created_at,
    )
