"""
Status and condition enums shared across the backend.
"""

from __future__ import annotations

from enum import Enum


class EntryStatus(Enum):
    ACTIVE = "ACTIVE"
    WITHDRAWN = "WITHDRAWN"
    DELETED = "DELETED"


class BranchStatus(Enum):
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"
    DELETED = "DELETED"


class PersonStatus(Enum):
    LIVING = "LIVING"
    LEGACY = "LEGACY"


class HeirStatus(Enum):
    PENDING = "PENDING"
    RELEASED = "RELEASED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class ReleaseCondition(Enum):
    AFTER_DATE = "AFTER_DATE"
    AFTER_DEATH = "AFTER_DEATH"
    MANUAL = "MANUAL"

    @classmethod
    def parse(cls, value: str) -> "ReleaseCondition":
        """Accept canonical names as well as the short forms clients send."""
        key = (value or "").strip().upper().replace("-", "_")
        key = _CONDITION_ALIASES.get(key, key)
        return cls(key)


_CONDITION_ALIASES = {
    "DATE": "AFTER_DATE",
    "ON_DATE": "AFTER_DATE",
    "LEGACY": "AFTER_DEATH",
    "WHEN_LEGACY": "AFTER_DEATH",
    "DEATH": "AFTER_DEATH",
}
