"""
Queue of heir notices.

A notice tells the worker to email an heir that their archive was released,
or that a released archive was revoked. Notices travel as small JSON
documents ``{"heirId", "kind", "attempts"}`` so a failed delivery can be
requeued with its attempt count. Redis backs the queue in production; an
in-memory list is used for tests and local runs.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)

NOTICE_RELEASED = "RELEASED"
NOTICE_REVOKED = "REVOKED"
NOTICE_KINDS = (NOTICE_RELEASED, NOTICE_REVOKED)


@dataclass(frozen=True)
class HeirNotice:
    heir_id: str
    kind: str = NOTICE_RELEASED
    attempts: int = 0

    def retried(self) -> "HeirNotice":
        return HeirNotice(heir_id=self.heir_id, kind=self.kind, attempts=self.attempts + 1)

    def to_json(self) -> str:
        return json.dumps(
            {"heirId": self.heir_id, "kind": self.kind, "attempts": self.attempts}
        )

    @classmethod
    def from_json(cls, raw: str | bytes) -> "HeirNotice":
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"Malformed heir notice: {data!r}")
        kind = data.get("kind", NOTICE_RELEASED)
        if kind not in NOTICE_KINDS or not data.get("heirId"):
            raise ValueError(f"Malformed heir notice: {data!r}")
        return cls(heir_id=data["heirId"], kind=kind, attempts=int(data.get("attempts", 0)))


class JobQueue(Protocol):
    """Minimal queue interface for dispatching heir notices to workers."""

    def enqueue(self, notice: HeirNotice) -> None:
        ...

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[HeirNotice]:
        ...


@dataclass
class InMemoryJobQueue:
    """Simple FIFO queue for testing/dev."""

    items: list[HeirNotice] = field(default_factory=list)

    def enqueue(self, notice: HeirNotice) -> None:
        self.items.append(notice)

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[HeirNotice]:
        if not self.items:
            return None
        return self.items.pop(0)


@dataclass
class RedisJobQueue:
    """Redis list of JSON-encoded notices."""

    url: str
    queue_key: str = "grove:release-notices"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def enqueue(self, notice: HeirNotice) -> None:
        self.client.rpush(self.queue_key, notice.to_json())

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[HeirNotice]:
        try:
            if block:
                result = self.client.blpop(self.queue_key, timeout=timeout or 0)
                if result is None:
                    return None
                _, raw = result
            else:
                raw = self.client.lpop(self.queue_key)
                if raw is None:
                    return None
        except redis_exceptions.ConnectionError:
            # Managed Redis drops idle connections; reconnect and let the
            # worker loop poll again.
            self.client = redis.Redis.from_url(self.url)
            return None

        try:
            return HeirNotice.from_json(raw)
        except ValueError:
            # Covers JSON decode errors too; a bad payload is dropped, not retried.
            logger.warning("Dropping malformed notice from %s: %r", self.queue_key, raw)
            return None
