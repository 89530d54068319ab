"""
Worker loop that delivers heir notices.

The release itself happens in the sweep or an explicit release; this loop
only tells the heir where to find their download, or that a released archive
was revoked, and stamps ``notified_at`` on release notices. Delivery is a log
line until an email provider is wired in. A failed send is requeued until
``MAX_ATTEMPTS`` is reached.
"""

from __future__ import annotations

import logging
import time
from typing import Optional, Protocol

from grove.db import DbClient, HeirRecord
from grove.dependencies import get_db_client, get_queue_client
from grove.queue import NOTICE_REVOKED, HeirNotice, JobQueue
from grove.types import HeirStatus

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 5


class Notifier(Protocol):
    def send_release_notice(self, heir: HeirRecord) -> None:
        ...

    def send_revocation_notice(self, heir: HeirRecord) -> None:
        ...


class LoggingNotifier:
    """Notifier that records the notice in the log instead of sending email."""

    def send_release_notice(self, heir: HeirRecord) -> None:
        logger.info(
            "Release notice for heir %s <%s> on branch %s",
            heir.heir_id,
            heir.heir_email,
            heir.branch_id,
        )

    def send_revocation_notice(self, heir: HeirRecord) -> None:
        logger.info(
            "Revocation notice for heir %s <%s> on branch %s",
            heir.heir_id,
            heir.heir_email,
            heir.branch_id,
        )


def deliver_notice(
    notice: HeirNotice, db: DbClient, notifier: Notifier, now: float | None = None
) -> bool:
    """Send one notice. Returns False when the heir is no longer deliverable."""
    heir = db.get_heir(notice.heir_id)
    if not heir:
        logger.warning("[%s] Heir not found, dropping notice", notice.heir_id)
        return False
    if heir.status != HeirStatus.RELEASED:
        logger.info("[%s] Heir is not deliverable (%s)", heir.heir_id, heir.status.name)
        return False

    if notice.kind == NOTICE_REVOKED:
        if heir.revoked_at is None:
            return False
        notifier.send_revocation_notice(heir)
        return True

    if heir.revoked_at is not None or heir.notified_at is not None:
        return False
    notifier.send_release_notice(heir)
    heir.notified_at = now if now is not None else time.time()
    db.save_heir(heir)
    return True


def process_next(
    *,
    db: DbClient,
    queue: JobQueue,
    notifier: Optional[Notifier] = None,
    block: bool = True,
    timeout: int | None = None,
) -> bool:
    """
    Pop one notice and deliver it. Returns False when the queue is empty.
    """
    notice = queue.dequeue(block=block, timeout=timeout)
    if notice is None:
        return False
    try:
        deliver_notice(notice, db, notifier or LoggingNotifier())
    except Exception:
        if notice.attempts + 1 >= MAX_ATTEMPTS:
            logger.exception(
                "[%s] Giving up on %s notice after %d attempts",
                notice.heir_id,
                notice.kind,
                notice.attempts + 1,
            )
        else:
            logger.warning(
                "[%s] %s notice failed, requeueing", notice.heir_id, notice.kind, exc_info=True
            )
            queue.enqueue(notice.retried())
    return True


def run_loop(poll_interval_seconds: float = 2.0) -> None:
    """
    Simple polling loop that blocks on the queue. Intended to be run under systemd/supervisor.
    """
    db = get_db_client()
    queue = get_queue_client()
    notifier = LoggingNotifier()
    while True:
        try:
            processed = process_next(
                db=db,
                queue=queue,
                notifier=notifier,
                block=True,
                timeout=int(poll_interval_seconds),
            )
        except Exception:
            logger.exception("Failed to read the notice queue")
            processed = False
        if not processed:
            time.sleep(poll_interval_seconds)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_loop()
