"""
Fire-and-forget analytics events.

Telemetry must never break a request, so every failure here is logged and
dropped.
"""

from __future__ import annotations

import logging
from typing import Optional

from grove.db import DbClient, EventRecord

logger = logging.getLogger(__name__)


def track_event(
    db: DbClient,
    event_type: str,
    user_id: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> None:
    try:
        db.record_event(
            EventRecord(event_type=event_type, user_id=user_id, metadata=metadata or {})
        )
    except Exception:
        logger.warning("Failed to record analytics event %s", event_type, exc_info=True)
