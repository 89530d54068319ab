"""
Session resolution.

Every authenticated request carries ``Authorization: Bearer <token>``. FastAPI's
``HTTPBearer`` extracts the token; it is looked up once at request entry and
turned into a ``SessionContext`` that is passed explicitly into service
functions.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

from grove.db import DbClient
from grove.errors import UnauthorizedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionContext:
    user_id: str
    email: str
    is_admin: bool = False
    name: Optional[str] = None


def resolve_session(
    db: DbClient, token: str | None, now: float | None = None
) -> SessionContext:
    if not token:
        raise UnauthorizedError()

    session = db.get_session(token)
    if not session or session.is_expired(now if now is not None else time.time()):
        raise UnauthorizedError("Session expired or invalid")

    user = db.get_user(session.user_id)
    if not user:
        logger.warning("Session %s points at missing user %s", token[:6], session.user_id)
        raise UnauthorizedError()

    return SessionContext(
        user_id=user.user_id,
        email=user.email,
        is_admin=user.is_admin,
        name=user.name,
    )
