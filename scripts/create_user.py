"""
Create a user (or reuse an existing one) and print a fresh session token.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from grove.config import get_settings
from grove.dependencies import get_db_client

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a user and session token")
    parser.add_argument("email", help="Email address of the user")
    parser.add_argument("--name", default=None, help="Display name")
    parser.add_argument(
        "--admin",
        action="store_true",
        help="Grant admin rights (only applies to new users)",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    settings = get_settings()
    db = get_db_client()

    user = db.get_user_by_email(args.email)
    if user:
        logger.info("Reusing existing user %s", user.user_id)
    else:
        user = db.create_user(args.email, name=args.name, is_admin=args.admin)
        logger.info("Created user %s", user.user_id)

    session = db.create_session(user.user_id, settings.session_ttl_hours * 3600)
    print(session.token)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
