"""
User administration commands.

``create-user`` creates (or updates) an account and prints its credentials and
an access token; ``set-admin`` grants or revokes the admin claim. Both use the
same auth helpers as the running API so hashes and tokens stay consistent.

Environment fallbacks: ``ADMIN_EMAIL`` and ``ADMIN_PASSWORD``.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import secrets
import sys
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from . import auth

logger = logging.getLogger("findspot.admin")


async def _create_user(email: str, password: str, is_admin: bool) -> None:
    from .database import async_session_factory, init_db

    await init_db()
    async with async_session_factory() as session:
        user = await auth.create_user(session, email=email, password=password, is_admin=is_admin)
        token = auth.create_token_for_user(user)

    print("USER_CREATED")
    print(f"id: {user.id}")
    print(f"email: {user.email}")
    print(f"admin: {str(user.is_admin).lower()}")
    print(f"password: {password}")
    print(f"access_token: {token}")


async def _set_admin(email: str, is_admin: bool) -> bool:
    from .database import async_session_factory, init_db

    await init_db()
    async with async_session_factory() as session:
        user = await auth.set_admin(session, email, is_admin=is_admin)
    if user is None:
        logger.error("No user with email %s", email)
        return False
    logger.info("Admin claim for %s set to %s", user.email, user.is_admin)
    return True


def main_create_user(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Create or update a user account")
    parser.add_argument("--email", default=os.environ.get("ADMIN_EMAIL"))
    parser.add_argument("--password", default=os.environ.get("ADMIN_PASSWORD"))
    parser.add_argument("--admin", action="store_true", help="Grant the admin claim")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    email = args.email or f"admin-{secrets.token_hex(4)}@example.test"
    password = args.password or secrets.token_urlsafe(12)
    try:
        asyncio.run(_create_user(email, password, args.admin))
    except (SQLAlchemyError, RuntimeError) as exc:
        print(f"Failed to create user: {exc}", file=sys.stderr)
        return 2
    return 0


def main_set_admin(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Grant or revoke the admin claim for a user")
    parser.add_argument("--email", required=True)
    parser.add_argument("--revoke", action="store_true", help="Remove the admin claim instead")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    try:
        found = asyncio.run(_set_admin(args.email, not args.revoke))
    except SQLAlchemyError as exc:
        logger.error("Failed to update user: %s", exc)
        return 2
    return 0 if found else 1
