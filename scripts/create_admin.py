#!/usr/bin/env python3
"""
Create (or reset) an admin user.

The API only lets admins create users, so the first admin has to come from
here. Running it again for an existing username resets that user's password,
re-activates it and promotes it to admin.

Usage:
python scripts/create_admin.py --username admin --email admin@example.com --password <secret>
"""

import argparse
import asyncio
import logging
import sys

from services.collect.auth import hash_password
from shared.config import Settings
from shared.database import init_db
from shared.uuid_utils import generate_uuid7

logger = logging.getLogger("create_admin")


async def create_admin(settings: Settings, username: str, email: str, password: str) -> dict:
    db = await init_db(settings)
    try:
        return await db.fetch_one(
            """
            INSERT INTO users (id, username, email, password_hash, role, is_active)
            VALUES ($1, $2, $3, $4, 'admin', TRUE)
            ON CONFLICT (username) DO UPDATE SET
                email = EXCLUDED.email,
                password_hash = EXCLUDED.password_hash,
                role = 'admin',
                is_active = TRUE,
                updated_at = CURRENT_TIMESTAMP
            RETURNING id, username, email, role
            """,
            str(generate_uuid7()),
            username,
            email,
            hash_password(password),
        )
    finally:
        await db.close()


def main():
    parser = argparse.ArgumentParser(description="Create or reset a coinCollect admin user")
    parser.add_argument("--username", required=True, help="Login name")
    parser.add_argument("--email", required=True, help="Email address")
    parser.add_argument("--password", required=True, help="Password (min 6 characters)")

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    if len(args.password) < 6:
        logger.error("Password must be at least 6 characters")
        sys.exit(1)

    try:
        user = asyncio.run(create_admin(Settings.from_env(), args.username, args.email, args.password))
    except Exception as e:
        logger.error(f"Could not create admin: {e}")
        sys.exit(1)

    logger.info(f"Admin ready: {user['username']} <{user['email']}> id={user['id']}")


if __name__ == "__main__":
    main()
