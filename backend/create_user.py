#!/usr/bin/env python3
"""
Create a directory user that can later recover their password by OTP.

Usage:
    python create_user.py --username admin --password admin123 --role admin
    python create_user.py --username john --password john123 --email john@example.com --full-name "John Doe"

The tables are created first if they do not exist.
"""

import argparse
import asyncio
import logging
import sys
from pydantic import ValidationError
from db.base import initialize_database
from db.session import engine
from schemas.user_schema import UserCreate
from services.user_directory import create_user

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("create_user")

ROLES = ("admin", "employee")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Create a user in the directory")
    parser.add_argument("--username", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--role", choices=ROLES, default="employee")
    parser.add_argument("--email", help="Address recovery codes are sent to")
    parser.add_argument("--full-name", dest="full_name")
    return parser.parse_args(argv)


async def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        user_in = UserCreate(
            username=args.username,
            password=args.password,
            role=args.role,
            email=args.email,
            full_name=args.full_name,
        )
    except ValidationError as e:
        logger.error(f"Invalid user data: {e}")
        return 1

    await initialize_database()
    try:
        identity = await create_user(user_in)
    except ValueError as e:
        logger.error(str(e))
        return 1
    finally:
        await engine.dispose()

    logger.info(f"User created: id={identity.user_id} username={identity.username}")
    if not identity.delivery_address:
        logger.warning("No email given; this user cannot receive password recovery codes")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
