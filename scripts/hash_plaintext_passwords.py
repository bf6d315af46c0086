#!/usr/bin/env python3
"""
Replace verbatim passwords in the users table with salted hashes.

Rows whose password is already a recognized hash are left alone, so the
script can be re-run safely.
"""
import asyncio

from services.portal_api.database import Database
from services.shared.security import hash_password, is_hashed


async def hash_existing_passwords() -> int:
    db = Database()
    await db.initialize()
    migrated = 0
    try:
        for user in await db.find("users"):
            if user.get("password") and not is_hashed(user["password"]):
                await db.update(
                    "users",
                    {"password": hash_password(user["password"])},
                    {"id": user["id"]}
                )
                migrated += 1
                print(f"Hashed password for user {user.get('voter_id')}")
    finally:
        await db.close()
    return migrated


if __name__ == '__main__':
    count = asyncio.run(hash_existing_passwords())
    print(f"✅ {count} password(s) migrated")
