#!/usr/bin/env python3
"""
Create the portal schema and seed demo accounts and candidates.

Demo credentials:
    Admin: ADMIN / admin123
    Voter: V001 / voter123 (plus V002..V00N with the same password)

Usage:
    python scripts/seed_portal.py [voter_count]
"""
import asyncio
import sys

from services.portal_api.database import Database, DuplicateRecordError
from services.shared.security import hash_password

SAMPLE_CANDIDATES = [
    ("Alice Martin", "Progressive Students", "Library hours and study spaces"),
    ("Bruno Okafor", "Campus Forward", "Transit passes and housing"),
    ("Chen Wei", "Independent", "Transparent club funding"),
]


def build_users(voter_count: int):
    """Admin account plus voter_count voter accounts with hashed passwords."""
    users = [{
        "voter_id": "ADMIN",
        "password": hash_password("admin123"),
        "full_name": "Election Administrator",
        "role": "admin",
    }]
    voter_hash = hash_password("voter123")
    for i in range(1, voter_count + 1):
        users.append({
            "voter_id": f"V{i:03d}",
            "password": voter_hash,
            "full_name": f"Voter {i:03d}",
            "role": "voter",
        })
    return users


async def seed(voter_count: int):
    db = Database()
    await db.initialize()
    try:
        await db.apply_schema()

        created = 0
        for user in build_users(voter_count):
            try:
                await db.insert("users", [user])
                created += 1
            except DuplicateRecordError:
                print(f"  User {user['voter_id']} already exists, skipped")
        print(f"✅ Created {created} users")

        if await db.count("candidates") == 0:
            await db.insert("candidates", [
                {"name": name, "party": party, "description": description, "vote_count": 0}
                for name, party, description in SAMPLE_CANDIDATES
            ])
            print(f"✅ Created {len(SAMPLE_CANDIDATES)} candidates")
        else:
            print("  Candidates already present, skipped")
    finally:
        await db.close()


if __name__ == '__main__':
    count = int(sys.argv[1]) if len(sys.argv) > 1 else 5

    print("=" * 60)
    print(f"SEEDING VOTING PORTAL WITH 1 ADMIN AND {count} VOTERS")
    print("=" * 60)

    asyncio.run(seed(count))
