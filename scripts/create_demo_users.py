#!/usr/bin/env python3
"""
Create demo users for testing the E2EE messaging app.
Creates 4 users: alice, bob, charlie, david, each with a key pair in the local
keystore (E2EE_KEYSTORE_PATH) and the public half published on the relay.
Everybody is added as everybody's contact.
"""

import asyncio
import sys
from pathlib import Path

# Add repo root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from e2ee import IdentitySession, Settings, JsonKeyStore
from relay.db import SessionLocal, init_db
from relay.crud import add_contact, create_user, get_contact, get_user_by_email

DEMO_USERS = [
    {"name": "Alice Johnson", "email": "alice@example.com", "bio": "Coffee lover ☕"},
    {"name": "Bob Smith", "email": "bob@example.com", "bio": "Tech enthusiast 💻"},
    {"name": "Charlie Brown", "email": "charlie@example.com", "bio": None},
    {"name": "David Lee", "email": "david@example.com", "bio": None},
]

async def create_demo_users():
    """Create demo users in the database."""
    print("Initializing database...")
    await init_db()

    settings = Settings.from_env()
    keystore = JsonKeyStore(settings.keystore_path)
    print(f"Keystore: {settings.keystore_path}")

    print("\nCreating demo users...")
    created = []
    async with SessionLocal() as db:
        for user_data in DEMO_USERS:
            # the identity's key pair is reused if it already exists
            identity = await IdentitySession.login(user_data["email"], keystore, settings)

            user = await get_user_by_email(db, user_data["email"])
            if user:
                print(f"✗ User {user_data['email']} already exists")
            else:
                user = await create_user(
                    db,
                    name=user_data["name"],
                    email=user_data["email"],
                    bio=user_data["bio"],
                    public_key=identity.public_key,
                )
                print(f"✓ Created user: {user_data['email']}")
            created.append(user)

        for user in created:
            for other in created:
                if other.id != user.id:
                    if not await get_contact(db, user.id, other.id):
                        await add_contact(db, user.id, other.id)
        await db.commit()

    print("\n" + "="*50)
    print("Demo users created successfully!")
    print("="*50)
    print("\nYou can now log in (POST /auth/login) with:")
    for user_data in DEMO_USERS:
        print(f"  {user_data['email']}")
    print()

if __name__ == "__main__":
    asyncio.run(create_demo_users())
