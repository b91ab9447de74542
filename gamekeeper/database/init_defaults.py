#!/usr/bin/env python3
"""
Initialize default database values.
This script is run on startup to populate the default game catalog.
"""

import asyncio
from gamekeeper.database import db
from gamekeeper.services import game_service


async def init_defaults():
    """Initialize default database values."""
    print("Initializing default database values...")

    async with db.AsyncSessionLocal() as session:
        created = await game_service.ensure_games(session)
        if created:
            print(f"✓ Added {created} default game(s)")
        else:
            print("✓ Default games already exist")

        await session.commit()

    print("✓ Default values initialized")


if __name__ == "__main__":
    asyncio.run(init_defaults())
