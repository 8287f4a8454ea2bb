#!/usr/bin/env python3
"""Reset the relay database: drop every table and create it again."""
import asyncio
import sys
from pathlib import Path

# Add repo root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from relay.db import init_db

async def reset():
    print("Dropping and recreating all tables...")
    await init_db(drop=True)
    print('✓ Database reset complete!')

if __name__ == '__main__':
    asyncio.run(reset())
