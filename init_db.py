import asyncio
from relay.db import init_db

if __name__ == "__main__":
    asyncio.run(init_db())
    print("✅ Database tables created successfully!")
