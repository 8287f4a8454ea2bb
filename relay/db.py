import os
import pathlib
from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool

load_dotenv()

# sqlite next to the repo by default; any async SQLAlchemy URL works
DB_PATH = pathlib.Path(__file__).parent.parent / "relay.db"
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite+aiosqlite:///{DB_PATH}")

# sqlite connections are cheap and must not outlive the event loop that opened them
_engine_kwargs = {"poolclass": NullPool} if DATABASE_URL.startswith("sqlite") else {}
engine = create_async_engine(DATABASE_URL, echo=False, future=True, **_engine_kwargs)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

# makes sure every request gets its own session
async def get_session() -> AsyncSession:
    async with SessionLocal() as session:
        yield session

async def init_db(drop: bool = False) -> None:
    from .models import Base

    async with engine.begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
