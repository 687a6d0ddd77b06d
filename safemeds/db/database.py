from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool, StaticPool
from safemeds.core.config import settings

Base = declarative_base()


def normalize_database_url(url: str) -> str:
    # Fix scheme if needed
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    return url


def make_engine(url: str, echo: bool = False):
    url = normalize_database_url(url)
    kwargs = {"future": True, "echo": echo}
    if url.startswith("sqlite"):
        # aiosqlite connections must not outlive the event loop that opened them
        kwargs["poolclass"] = StaticPool if ":memory:" in url else NullPool
    return create_async_engine(url, **kwargs)


def make_sessionmaker(bind) -> async_sessionmaker:
    return async_sessionmaker(bind=bind, class_=AsyncSession, expire_on_commit=False)


engine = make_engine(settings.database_url, echo=settings.database_echo)

AsyncSessionLocal = make_sessionmaker(engine)


async def init_db(bind=None):
    from safemeds.db import models  # noqa: F401  registers tables on Base

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
