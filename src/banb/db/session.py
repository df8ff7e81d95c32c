from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def create_engine_from_url(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Build the async engine. In-memory SQLite needs a single shared connection
    so every session sees the same database.
    """
    if not database_url:
        raise RuntimeError("DATABASE_URL not set in .env")
    kwargs = {"echo": echo, "future": True}
    if database_url.startswith("sqlite") and (":memory:" in database_url or database_url.endswith("://")):
        kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}
    return create_async_engine(database_url, **kwargs)


def build_session_factory(engine: AsyncEngine):
    # Async session factory
    return sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False, autocommit=False
    )


async def create_schema(engine: AsyncEngine) -> None:
    from banb.db import models  # noqa: F401  registers tables on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
