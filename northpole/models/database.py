"""
Async SQLAlchemy engine, session factory, and base model.
"""

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    pass


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    engine_kwargs = {"echo": echo}

    if "sqlite" in database_url:
        # SQLite doesn't support pool_size/max_overflow; an in-memory
        # database only lives as long as its single connection
        if ":memory:" in database_url or database_url.endswith("://"):
            engine_kwargs.update({
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            })
    else:
        engine_kwargs.update({"pool_size": 20, "max_overflow": 10, "pool_pre_ping": True})

    return create_async_engine(database_url, **engine_kwargs)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def get_db(request: Request) -> AsyncSession:
    """FastAPI dependency that yields an async DB session."""
    async with request.app.state.sessionmaker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(engine: AsyncEngine):
    """Create all tables (for development convenience)."""
    async with engine.begin() as conn:
        from northpole.models.entities import User, ChatMessage, WishlistItem  # noqa
        await conn.run_sync(Base.metadata.create_all)
