"""Engine, session factory and the declarative base for the chat schema."""

import os
from typing import Any, AsyncGenerator, Dict

from dotenv import load_dotenv
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

load_dotenv()


class Base(DeclarativeBase):
    """Declarative base shared by every chat table."""


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create the async engine for a database URL.

    PostgreSQL connections are health-checked before checkout since request
    workers hold them only for the span of one request.
    """
    engine_kwargs: Dict[str, Any] = {"echo": echo}
    if database_url.startswith("postgresql"):
        engine_kwargs["pool_pre_ping"] = True
    return create_async_engine(database_url, **engine_kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is required")

engine = build_engine(
    DATABASE_URL, echo=os.getenv("SQL_DEBUG", "false").lower() == "true"
)
AsyncSessionLocal = build_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield one session per request; the session owns a single transaction."""
    async with AsyncSessionLocal() as session:
        yield session


async def ping(session: AsyncSession) -> bool:
    result = await session.execute(text("SELECT 1"))
    return result.scalar() == 1


async def close_db() -> None:
    """Dispose pooled connections on shutdown."""
    await engine.dispose()
