"""Database engine and session management."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine


def create_engine(database_url: str) -> AsyncEngine:
    """Build the async engine, creating the SQLite directory when needed."""

    if database_url.startswith("sqlite"):
        database = make_url(database_url).database or ""
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)
    return create_async_engine(database_url, echo=False, future=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def init_db(engine: AsyncEngine) -> None:
    """Create database tables if they do not exist."""

    from nalevel.db import models  # noqa: WPS433

    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)
