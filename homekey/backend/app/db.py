from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import settings
from .models import Base

engine: AsyncEngine = create_async_engine(settings.HOMEKEY_DB_URL, echo=False, future=True)

# Canonical async session factory
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def make_engine(url: str) -> AsyncEngine:
    """
    Engine for an explicit URL (CLI --db override, scripts).
    """
    return create_async_engine(url, echo=False, future=True)


def make_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


async def init_models(bind: AsyncEngine | None = None) -> None:
    """
    Create all tables (idempotent).
    """
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

