"""Async database engine and session management"""

from typing import AsyncGenerator, Tuple

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from app.config import settings

engine = create_async_engine(settings.database_url, echo=False, pool_pre_ping=True)

SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for a single request"""
    async with SessionLocal() as session:
        yield session


def get_session_factory() -> async_sessionmaker:
    """Session factory for long-lived handlers that open one session per unit of work"""
    return SessionLocal


async def create_all() -> None:
    """Create tables that do not exist yet"""
    # models must be imported so their tables are registered on Base.metadata
    import app.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def create_worker_session_factory() -> Tuple[AsyncEngine, async_sessionmaker]:
    """Unpooled engine and sessions for one worker task, which runs on a fresh event loop.

    The caller disposes the engine when the task is done.
    """
    worker_engine = create_async_engine(settings.database_url, poolclass=NullPool)
    return worker_engine, async_sessionmaker(worker_engine, class_=AsyncSession, expire_on_commit=False)
