"""
Database Infrastructure
=======================

Process-wide async engine and session maker for the SLA tables.

Uses SQLAlchemy 2.0 with asyncpg for async PostgreSQL operations; any
async driver URL works (tests run on aiosqlite).
"""

from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from ticket_sla.config import settings


class Base(DeclarativeBase):
    """Declarative base shared by every SLA table."""


# Set by init_database(), cleared by close_database()
_engine: Optional[AsyncEngine] = None
_session_maker: Optional[async_sessionmaker[AsyncSession]] = None


def get_engine() -> AsyncEngine:
    if _engine is None:
        raise RuntimeError("init_database() has not been called")
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    if _session_maker is None:
        raise RuntimeError("init_database() has not been called")
    return _session_maker


def init_database(database_url: Optional[str] = None) -> AsyncEngine:
    """
    Build the engine for database_url (default: settings.database_url).

    Pool sizing applies to server databases only; SQLite uses its own pool.
    """
    global _engine, _session_maker

    # asyncpg expects ssl= rather than libpq's sslmode=
    url = (database_url or settings.database_url).replace("sslmode=", "ssl=")

    engine_kwargs = {"echo": settings.debug, "pool_pre_ping": True}
    if not url.startswith("sqlite"):
        engine_kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
        )

    _engine = create_async_engine(url, **engine_kwargs)
    _session_maker = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return _engine


async def close_database() -> None:
    """Dispose of pooled connections; safe to call twice."""
    global _engine, _session_maker

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_maker = None


async def create_tables(engine: Optional[AsyncEngine] = None) -> None:
    """
    Create the SLA tables that do not exist yet.

    Used at startup in development and by the test fixtures.
    """
    # Register the models on Base.metadata
    import ticket_sla.sla.infrastructure.models  # noqa: F401

    async with (engine or get_engine()).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
