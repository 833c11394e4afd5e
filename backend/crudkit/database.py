"""
crudkit Backend — Database Session Management
==============================================

What:  Async SQLAlchemy engine, session factory and the declarative Base.
Why:   Centralizes all database connection logic in one place.
How:   A Database object owns the engine and the session factory. It is
       constructed once in the application lifespan, stored on app.state
       and disposed on shutdown; stores receive it explicitly.
Who:   Used by the SQLAlchemy-backed stores and the health check.

Connection Pooling Strategy:
    pool_size=20:     Persistent connections for normal load
    max_overflow=10:  Temporary connections for traffic spikes (total max = 30)
    pool_pre_ping:    Validates connections before use (catches stale connections)
    pool_recycle=3600: Recycles connections every hour

    SQLite (tests, local runs) uses a single shared StaticPool connection
    instead, since pool sizing options do not apply to it.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from crudkit.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Registers every model with one metadata object (used by Alembic and by
    create_all() in tests).
    """
    pass


def build_engine(config: Settings) -> AsyncEngine:
    """Create the async engine with pool options suited to the database URL."""
    if config.is_sqlite:
        return create_async_engine(
            config.database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=config.log_level == "DEBUG",
        )

    return create_async_engine(
        config.database_url,
        pool_size=config.db_pool_size,
        max_overflow=config.db_max_overflow,
        pool_pre_ping=config.db_pool_pre_ping,
        pool_recycle=3600,
        echo=config.log_level == "DEBUG",
    )


class Database:
    """
    Owns the engine and hands out sessions.

    expire_on_commit=False: attributes stay readable after commit, which the
    controllers rely on when shaping the record they just persisted.
    """

    def __init__(self, config: Optional[Settings] = None, engine: Optional[AsyncEngine] = None):
        self.config = config or default_settings
        self.engine = engine or build_engine(self.config)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Provide a transactional session scope.

        How it works:
            1. Creates a new session from the factory
            2. Yields it to the caller (the store performs queries)
            3. On success: commits the transaction
            4. On error: rolls back and re-raises
            5. Always: closes the session (returns connection to pool)
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def create_all(self) -> None:
        """Create all tables. Used for SQLite runs and tests; Postgres uses Alembic."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """
        What:  Gracefully closes all connections in the pool.
        When:  Called during application shutdown (lifespan handler).
        """
        await self.engine.dispose()
        logger.info("Database engine disposed")
