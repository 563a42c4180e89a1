"""
POPSTATS - Database
Async database handle with explicit lifecycle and session management
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from popstats.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Base class for SQLAlchemy models
Base = declarative_base()


class DatabaseManager:
    """
    Database handle shared by every store operation of one process run.

    Open it once at process start and release it at the end, either with
    ``initialize()``/``close()`` or as an async context manager::

        async with DatabaseManager(settings.get_database_url()) as db:
            store = PopulationStore(db)
    """

    def __init__(self, url: Optional[str] = None, settings: Optional[Settings] = None):
        self._settings = settings or get_settings()
        self.url = url or self._settings.get_database_url()
        if self.url.startswith("postgresql://"):
            self.url = self.url.replace("postgresql://", "postgresql+asyncpg://", 1)
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None

    async def __aenter__(self) -> "DatabaseManager":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def backend(self) -> str:
        """Dialect name without the driver, e.g. ``postgresql``."""
        return self.url.split(":", 1)[0].split("+", 1)[0]

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("DatabaseManager is not initialized")
        return self._engine

    async def initialize(self) -> None:
        """Initialize database engine and session factory"""
        if self._engine is not None:
            return

        logger.info(f"Connecting to {self.backend} database...")

        engine_kwargs: Dict[str, Any] = {"echo": self._settings.DATABASE_ECHO}
        if not self.is_sqlite:
            engine_kwargs.update(
                pool_size=self._settings.DATABASE_POOL_SIZE,
                max_overflow=self._settings.DATABASE_MAX_OVERFLOW,
                pool_timeout=self._settings.DATABASE_POOL_TIMEOUT,
                pool_pre_ping=True,
            )

        self._engine = create_async_engine(self.url, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def close(self) -> None:
        """Dispose of the connection pool"""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.debug("Database connection pool closed")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get async database session, committed on success and rolled back on error"""
        if not self._session_factory:
            await self.initialize()

        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception as e:
                await session.rollback()
                logger.error(f"Database session error: {e}")
                raise

    async def health_check(self) -> Dict[str, Any]:
        """Round-trip a trivial query and report the backend and latency"""
        loop = asyncio.get_running_loop()
        start = loop.time()
        try:
            await self.initialize()
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Database health check failed: {e}")
            return {"status": "unhealthy", "backend": self.backend, "error": str(e)}

        return {
            "status": "healthy",
            "backend": self.backend,
            "latency_ms": round((loop.time() - start) * 1000, 2),
        }
