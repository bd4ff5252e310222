"""Database engine and session management."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from melodia.config import Settings

logger = logging.getLogger(__name__)


class Database:
    """Async engine plus a session factory bound to it."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        url = settings.database.url

        engine_kwargs: dict[str, Any] = {
            "echo": settings.database.echo,
            "pool_pre_ping": settings.database.pool_pre_ping,
        }
        # Pool sizing only means something for server databases.
        if url.startswith("postgresql"):
            engine_kwargs.update(
                {
                    "pool_size": settings.database.pool_size,
                    "max_overflow": settings.database.max_overflow,
                    "pool_timeout": settings.database.pool_timeout,
                    "pool_recycle": settings.database.pool_recycle,
                }
            )
        elif settings.database.is_sqlite:
            engine_kwargs["connect_args"] = {
                "check_same_thread": False,
                "timeout": 30,  # seconds to wait for a write lock
            }

        self._engine = create_async_engine(url, **engine_kwargs)

        if settings.database.is_sqlite:
            self._enable_sqlite_foreign_keys()

        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @property
    def engine(self) -> Any:
        return self._engine

    def _enable_sqlite_foreign_keys(self) -> None:
        """Turn on FK enforcement (and so ON DELETE CASCADE) for every SQLite connection."""

        @event.listens_for(self._engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_conn: Any, _connection_record: Any) -> None:
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
            logger.debug("Enabled foreign keys for SQLite connection")

    # Hey future me - this is THE unit of work. Repositories never commit; whatever they
    # stage inside one scope lands together or not at all. Playlist reorders and the
    # like-row + like_count pair rely on that.
    @asynccontextmanager
    async def session_scope(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a transactional scope: commit on success, rollback on any error."""
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        """Dispose the engine and its pooled connections."""
        await self._engine.dispose()

    async def create_tables(self) -> None:
        """Create all tables from model metadata (tests and first boot)."""
        from melodia.infrastructure.persistence.models import Base

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_tables(self) -> None:
        """Drop all tables (tests only)."""
        from melodia.infrastructure.persistence.models import Base

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    def get_pool_stats(self) -> dict[str, Any]:
        """Connection pool statistics for the health endpoint."""
        if self.settings.database.is_sqlite:
            return {"pool_type": "sqlite"}

        pool = self._engine.pool
        return {
            "pool_size": getattr(pool, "size", lambda: 0)(),
            "checked_out": getattr(pool, "checkedout", lambda: 0)(),
            "overflow": getattr(pool, "overflow", lambda: 0)(),
            "checked_in": getattr(pool, "checkedin", lambda: 0)(),
            "pool_timeout": self.settings.database.pool_timeout,
            "max_overflow": self.settings.database.max_overflow,
        }
