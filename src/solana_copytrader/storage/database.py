"""Async engine and session handling for the key-value store.

SQLite (via aiosqlite) is the default backend; PostgreSQL URLs are routed
to asyncpg.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from solana_copytrader.storage.models import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)


def to_async_url(database_url: str) -> str:
    """Map a sync PostgreSQL URL onto the asyncpg driver."""
    if database_url.startswith("postgresql://"):
        logger.warning("DATABASE_URL uses 'postgresql://'; switching to 'postgresql+asyncpg://'")
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url


class DatabaseManager:
    """Owns the async engine and hands out transactional sessions.

    The engine is created lazily on first use and dropped by
    ``dispose_async``, after which the manager can be reused.
    """

    def __init__(
        self,
        database_url: str,
        *,
        pool_size: int = 5,
        max_overflow: int = 10,
        echo: bool = False,
    ) -> None:
        self.database_url = to_async_url(database_url)
        self._pool_size = pool_size
        self._max_overflow = max_overflow
        self._echo = echo

        self._engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    def _get_engine(self) -> AsyncEngine:
        if self._engine is None:
            options: dict[str, Any] = {"echo": self._echo}
            # SQLite uses a static pool; pool sizing only applies to server backends.
            if not self.is_sqlite:
                options["pool_size"] = self._pool_size
                options["max_overflow"] = self._max_overflow
            self._engine = create_async_engine(self.database_url, **options)
        return self._engine

    @asynccontextmanager
    async def get_async_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session that commits on success and rolls back on error."""
        if self._sessions is None:
            self._sessions = async_sessionmaker(bind=self._get_engine(), expire_on_commit=False)

        session = self._sessions()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def init_schema_async(self) -> None:
        """Create the ``kv_store`` table if it does not exist."""
        async with self._get_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Key-value store schema ready")

    async def dispose_async(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._sessions = None
            logger.info("Database connections closed")
