"""Repository pattern implementations for data access.

This module provides the key-value persistence used by the monitor: a
repository over the ``kv_store`` table, a JSON key-value store built on it,
and ``AppStorage`` with typed accessors for wallets, settings and activity
history.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from solana_copytrader.ingestor.history import DEFAULT_MAX_ENTRIES
from solana_copytrader.ingestor.models import Activity, MonitorSettings, Wallet
from solana_copytrader.storage.models import KeyValueModel

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from solana_copytrader.storage.database import DatabaseManager

logger = logging.getLogger(__name__)

WALLETS_KEY = "wallets"
SETTINGS_KEY = "settings"
ACTIVITIES_KEY = "activities"


class KeyValueRepository:
    """Repository for raw key-value rows."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session.
        """
        self.session = session

    async def get(self, key: str) -> str | None:
        result = await self.session.execute(
            select(KeyValueModel.value).where(KeyValueModel.key == key)
        )
        return result.scalar_one_or_none()

    async def upsert(self, key: str, value: str) -> None:
        """Insert or replace the value stored under ``key``."""
        now = datetime.now(UTC)
        dialect = self.session.bind.dialect.name if self.session.bind is not None else "sqlite"
        insert = pg_insert if dialect == "postgresql" else sqlite_insert
        stmt = insert(KeyValueModel).values(key=key, value=value, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=["key"],
            set_={"value": stmt.excluded.value, "updated_at": stmt.excluded.updated_at},
        )
        await self.session.execute(stmt)
        await self.session.flush()

    async def delete(self, key: str) -> bool:
        result = await self.session.execute(delete(KeyValueModel).where(KeyValueModel.key == key))
        await self.session.flush()
        return bool(result.rowcount)


class KeyValueStore(Protocol):
    """Get/set/remove of JSON-serializable values by key."""

    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def remove(self, key: str) -> None: ...


class SqlKeyValueStore:
    """KeyValueStore backed by the ``kv_store`` table.

    Each call runs in its own session and commits on success.
    """

    def __init__(self, db_manager: DatabaseManager) -> None:
        self._db = db_manager

    async def get(self, key: str) -> Any | None:
        """Return the decoded value, or None if missing.

        Raises:
            ValueError: If the stored document is not valid JSON.
        """
        async with self._db.get_async_session() as session:
            raw = await KeyValueRepository(session).get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value)
        async with self._db.get_async_session() as session:
            await KeyValueRepository(session).upsert(key, payload)

    async def remove(self, key: str) -> None:
        async with self._db.get_async_session() as session:
            await KeyValueRepository(session).delete(key)


class AppStorage:
    """Typed access to the monitor's persisted state.

    Unreadable documents are logged and read back as the empty default, so a
    corrupt blob never blocks startup. Write failures propagate.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        default_settings: MonitorSettings,
        max_activities: int = DEFAULT_MAX_ENTRIES,
    ) -> None:
        self._store = store
        self._default_settings = default_settings
        self._max_activities = max_activities

    @property
    def default_settings(self) -> MonitorSettings:
        return self._default_settings

    async def _get_list(self, key: str) -> list[Any]:
        try:
            value = await self._store.get(key)
        except ValueError as e:
            logger.warning("Failed to decode stored %s: %s", key, e)
            return []
        if value is None:
            return []
        if not isinstance(value, list):
            logger.warning("Stored %s is not a list; ignoring", key)
            return []
        return value

    async def get_wallets(self) -> list[Wallet]:
        wallets: list[Wallet] = []
        for item in await self._get_list(WALLETS_KEY):
            try:
                wallets.append(Wallet.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping unreadable stored wallet: %s", e)
        return wallets

    async def save_wallets(self, wallets: Sequence[Wallet]) -> None:
        await self._store.set(WALLETS_KEY, [w.to_dict() for w in wallets])

    async def get_settings(self) -> MonitorSettings:
        try:
            value = await self._store.get(SETTINGS_KEY)
        except ValueError as e:
            logger.warning("Failed to decode stored settings: %s", e)
            return self._default_settings
        if not isinstance(value, dict):
            return self._default_settings
        try:
            return MonitorSettings.from_dict(value, defaults=self._default_settings)
        except (TypeError, ValueError) as e:
            logger.warning("Stored settings are invalid, using defaults: %s", e)
            return self._default_settings

    async def save_settings(self, settings: MonitorSettings) -> None:
        await self._store.set(SETTINGS_KEY, settings.to_dict())

    async def get_activities(self) -> list[Activity]:
        activities: list[Activity] = []
        for item in await self._get_list(ACTIVITIES_KEY):
            try:
                activities.append(Activity.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping unreadable stored activity: %s", e)
        return activities

    async def save_activities(self, activities: Sequence[Activity]) -> None:
        """Persist activities, keeping only the first ``max_activities``."""
        trimmed = list(activities)[: self._max_activities]
        await self._store.set(ACTIVITIES_KEY, [a.to_dict() for a in trimmed])

    async def clear_all(self) -> None:
        for key in (WALLETS_KEY, SETTINGS_KEY, ACTIVITIES_KEY):
            await self._store.remove(key)
