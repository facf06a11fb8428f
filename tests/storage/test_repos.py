"""Tests for storage repositories."""

from decimal import Decimal

import pytest

from solana_copytrader.ingestor.models import Activity, MonitorSettings, TokenTransfer, Wallet
from solana_copytrader.storage.database import DatabaseManager
from solana_copytrader.storage.repos import (
    ACTIVITIES_KEY,
    SETTINGS_KEY,
    WALLETS_KEY,
    AppStorage,
    KeyValueRepository,
    SqlKeyValueStore,
)

WALLET = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
DEFAULT_SETTINGS = MonitorSettings(poll_interval=60, rpc_endpoint="https://rpc.example.com")

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
async def db_manager(tmp_path):
    """Create a database manager over a temporary SQLite file."""
    manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await manager.init_schema_async()
    yield manager
    await manager.dispose_async()


@pytest.fixture
def store(db_manager) -> SqlKeyValueStore:
    return SqlKeyValueStore(db_manager)


@pytest.fixture
def app_storage(store) -> AppStorage:
    return AppStorage(store, default_settings=DEFAULT_SETTINGS, max_activities=3)


def _activity(signature: str, timestamp: int) -> Activity:
    return Activity(
        signature=signature,
        wallet_address=WALLET,
        wallet_label="Whale",
        timestamp=timestamp,
        type="swap",
        transfers=(
            TokenTransfer(
                mint="EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
                amount=Decimal("1.25"),
                decimals=6,
                direction="in",
                symbol="USDC",
            ),
        ),
        fee=Decimal("0.000005"),
    )


# ============================================================================
# KeyValueRepository
# ============================================================================


class TestKeyValueRepository:
    @pytest.mark.asyncio
    async def test_upsert_inserts_then_updates(self, db_manager) -> None:
        async with db_manager.get_async_session() as session:
            repo = KeyValueRepository(session)
            await repo.upsert("k", "1")
            await repo.upsert("k", "2")

        async with db_manager.get_async_session() as session:
            assert await KeyValueRepository(session).get("k") == "2"

    @pytest.mark.asyncio
    async def test_get_missing(self, db_manager) -> None:
        async with db_manager.get_async_session() as session:
            assert await KeyValueRepository(session).get("missing") is None

    @pytest.mark.asyncio
    async def test_delete(self, db_manager) -> None:
        async with db_manager.get_async_session() as session:
            repo = KeyValueRepository(session)
            await repo.upsert("k", "1")
            assert await repo.delete("k") is True
            assert await repo.delete("k") is False
            assert await repo.get("k") is None


# ============================================================================
# SqlKeyValueStore
# ============================================================================


class TestSqlKeyValueStore:
    @pytest.mark.asyncio
    async def test_round_trip_json(self, store) -> None:
        await store.set("doc", {"a": [1, 2, 3], "b": None})
        assert await store.get("doc") == {"a": [1, 2, 3], "b": None}

    @pytest.mark.asyncio
    async def test_remove(self, store) -> None:
        await store.set("doc", [1])
        await store.remove("doc")
        assert await store.get("doc") is None

    @pytest.mark.asyncio
    async def test_invalid_json_raises_value_error(self, store, db_manager) -> None:
        async with db_manager.get_async_session() as session:
            await KeyValueRepository(session).upsert("doc", "{not json")

        with pytest.raises(ValueError):
            await store.get("doc")


# ============================================================================
# AppStorage
# ============================================================================


class TestAppStorage:
    @pytest.mark.asyncio
    async def test_empty_defaults(self, app_storage) -> None:
        assert await app_storage.get_wallets() == []
        assert await app_storage.get_activities() == []
        assert await app_storage.get_settings() == DEFAULT_SETTINGS

    @pytest.mark.asyncio
    async def test_wallets_round_trip(self, app_storage, store) -> None:
        wallets = [Wallet(address=WALLET, label="Whale", added_at=1_700_000_000_000)]

        await app_storage.save_wallets(wallets)

        assert await app_storage.get_wallets() == wallets
        assert await store.get(WALLETS_KEY) == [
            {"address": WALLET, "label": "Whale", "addedAt": 1_700_000_000_000}
        ]

    @pytest.mark.asyncio
    async def test_settings_round_trip(self, app_storage, store) -> None:
        settings = MonitorSettings(poll_interval=30, rpc_endpoint="https://other.example.com")

        await app_storage.save_settings(settings)

        assert await app_storage.get_settings() == settings
        assert await store.get(SETTINGS_KEY) == {
            "pollInterval": 30,
            "rpcEndpoint": "https://other.example.com",
        }

    @pytest.mark.asyncio
    async def test_activities_trimmed_on_save(self, app_storage, store) -> None:
        activities = [_activity(f"s{i}", 10 - i) for i in range(5)]

        await app_storage.save_activities(activities)

        restored = await app_storage.get_activities()
        assert [a.signature for a in restored] == ["s0", "s1", "s2"]
        assert restored[0] == activities[0]
        assert len(await store.get(ACTIVITIES_KEY)) == 3

    @pytest.mark.asyncio
    async def test_malformed_document_reads_as_empty(self, app_storage, db_manager) -> None:
        async with db_manager.get_async_session() as session:
            await KeyValueRepository(session).upsert(ACTIVITIES_KEY, "[{broken")
            await KeyValueRepository(session).upsert(SETTINGS_KEY, "nope")

        assert await app_storage.get_activities() == []
        assert await app_storage.get_settings() == DEFAULT_SETTINGS

    @pytest.mark.asyncio
    async def test_non_list_document_reads_as_empty(self, app_storage, store) -> None:
        await store.set(WALLETS_KEY, {"address": WALLET})
        assert await app_storage.get_wallets() == []

    @pytest.mark.asyncio
    async def test_unreadable_entries_skipped(self, app_storage, store) -> None:
        await store.set(
            WALLETS_KEY,
            [{"label": "no address"}, {"address": WALLET, "label": "ok", "addedAt": 1}],
        )
        wallets = await app_storage.get_wallets()
        assert [w.address for w in wallets] == [WALLET]

    @pytest.mark.asyncio
    async def test_clear_all(self, app_storage, store) -> None:
        await app_storage.save_wallets([Wallet(address=WALLET, label="W", added_at=1)])
        await app_storage.save_settings(DEFAULT_SETTINGS)
        await app_storage.save_activities([_activity("s", 1)])

        await app_storage.clear_all()

        for key in (WALLETS_KEY, SETTINGS_KEY, ACTIVITIES_KEY):
            assert await store.get(key) is None
