"""Tests for tracked wallet management."""

import json

import pytest

from solana_copytrader.ingestor.models import MonitorSettings, Wallet
from solana_copytrader.storage.repos import WALLETS_KEY, AppStorage
from solana_copytrader.wallets import (
    IMPORTED_WALLET_LABEL,
    DuplicateWalletError,
    InvalidWalletAddressError,
    WalletImportError,
    WalletNotFoundError,
    WalletRegistry,
    is_valid_solana_address,
)

WALLET_A = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
WALLET_B = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
WALLET_C = "So11111111111111111111111111111111111111112"
SYSTEM_PROGRAM = "11111111111111111111111111111111"
NOW_MS = 1_760_000_000_000


@pytest.fixture
def storage(memory_store) -> AppStorage:
    return AppStorage(
        memory_store,
        default_settings=MonitorSettings(poll_interval=60, rpc_endpoint="https://rpc.example.com"),
    )


@pytest.fixture
def registry(storage) -> WalletRegistry:
    return WalletRegistry(storage, now=lambda: NOW_MS)


class TestAddressValidation:
    @pytest.mark.parametrize("address", [WALLET_A, WALLET_B, WALLET_C, SYSTEM_PROGRAM])
    def test_valid(self, address) -> None:
        assert is_valid_solana_address(address)

    @pytest.mark.parametrize(
        "address",
        [
            "",
            "not-base58-0OIl",
            "abc",
            WALLET_A + "x",
            "0x742d35Cc6634C0532925a3b844Bc454e4438f44e",
        ],
    )
    def test_invalid(self, address) -> None:
        assert not is_valid_solana_address(address)


class TestAdd:
    @pytest.mark.asyncio
    async def test_add_persists_with_default_label(self, registry, memory_store) -> None:
        wallet = await registry.add(f"  {WALLET_A}  ")

        assert wallet == Wallet(address=WALLET_A, label="Wallet 1", added_at=NOW_MS)
        assert WALLET_A in registry
        assert memory_store.data[WALLETS_KEY] == [
            {"address": WALLET_A, "label": "Wallet 1", "addedAt": NOW_MS}
        ]

    @pytest.mark.asyncio
    async def test_default_label_counts_existing(self, registry) -> None:
        await registry.add(WALLET_A, "Whale")
        wallet = await registry.add(WALLET_B)

        assert wallet.label == "Wallet 2"

    @pytest.mark.asyncio
    async def test_invalid_address_rejected(self, registry, memory_store) -> None:
        with pytest.raises(InvalidWalletAddressError):
            await registry.add("nope")

        assert len(registry) == 0
        assert memory_store.writes == []

    @pytest.mark.asyncio
    async def test_duplicate_rejected(self, registry) -> None:
        await registry.add(WALLET_A)

        with pytest.raises(DuplicateWalletError):
            await registry.add(WALLET_A, "again")

        assert len(registry) == 1


class TestRemoveAndRename:
    @pytest.mark.asyncio
    async def test_remove(self, registry, memory_store) -> None:
        await registry.add(WALLET_A)
        await registry.add(WALLET_B)

        await registry.remove(WALLET_A)

        assert [w.address for w in registry.wallets] == [WALLET_B]
        assert [w["address"] for w in memory_store.data[WALLETS_KEY]] == [WALLET_B]

    @pytest.mark.asyncio
    async def test_remove_unknown(self, registry) -> None:
        with pytest.raises(WalletNotFoundError):
            await registry.remove(WALLET_A)

    @pytest.mark.asyncio
    async def test_update_label(self, registry, memory_store) -> None:
        await registry.add(WALLET_A)
        await registry.add(WALLET_B)

        updated = await registry.update_label(WALLET_B, "Smart money")

        assert updated.label == "Smart money"
        assert updated.added_at == NOW_MS
        assert registry.get(WALLET_B).label == "Smart money"
        assert [w.address for w in registry.wallets] == [WALLET_A, WALLET_B]
        assert memory_store.data[WALLETS_KEY][1]["label"] == "Smart money"

    @pytest.mark.asyncio
    async def test_update_label_unknown(self, registry) -> None:
        with pytest.raises(WalletNotFoundError):
            await registry.update_label(WALLET_A, "x")


class TestLoad:
    @pytest.mark.asyncio
    async def test_load_drops_duplicates(self, registry, memory_store) -> None:
        memory_store.data[WALLETS_KEY] = [
            {"address": WALLET_A, "label": "first", "addedAt": 1},
            {"address": WALLET_A, "label": "second", "addedAt": 2},
            {"address": WALLET_B, "label": "b", "addedAt": 3},
        ]

        wallets = await registry.load()

        assert [(w.address, w.label) for w in wallets] == [(WALLET_A, "first"), (WALLET_B, "b")]


class TestImportExport:
    @pytest.mark.asyncio
    async def test_export_round_trips_through_import(self, registry, storage) -> None:
        await registry.add(WALLET_A, "Whale")
        await registry.add(WALLET_B, "Desk")
        exported = registry.export_json()

        assert json.loads(exported) == [
            {"address": WALLET_A, "label": "Whale", "addedAt": NOW_MS},
            {"address": WALLET_B, "label": "Desk", "addedAt": NOW_MS},
        ]

        other = WalletRegistry(storage, now=lambda: 0)
        await other.import_json(exported)
        assert other.wallets == registry.wallets

    @pytest.mark.asyncio
    async def test_import_skips_invalid_and_known(self, registry) -> None:
        await registry.add(WALLET_A, "Whale")
        document = json.dumps(
            [
                {"address": WALLET_A, "label": "dupe"},
                {"address": "bad"},
                {"label": "missing address"},
                "not an object",
                {"address": WALLET_B, "label": "Desk", "addedAt": 5},
                {"address": WALLET_C},
                {"address": WALLET_C, "label": "repeat in file"},
            ]
        )

        added = await registry.import_json(document)

        assert added == [
            Wallet(address=WALLET_B, label="Desk", added_at=5),
            Wallet(address=WALLET_C, label=IMPORTED_WALLET_LABEL, added_at=NOW_MS),
        ]
        assert [w.address for w in registry.wallets] == [WALLET_A, WALLET_B, WALLET_C]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "document",
        ["{not json", json.dumps({"address": WALLET_A}), json.dumps([{"address": "bad"}]), "[]"],
    )
    async def test_import_errors(self, registry, memory_store, document) -> None:
        with pytest.raises(WalletImportError):
            await registry.import_json(document)

        assert len(registry) == 0
        assert memory_store.writes == []
