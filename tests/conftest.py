"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from solana_copytrader.ingestor.classifier import JUPITER_PERP_VAULT_AUTHORITY

WALLET = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
OTHER_WALLET = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
SYSTEM_PROGRAM = "11111111111111111111111111111111"
TOKEN_PROGRAM = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
JUPITER_V6 = "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4"
AUTHORITY = JUPITER_PERP_VAULT_AUTHORITY


def build_token_balance(
    account_index: int,
    mint: str,
    owner: str,
    amount: str,
    decimals: int = 6,
) -> dict[str, Any]:
    return {
        "accountIndex": account_index,
        "mint": mint,
        "owner": owner,
        "uiTokenAmount": {
            "uiAmount": float(amount),
            "uiAmountString": amount,
            "decimals": decimals,
        },
    }


def build_transaction(
    *,
    account_keys: list[str] | None = None,
    instructions: list[dict[str, Any]] | None = None,
    pre_balances: list[int] | None = None,
    post_balances: list[int] | None = None,
    fee: int = 5000,
    pre_token_balances: list[dict[str, Any]] | None = None,
    post_token_balances: list[dict[str, Any]] | None = None,
    inner_instructions: list[dict[str, Any]] | None = None,
    loaded_addresses: dict[str, list[str]] | None = None,
    err: Any = None,
) -> dict[str, Any]:
    """Build a jsonParsed getTransaction result.

    By default the fee payer (first key) starts with 1 SOL and only pays the
    fee, so the transaction moves no SOL.
    """
    keys = account_keys if account_keys is not None else [WALLET, OTHER_WALLET, SYSTEM_PROGRAM]
    if pre_balances is None:
        pre_balances = [1_000_000_000] + [0] * (len(keys) - 1)
    if post_balances is None:
        post_balances = [pre_balances[0] - fee, *pre_balances[1:]]
    meta: dict[str, Any] = {
        "err": err,
        "fee": fee,
        "preBalances": pre_balances,
        "postBalances": post_balances,
        "preTokenBalances": pre_token_balances or [],
        "postTokenBalances": post_token_balances or [],
        "innerInstructions": inner_instructions or [],
    }
    if loaded_addresses is not None:
        meta["loadedAddresses"] = loaded_addresses
    return {
        "slot": 250_000_000,
        "blockTime": 1_700_000_000,
        "meta": meta,
        "transaction": {
            "message": {
                "accountKeys": [
                    {"pubkey": k, "signer": i == 0, "writable": i < 2, "source": "transaction"}
                    for i, k in enumerate(keys)
                ],
                "instructions": instructions
                if instructions is not None
                else [{"programId": SYSTEM_PROGRAM, "program": "system"}],
            },
            "signatures": ["sig"],
        },
    }


@pytest.fixture
def make_tx() -> Callable[..., dict[str, Any]]:
    """Builder for parsed transaction records."""
    return build_transaction


@pytest.fixture
def token_balance() -> Callable[..., dict[str, Any]]:
    """Builder for pre/post token balance entries."""
    return build_token_balance


@pytest.fixture
def wallet_address() -> str:
    return WALLET


class RecordingSleep:
    """Async sleep stand-in that records requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


class InMemoryKeyValueStore:
    """KeyValueStore kept in a dict, with write counting."""

    def __init__(self) -> None:
        self.data: dict[str, Any] = {}
        self.writes: list[str] = []

    async def get(self, key: str) -> Any | None:
        return self.data.get(key)

    async def set(self, key: str, value: Any) -> None:
        self.writes.append(key)
        self.data[key] = value

    async def remove(self, key: str) -> None:
        self.data.pop(key, None)


@pytest.fixture
def memory_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()
