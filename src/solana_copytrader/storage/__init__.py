"""Storage layer - key-value persistence for wallets, settings and history."""

from solana_copytrader.storage.database import DatabaseManager, to_async_url
from solana_copytrader.storage.models import Base, KeyValueModel
from solana_copytrader.storage.repos import (
    ACTIVITIES_KEY,
    SETTINGS_KEY,
    WALLETS_KEY,
    AppStorage,
    KeyValueRepository,
    KeyValueStore,
    SqlKeyValueStore,
)

__all__ = [
    "ACTIVITIES_KEY",
    "AppStorage",
    "Base",
    "DatabaseManager",
    "KeyValueModel",
    "KeyValueRepository",
    "KeyValueStore",
    "SETTINGS_KEY",
    "SqlKeyValueStore",
    "WALLETS_KEY",
    "to_async_url",
]
