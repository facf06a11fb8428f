"""Tracked wallet management.

``WalletRegistry`` owns the list of tracked wallets and persists the full
list through ``AppStorage`` after every mutation.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from typing import Any

from solders.pubkey import Pubkey

from solana_copytrader.ingestor.models import Wallet
from solana_copytrader.storage.repos import AppStorage

logger = logging.getLogger(__name__)

IMPORTED_WALLET_LABEL = "Imported Wallet"


class WalletError(Exception):
    """Base exception for wallet management errors."""


class InvalidWalletAddressError(WalletError):
    """Raised when an address is not a valid Solana public key."""


class DuplicateWalletError(WalletError):
    """Raised when adding an address that is already tracked."""


class WalletNotFoundError(WalletError):
    """Raised when an address is not tracked."""


class WalletImportError(WalletError):
    """Raised when an import document yields no usable wallets."""


def is_valid_solana_address(address: str) -> bool:
    """Return True if ``address`` decodes to a 32-byte base58 public key."""
    if not isinstance(address, str) or not address:
        return False
    try:
        Pubkey.from_string(address)
    except ValueError:
        return False
    return True


def _now_ms() -> int:
    return int(time.time() * 1000)


class WalletRegistry:
    """Tracked wallets, unique by address, in insertion order."""

    def __init__(self, storage: AppStorage, *, now: Callable[[], int] = _now_ms) -> None:
        self._storage = storage
        self._now = now
        self._wallets: list[Wallet] = []

    @property
    def wallets(self) -> tuple[Wallet, ...]:
        return tuple(self._wallets)

    def __len__(self) -> int:
        return len(self._wallets)

    def __contains__(self, address: object) -> bool:
        return any(w.address == address for w in self._wallets)

    def get(self, address: str) -> Wallet | None:
        for wallet in self._wallets:
            if wallet.address == address:
                return wallet
        return None

    async def load(self) -> tuple[Wallet, ...]:
        """Load wallets from storage, dropping duplicate addresses."""
        seen: set[str] = set()
        wallets: list[Wallet] = []
        for wallet in await self._storage.get_wallets():
            if wallet.address in seen:
                continue
            seen.add(wallet.address)
            wallets.append(wallet)
        self._wallets = wallets
        logger.debug("Loaded %d wallets", len(wallets))
        return self.wallets

    async def _save(self) -> None:
        await self._storage.save_wallets(self._wallets)

    async def add(self, address: str, label: str | None = None) -> Wallet:
        """Track a new wallet.

        Raises:
            InvalidWalletAddressError: If the address is not a valid public key.
            DuplicateWalletError: If the address is already tracked.
        """
        address = address.strip()
        if not is_valid_solana_address(address):
            raise InvalidWalletAddressError(f"Invalid Solana address: {address!r}")
        if address in self:
            raise DuplicateWalletError(f"Wallet already exists: {address}")

        wallet = Wallet(
            address=address,
            label=label or f"Wallet {len(self._wallets) + 1}",
            added_at=self._now(),
        )
        self._wallets.append(wallet)
        await self._save()
        logger.info("Added wallet %s (%s)", address[:8] + "...", wallet.label)
        return wallet

    async def remove(self, address: str) -> None:
        """Stop tracking a wallet.

        Raises:
            WalletNotFoundError: If the address is not tracked.
        """
        if address not in self:
            raise WalletNotFoundError(f"Wallet not found: {address}")
        self._wallets = [w for w in self._wallets if w.address != address]
        await self._save()
        logger.info("Removed wallet %s", address[:8] + "...")

    async def update_label(self, address: str, label: str) -> Wallet:
        """Rename a tracked wallet.

        Raises:
            WalletNotFoundError: If the address is not tracked.
        """
        updated: Wallet | None = None
        wallets: list[Wallet] = []
        for wallet in self._wallets:
            if wallet.address == address:
                wallet = updated = wallet.with_label(label)
            wallets.append(wallet)
        if updated is None:
            raise WalletNotFoundError(f"Wallet not found: {address}")
        self._wallets = wallets
        await self._save()
        return updated

    def export_json(self) -> str:
        """Serialize tracked wallets as a pretty-printed JSON array."""
        return json.dumps([w.to_dict() for w in self._wallets], indent=2)

    async def import_json(self, text: str) -> list[Wallet]:
        """Merge wallets from an exported JSON document.

        Entries with a missing, invalid or already tracked address are
        ignored.

        Returns:
            The wallets added.

        Raises:
            WalletImportError: If the document is not a JSON array or adds
                no new valid wallets.
        """
        try:
            data: Any = json.loads(text)
        except ValueError as e:
            raise WalletImportError("Failed to parse wallet file") from e
        if not isinstance(data, list):
            raise WalletImportError("Invalid file format: expected an array of wallets")

        known = {w.address for w in self._wallets}
        added: list[Wallet] = []
        for item in data:
            if not isinstance(item, dict):
                continue
            address = item.get("address")
            if not isinstance(address, str) or address in known:
                continue
            if not is_valid_solana_address(address):
                continue
            known.add(address)
            added.append(
                Wallet(
                    address=address,
                    label=str(item.get("label") or IMPORTED_WALLET_LABEL),
                    added_at=int(item.get("addedAt") or self._now()),
                )
            )

        if not added:
            raise WalletImportError("No new valid wallets found in file")

        self._wallets.extend(added)
        await self._save()
        logger.info("Imported %d wallets", len(added))
        return added
