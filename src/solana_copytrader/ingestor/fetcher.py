"""Per-wallet activity fetching.

Transaction bodies are fetched strictly one at a time with a fixed delay
before each request. Parallel fetches against the same upstream within a
short window reliably trigger rate limiting, so this loop must stay
sequential.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Container
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from solana_copytrader.ingestor.classifier import TransactionClassifier
from solana_copytrader.ingestor.models import Activity, SignatureInfo
from solana_copytrader.ingestor.solana_client import RateLimitError, SolanaClient
from solana_copytrader.ingestor.tokens import LAMPORTS_PER_SOL
from solana_copytrader.ingestor.transfers import extract_transfers

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

# Default configuration
DEFAULT_SIGNATURE_LIMIT = 5
DEFAULT_REQUEST_DELAY_SECONDS = 0.5
DEFAULT_SIGNATURES_COOLDOWN_SECONDS = 5.0
DEFAULT_TRANSACTION_COOLDOWN_SECONDS = 3.0


@dataclass(frozen=True)
class FetchPolicy:
    """Pacing and rate-limit recovery settings for one wallet fetch."""

    signature_limit: int = DEFAULT_SIGNATURE_LIMIT
    request_delay_seconds: float = DEFAULT_REQUEST_DELAY_SECONDS
    signatures_cooldown_seconds: float = DEFAULT_SIGNATURES_COOLDOWN_SECONDS
    transaction_cooldown_seconds: float = DEFAULT_TRANSACTION_COOLDOWN_SECONDS


class WalletActivityFetcher:
    """Fetches and classifies new activity for one wallet at a time.

    Signatures already present in ``known_signatures`` are skipped. A
    rate-limited signature listing is retried once after a cooldown; a
    rate-limited transaction fetch is skipped after a shorter cooldown and
    picked up again on a later cycle, since its signature stays unknown.
    """

    def __init__(
        self,
        client: SolanaClient,
        *,
        policy: FetchPolicy | None = None,
        classifier: TransactionClassifier | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._client = client
        self._policy = policy or FetchPolicy()
        self._classifier = classifier or TransactionClassifier()
        self._sleep = sleep

    async def _list_signatures(self, wallet_address: str) -> list[SignatureInfo]:
        limit = self._policy.signature_limit
        try:
            return await self._client.get_signatures_for_address(wallet_address, limit=limit)
        except RateLimitError:
            logger.info(
                "Rate limited listing signatures for %s, waiting %.1fs",
                wallet_address[:8] + "...",
                self._policy.signatures_cooldown_seconds,
            )
            await self._sleep(self._policy.signatures_cooldown_seconds)
            return await self._client.get_signatures_for_address(wallet_address, limit=limit)

    def build_activity(
        self,
        tx: dict[str, Any],
        sig_info: SignatureInfo,
        wallet_address: str,
        wallet_label: str,
    ) -> Activity:
        """Classify a fetched transaction and assemble its Activity."""
        classification = self._classifier.classify(tx, wallet_address)
        meta = tx.get("meta") or {}
        return Activity(
            signature=sig_info.signature,
            wallet_address=wallet_address,
            wallet_label=wallet_label,
            timestamp=(sig_info.block_time or 0) * 1000,
            type=classification.type,
            transfers=tuple(extract_transfers(tx, wallet_address)),
            is_jupiter_perp=classification.is_jupiter_perp,
            fee=Decimal(int(meta.get("fee") or 0)) / LAMPORTS_PER_SOL,
            success=meta.get("err") is None,
        )

    async def fetch(
        self,
        wallet_address: str,
        wallet_label: str,
        known_signatures: Container[str],
    ) -> list[Activity]:
        """Fetch activities for signatures not yet known.

        Args:
            wallet_address: Wallet to fetch.
            wallet_label: Label copied onto each activity.
            known_signatures: Signatures already represented in history.

        Returns:
            New activities, most recent first.

        Raises:
            SolanaClientError: If the signature listing fails.
        """
        signatures = await self._list_signatures(wallet_address)
        new_signatures = [s for s in signatures if s.signature not in known_signatures]
        if not new_signatures:
            return []

        activities: list[Activity] = []
        for sig_info in new_signatures:
            await self._sleep(self._policy.request_delay_seconds)
            try:
                tx = await self._client.get_parsed_transaction(sig_info.signature)
                if tx is None:
                    continue
                activities.append(
                    self.build_activity(tx, sig_info, wallet_address, wallet_label)
                )
            except RateLimitError:
                logger.info(
                    "Rate limited fetching %s, waiting %.1fs and skipping",
                    sig_info.signature[:16] + "...",
                    self._policy.transaction_cooldown_seconds,
                )
                await self._sleep(self._policy.transaction_cooldown_seconds)
            except Exception as e:
                logger.warning("Error fetching tx %s: %s", sig_info.signature, e)

        return activities
