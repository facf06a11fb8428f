"""Multi-wallet ingestion cycle.

The orchestrator is the single writer of the activity history and the
known-signature set. Each cycle fetches every tracked wallet, merges the new
activities into history in memory and then persists the trimmed list. A
failed write therefore leaves the stored history behind the in-memory one,
never ahead of it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from solana_copytrader.ingestor.classifier import TransactionClassifier
from solana_copytrader.ingestor.fetcher import FetchPolicy, Sleep, WalletActivityFetcher
from solana_copytrader.ingestor.history import DEFAULT_MAX_ENTRIES, ActivityHistory
from solana_copytrader.ingestor.models import Activity, Wallet
from solana_copytrader.ingestor.solana_client import ConnectionResolver
from solana_copytrader.storage.repos import AppStorage

logger = logging.getLogger(__name__)


class IngestionError(Exception):
    """Raised when an ingestion cycle cannot run at all."""


@dataclass
class IngestResult:
    """Outcome of one ingestion cycle."""

    new_activities: list[Activity] = field(default_factory=list)
    failed_wallets: list[str] = field(default_factory=list)
    persisted: bool = False

    @property
    def new_count(self) -> int:
        return len(self.new_activities)


class IngestionOrchestrator:
    """Runs ingestion cycles across all tracked wallets.

    Wallets are processed one after another; a failure for one wallet is
    logged and does not affect the others.

    Example:
        ```python
        orchestrator = await IngestionOrchestrator.load(storage, resolver)
        result = await orchestrator.ingest_all(wallets, settings.rpc_endpoint)
        print(result.new_count)
        ```
    """

    def __init__(
        self,
        history: ActivityHistory,
        storage: AppStorage,
        resolver: ConnectionResolver,
        *,
        policy: FetchPolicy | None = None,
        classifier: TransactionClassifier | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._history = history
        self._storage = storage
        self._resolver = resolver
        self._policy = policy or FetchPolicy()
        self._classifier = classifier or TransactionClassifier()
        self._sleep = sleep
        self._lock = asyncio.Lock()

    @classmethod
    async def load(
        cls,
        storage: AppStorage,
        resolver: ConnectionResolver,
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        policy: FetchPolicy | None = None,
        classifier: TransactionClassifier | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> IngestionOrchestrator:
        """Create an orchestrator seeded from persisted history."""
        activities = await storage.get_activities()
        history = ActivityHistory(activities, max_entries=max_entries)
        logger.info(
            "Loaded %d activities (%d known signatures)",
            len(history),
            len(history.known_signatures),
        )
        return cls(
            history,
            storage,
            resolver,
            policy=policy,
            classifier=classifier,
            sleep=sleep,
        )

    @property
    def history(self) -> ActivityHistory:
        return self._history

    async def ingest_all(self, wallets: Sequence[Wallet], rpc_endpoint: str) -> IngestResult:
        """Fetch new activity for every wallet and merge it into history.

        Args:
            wallets: Wallets to poll in this cycle.
            rpc_endpoint: RPC endpoint to fetch from.

        Returns:
            The activities added and the wallets that failed.

        Raises:
            IngestionError: If no client can be resolved for ``rpc_endpoint``.
        """
        result = IngestResult()
        if not wallets:
            return result

        try:
            client = await self._resolver.resolve(rpc_endpoint)
        except ValueError as e:
            raise IngestionError(str(e)) from e

        fetcher = WalletActivityFetcher(
            client,
            policy=self._policy,
            classifier=self._classifier,
            sleep=self._sleep,
        )

        collected: list[Activity] = []
        for wallet in wallets:
            try:
                activities = await fetcher.fetch(wallet.address, wallet.label, self._history)
            except Exception as e:
                logger.warning("Error fetching activity for %s: %s", wallet.address[:8] + "...", e)
                result.failed_wallets.append(wallet.address)
                continue
            collected.extend(activities)

        if not collected:
            logger.debug("No new activity across %d wallets", len(wallets))
            return result

        async with self._lock:
            result.new_activities = self._history.merge(collected)
            if result.new_activities:
                await self._storage.save_activities(self._history.activities)
                result.persisted = True

        logger.info("Ingested %d new activities", result.new_count)
        return result

    async def clear(self) -> None:
        """Forget all history and known signatures, and persist the empty list."""
        async with self._lock:
            self._history.clear()
            await self._storage.save_activities([])
        logger.info("Activity history cleared")
