"""Main pipeline for the Solana Copytrader monitor.

This module provides the Pipeline class that wires together storage, the
Solana client resolver, the ingestion orchestrator and the poll scheduler,
and exposes the operations the application surface calls.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from redis.asyncio import Redis

from solana_copytrader.config import Settings, get_settings
from solana_copytrader.ingestor.fetcher import FetchPolicy
from solana_copytrader.ingestor.models import Activity, MonitorSettings, Wallet
from solana_copytrader.ingestor.orchestrator import IngestionError, IngestionOrchestrator
from solana_copytrader.ingestor.solana_client import ConnectionResolver
from solana_copytrader.positions.client import PerpsPositionsClient
from solana_copytrader.positions.models import WalletPositions
from solana_copytrader.positions.stats import PositionStats, aggregate_positions
from solana_copytrader.scheduler import Clock, PollScheduler, SchedulerState
from solana_copytrader.storage.database import DatabaseManager
from solana_copytrader.storage.repos import AppStorage, SqlKeyValueStore
from solana_copytrader.wallets import WalletRegistry

if TYPE_CHECKING:
    from solana_copytrader.ingestor.fetcher import Sleep

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    """Pipeline lifecycle states."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERROR = "error"


@dataclass
class PipelineStats:
    """Statistics for the pipeline."""

    started_at: datetime | None = None
    cycles_completed: int = 0
    cycles_failed: int = 0
    activities_ingested: int = 0
    wallet_failures: int = 0
    last_cycle_time: datetime | None = None
    last_error: str | None = None


class Pipeline:
    """Main pipeline for the Solana Copytrader monitor.

    Pipeline flow:
        PollScheduler → IngestionOrchestrator → WalletActivityFetcher
        → SolanaClient → classifier + transfer extraction → history → storage

    Example:
        ```python
        from solana_copytrader.config import get_settings
        from solana_copytrader.pipeline import Pipeline

        async with Pipeline(get_settings()) as pipeline:
            await pipeline.add_wallet("7xKX...", "Whale")
            await pipeline.refresh()
        ```
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        clock: Clock | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize the pipeline.

        Args:
            settings: Application settings. If not provided, uses get_settings().
            clock: Timer source for the poll scheduler (tests use a virtual one).
            sleep: Sleep used for request pacing and rate-limit cooldowns.
        """
        self._settings = settings or get_settings()
        self._clock = clock
        self._sleep = sleep

        self._state = PipelineState.STOPPED
        self._stats = PipelineStats()

        # Components (initialized in start())
        self._redis: Redis | None = None
        self._db_manager: DatabaseManager | None = None
        self._storage: AppStorage | None = None
        self._resolver: ConnectionResolver | None = None
        self._registry: WalletRegistry | None = None
        self._orchestrator: IngestionOrchestrator | None = None
        self._scheduler: PollScheduler | None = None
        self._positions_client: PerpsPositionsClient | None = None

        self._monitor_settings = MonitorSettings(
            poll_interval=self._settings.polling.interval_seconds,
            rpc_endpoint=self._settings.solana.rpc_url,
        )
        self._positions: dict[str, WalletPositions] = {}

        self._stop_event: asyncio.Event | None = None

    @property
    def state(self) -> PipelineState:
        """Current pipeline state."""
        return self._state

    @property
    def stats(self) -> PipelineStats:
        """Current pipeline statistics."""
        return self._stats

    @property
    def is_running(self) -> bool:
        """Check if pipeline is running."""
        return self._state == PipelineState.RUNNING

    @property
    def monitor_settings(self) -> MonitorSettings:
        return self._monitor_settings

    @property
    def wallets(self) -> tuple[Wallet, ...]:
        return self._require(self._registry).wallets

    @property
    def activities(self) -> tuple[Activity, ...]:
        return self._require(self._orchestrator).history.activities

    @property
    def scheduler_state(self) -> SchedulerState:
        return self._require(self._scheduler).state

    @property
    def countdown(self) -> int:
        return self._require(self._scheduler).countdown

    @property
    def positions(self) -> dict[str, WalletPositions]:
        return dict(self._positions)

    @staticmethod
    def _require(component: Any) -> Any:
        if component is None:
            raise RuntimeError("Pipeline is not started")
        return component

    async def start(self) -> None:
        """Start the pipeline.

        Initializes all components and arms polling when enabled.

        Raises:
            RuntimeError: If pipeline is already running.
            Exception: If any component fails to initialize.
        """
        if self._state != PipelineState.STOPPED:
            raise RuntimeError(f"Cannot start pipeline in state {self._state}")

        self._state = PipelineState.STARTING
        self._stop_event = asyncio.Event()
        logger.info("Starting pipeline...")

        try:
            await self._initialize_components()
            self._start_polling()
            self._stats.started_at = datetime.now(UTC)
            self._state = PipelineState.RUNNING
            logger.info("Pipeline started successfully")
        except Exception as e:
            self._state = PipelineState.ERROR
            self._stats.last_error = str(e)
            logger.error("Failed to start pipeline: %s", e)
            await self._cleanup()
            raise

    async def stop(self) -> None:
        """Stop the pipeline gracefully.

        Stops polling and cleans up resources.
        """
        if self._state == PipelineState.STOPPED:
            return

        self._state = PipelineState.STOPPING
        logger.info("Stopping pipeline...")

        if self._stop_event:
            self._stop_event.set()

        await self._cleanup()

        self._state = PipelineState.STOPPED
        logger.info("Pipeline stopped")

    async def _initialize_components(self) -> None:
        """Initialize all pipeline components."""
        settings = self._settings

        if settings.redis.url:
            logger.debug("Initializing Redis connection...")
            self._redis = Redis.from_url(settings.redis.url)

        logger.debug("Initializing database manager...")
        self._db_manager = DatabaseManager(settings.database.url)
        await self._db_manager.init_schema_async()

        self._storage = AppStorage(
            SqlKeyValueStore(self._db_manager),
            default_settings=self._monitor_settings,
            max_activities=settings.polling.history_max_entries,
        )
        self._monitor_settings = await self._storage.get_settings()

        logger.debug("Initializing Solana client resolver...")
        self._resolver = ConnectionResolver(
            redis=self._redis,
            commitment=settings.solana.commitment,
            request_timeout_seconds=settings.solana.request_timeout_seconds,
            max_requests_per_second=settings.solana.max_requests_per_second,
        )

        self._registry = WalletRegistry(self._storage)
        await self._registry.load()

        policy = FetchPolicy(
            signature_limit=settings.polling.signature_limit,
            request_delay_seconds=settings.polling.request_delay_seconds,
            signatures_cooldown_seconds=settings.polling.signatures_cooldown_seconds,
            transaction_cooldown_seconds=settings.polling.transaction_cooldown_seconds,
        )
        self._orchestrator = await IngestionOrchestrator.load(
            self._storage,
            self._resolver,
            max_entries=settings.polling.history_max_entries,
            policy=policy,
            sleep=self._sleep,
        )

        self._scheduler = PollScheduler(
            self._run_cycle,
            interval_seconds=self._monitor_settings.poll_interval,
            clock=self._clock,
        )

        self._positions_client = PerpsPositionsClient(
            settings.perps.api_url,
            request_delay_seconds=settings.perps.request_delay_seconds,
            sleep=self._sleep,
        )

    def _start_polling(self) -> None:
        scheduler = self._require(self._scheduler)
        scheduler.set_has_wallets(len(self._require(self._registry)) > 0)
        scheduler.set_enabled(self._settings.polling.enabled)

    async def _run_cycle(self) -> None:
        orchestrator: IngestionOrchestrator = self._require(self._orchestrator)
        registry: WalletRegistry = self._require(self._registry)
        try:
            result = await orchestrator.ingest_all(
                registry.wallets, self._monitor_settings.rpc_endpoint
            )
        except IngestionError as e:
            self._stats.cycles_failed += 1
            self._stats.last_error = str(e)
            raise

        self._stats.cycles_completed += 1
        self._stats.activities_ingested += result.new_count
        self._stats.wallet_failures += len(result.failed_wallets)
        self._stats.last_cycle_time = datetime.now(UTC)

    async def _cleanup(self) -> None:
        """Clean up resources."""
        if self._scheduler:
            await self._scheduler.stop()
            self._scheduler = None

        if self._positions_client:
            await self._positions_client.aclose()
            self._positions_client = None

        if self._resolver:
            await self._resolver.reset()
            self._resolver = None

        # Close database connections
        if self._db_manager:
            await self._db_manager.dispose_async()
            self._db_manager = None

        # Close Redis connection
        if self._redis:
            await self._redis.aclose()
            self._redis = None

        self._orchestrator = None
        self._registry = None
        self._storage = None
        logger.debug("Resources cleaned up")

    async def refresh(self) -> None:
        """Run an ingestion cycle now, or join the one in flight."""
        await self._require(self._scheduler).trigger_now()

    def set_polling_enabled(self, enabled: bool) -> None:
        self._require(self._scheduler).set_enabled(enabled)

    async def update_poll_interval(self, seconds: int) -> MonitorSettings:
        """Persist a new poll interval (clamped). Applies at the next countdown reset."""
        storage: AppStorage = self._require(self._storage)
        self._monitor_settings = self._monitor_settings.with_poll_interval(seconds)
        await storage.save_settings(self._monitor_settings)
        self._require(self._scheduler).set_interval(self._monitor_settings.poll_interval)
        return self._monitor_settings

    async def update_rpc_endpoint(self, endpoint: str) -> MonitorSettings:
        """Switch to a new RPC endpoint and persist it.

        Waits for an in-flight cycle first so the client it holds is not
        closed underneath it.

        Raises:
            ValueError: If the endpoint is not an HTTP(S) URL.
        """
        resolver: ConnectionResolver = self._require(self._resolver)
        storage: AppStorage = self._require(self._storage)
        endpoint = endpoint.strip()
        if not endpoint.startswith(("http://", "https://")):
            raise ValueError(f"RPC endpoint must be an HTTP(S) URL: {endpoint!r}")
        await self._require(self._scheduler).wait_for_cycle()
        await resolver.resolve(endpoint)
        self._monitor_settings = self._monitor_settings.with_rpc_endpoint(endpoint)
        await storage.save_settings(self._monitor_settings)
        return self._monitor_settings

    async def add_wallet(self, address: str, label: str | None = None) -> Wallet:
        wallet = await self._require(self._registry).add(address, label)
        self._require(self._scheduler).set_has_wallets(True)
        return wallet

    async def remove_wallet(self, address: str) -> None:
        registry: WalletRegistry = self._require(self._registry)
        await registry.remove(address)
        self._positions.pop(address, None)
        self._require(self._scheduler).set_has_wallets(len(registry) > 0)

    async def update_wallet_label(self, address: str, label: str) -> Wallet:
        return await self._require(self._registry).update_label(address, label)

    async def import_wallets(self, text: str) -> list[Wallet]:
        added = await self._require(self._registry).import_json(text)
        self._require(self._scheduler).set_has_wallets(True)
        return added

    def export_wallets(self) -> str:
        return self._require(self._registry).export_json()

    async def clear_activities(self) -> None:
        await self._require(self._orchestrator).clear()

    async def fetch_positions(self) -> dict[str, WalletPositions]:
        """Fetch perpetuals positions for every tracked wallet."""
        client: PerpsPositionsClient = self._require(self._positions_client)
        addresses = [w.address for w in self.wallets]
        self._positions = await client.get_all_positions(addresses)
        return self.positions

    def position_stats(self) -> PositionStats:
        """Aggregate statistics over the last fetched positions."""
        return aggregate_positions(self._positions.values())

    async def run(self) -> None:
        """Start the pipeline and run until interrupted.

        Example:
            ```python
            pipeline = Pipeline()
            try:
                await pipeline.run()
            except KeyboardInterrupt:
                pass
            ```
        """
        await self.start()

        try:
            if self._stop_event:
                await self._stop_event.wait()
        except asyncio.CancelledError:
            pass
        finally:
            await self.stop()

    async def __aenter__(self) -> Pipeline:
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        await self.stop()
