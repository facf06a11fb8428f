"""Poll scheduler for periodic and manual ingestion cycles.

The scheduler is a three-state machine:

- ``IDLE``: no timers. Polling is disabled or no wallets are tracked.
- ``ARMED``: countdown and fire timers are running.
- ``FETCHING``: a cycle is in progress (automatic or manual).

Entering ``ARMED`` fires a cycle immediately. After every cycle the countdown
resets to the configured interval and the fire timer is re-armed. Disarming
cancels the timers but never an in-flight cycle, whose results are still
merged by the cycle callable.

Timers go through a ``Clock`` so tests can drive virtual time.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, Protocol

from solana_copytrader.config import DEFAULT_POLL_INTERVAL_SECONDS, clamp_poll_interval

logger = logging.getLogger(__name__)

COUNTDOWN_TICK_SECONDS = 1.0

Cycle = Callable[[], Awaitable[Any]]


class SchedulerState(str, Enum):
    """Poll scheduler states."""

    IDLE = "idle"
    ARMED = "armed"
    FETCHING = "fetching"


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Clock(Protocol):
    """Source of time and one-shot timers."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...

    def time(self) -> float: ...


class LoopClock:
    """Clock backed by the running asyncio event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)

    def time(self) -> float:
        return time.time()


class PollScheduler:
    """Drives an ingestion cycle on a timer with a visible countdown.

    Example:
        ```python
        scheduler = PollScheduler(orchestrator_cycle, interval_seconds=60)
        scheduler.set_has_wallets(True)
        scheduler.set_enabled(True)  # fires immediately, then every 60s
        await scheduler.trigger_now()
        await scheduler.stop()
        ```
    """

    def __init__(
        self,
        cycle: Cycle,
        *,
        interval_seconds: int = DEFAULT_POLL_INTERVAL_SECONDS,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the scheduler in the IDLE state.

        Args:
            cycle: Coroutine function running one ingestion cycle.
            interval_seconds: Seconds between automatic cycles (clamped).
            clock: Timer source. Defaults to the running event loop.
        """
        self._cycle = cycle
        self._interval = clamp_poll_interval(interval_seconds)
        self._clock: Clock = clock or LoopClock()

        self._enabled = False
        self._has_wallets = False
        self._armed = False
        self._countdown = 0

        self._fire_handle: TimerHandle | None = None
        self._tick_handle: TimerHandle | None = None
        self._task: asyncio.Task[None] | None = None

        self._last_poll_time: float | None = None
        self._last_error: BaseException | None = None

    @property
    def state(self) -> SchedulerState:
        if self.is_fetching:
            return SchedulerState.FETCHING
        if self._armed:
            return SchedulerState.ARMED
        return SchedulerState.IDLE

    @property
    def is_fetching(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def interval_seconds(self) -> int:
        return self._interval

    @property
    def countdown(self) -> int:
        """Seconds until the next automatic cycle (0 when idle)."""
        return self._countdown

    @property
    def last_poll_time(self) -> float | None:
        """Clock time of the last successful cycle."""
        return self._last_poll_time

    @property
    def last_error(self) -> BaseException | None:
        return self._last_error

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled
        self._update()

    def set_has_wallets(self, has_wallets: bool) -> None:
        self._has_wallets = has_wallets
        self._update()

    def set_interval(self, seconds: int) -> None:
        """Change the interval. Applies at the next countdown reset."""
        self._interval = clamp_poll_interval(seconds)

    async def trigger_now(self) -> None:
        """Run a cycle now, or join the one already in flight."""
        if not self.is_fetching:
            self._cancel(self._fire_handle)
            self._fire_handle = None
            self._start_cycle()
        await self.wait_for_cycle()

    async def wait_for_cycle(self) -> None:
        """Wait until the in-flight cycle, if any, completes."""
        if self._task is not None:
            await asyncio.shield(self._task)

    async def stop(self) -> None:
        """Disarm and cancel any in-flight cycle. Used on shutdown."""
        self._enabled = False
        self._disarm()
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _update(self) -> None:
        should_arm = self._enabled and self._has_wallets
        if should_arm and not self._armed:
            self._arm()
        elif not should_arm and self._armed:
            self._disarm()

    def _arm(self) -> None:
        self._armed = True
        self._countdown = self._interval
        self._schedule_tick()
        logger.info("Polling armed (every %ds)", self._interval)
        if not self.is_fetching:
            self._start_cycle()

    def _disarm(self) -> None:
        self._armed = False
        self._cancel(self._fire_handle)
        self._cancel(self._tick_handle)
        self._fire_handle = None
        self._tick_handle = None
        self._countdown = 0
        logger.info("Polling disarmed")

    @staticmethod
    def _cancel(handle: TimerHandle | None) -> None:
        if handle is not None:
            handle.cancel()

    def _schedule_tick(self) -> None:
        self._tick_handle = self._clock.call_later(COUNTDOWN_TICK_SECONDS, self._on_tick)

    def _on_tick(self) -> None:
        if not self._armed:
            return
        self._countdown = max(0, self._countdown - 1)
        self._schedule_tick()

    def _on_fire(self) -> None:
        self._fire_handle = None
        if self._armed and not self.is_fetching:
            self._start_cycle()

    def _start_cycle(self) -> None:
        self._task = asyncio.get_running_loop().create_task(self._run_cycle())

    async def _run_cycle(self) -> None:
        try:
            await self._cycle()
            self._last_poll_time = self._clock.time()
            self._last_error = None
        except Exception as e:
            self._last_error = e
            logger.error("Poll cycle failed: %s", e)
        finally:
            if self._armed:
                self._countdown = self._interval
                self._cancel(self._fire_handle)
                self._fire_handle = self._clock.call_later(self._interval, self._on_fire)
