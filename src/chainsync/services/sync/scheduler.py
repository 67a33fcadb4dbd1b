"""Block-driven sync cycle scheduler."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Sequence

from chainsync.core.exceptions import StuckCycleError, TransportError
from chainsync.infrastructure.blockchain.probe import ChainProbe
from chainsync.services.reconciler.base import MergeReport, Refreshable, gather_tolerant

logger = logging.getLogger(__name__)

POLLING_DELAY_SECONDS = 2.0
STUCK_THRESHOLD = 3


class SyncPhase(str, Enum):
    """Scheduler phase."""

    IDLE = "idle"
    RUNNING = "running"


@dataclass
class SyncCycleState:
    """Cycle bookkeeping of one scheduler."""

    last_completed_height: int = 0
    is_running: bool = False
    stuck_tick_counter: int = 0

    @property
    def phase(self) -> SyncPhase:
        return SyncPhase.RUNNING if self.is_running else SyncPhase.IDLE


@dataclass
class SyncStats:
    """Statistics for a sync scheduler."""

    ticks: int = 0
    cycles_completed: int = 0
    forced_resets: int = 0
    probe_failures: int = 0
    indexer_lag_skips: int = 0
    last_height_seen: int = 0
    last_cycle_at: datetime | None = None
    last_cycle_duration_ms: float = 0.0
    last_error: str = ""
    last_reports: list[MergeReport] = field(default_factory=list)


class SyncScheduler:
    """Runs one sync cycle per new block height of a chain.

    Features:
    - Ticks every ``poll_interval`` seconds, each tick as its own task
    - At most one cycle in flight; a new cycle only starts once the chain
      height moved past the last completed one
    - A cycle still running after ``stuck_threshold`` ticks is cancelled
      and the scheduler goes back to idle
    - Optionally waits for the routed indexer to reach the chain height
    """

    def __init__(
        self,
        probe: ChainProbe,
        reconcilers: Sequence[Refreshable],
        chain: str = "mainnet",
        poll_interval: float = POLLING_DELAY_SECONDS,
        stuck_threshold: int = STUCK_THRESHOLD,
        start_height: int = 0,
        indexer_height: Callable[[], Awaitable[int | None]] | None = None,
    ):
        """Initialize sync scheduler.

        Args:
            probe: Block height probe of the chain
            reconcilers: Refreshed concurrently on every cycle
            chain: Chain name used in logs
            poll_interval: Seconds between ticks
            stuck_threshold: Ticks after which a running cycle is reset
            start_height: Height treated as already synchronized
            indexer_height: Coroutine function fetching the routed indexer height,
                enables the indexer gate when given
        """
        if stuck_threshold < 1:
            raise ValueError("stuck_threshold must be at least 1")
        self.probe = probe
        self.reconcilers = list(reconcilers)
        self.chain = chain
        self.poll_interval = poll_interval
        self.stuck_threshold = stuck_threshold
        self._indexer_height = indexer_height

        self.state = SyncCycleState(last_completed_height=start_height)
        self.stats = SyncStats()

        self._running = False
        self._task: asyncio.Task | None = None
        self._cycle_task: asyncio.Task | None = None
        self._ticks: set[asyncio.Task] = set()

    @property
    def is_started(self) -> bool:
        return self._running

    async def tick(self) -> bool:
        """Evaluate the chain height once and run a cycle if due.

        Returns:
            True when a cycle ran to completion during this tick
        """
        self.stats.ticks += 1

        if self.state.is_running:
            self.state.stuck_tick_counter += 1
            if self.state.stuck_tick_counter >= self.stuck_threshold:
                self._force_reset()
            return False

        try:
            height = await self.probe.current_block_height()
        except TransportError as e:
            self.stats.probe_failures += 1
            self.stats.last_error = str(e)
            logger.warning(f"Block height probe failed on {self.chain}: {e}")
            return False

        self.stats.last_height_seen = height

        # Another tick may have started a cycle while the probe was pending
        if self.state.is_running or height <= self.state.last_completed_height:
            return False

        if self._indexer_height is not None:
            indexer_block = await self._indexer_height()
            if indexer_block is None or indexer_block < height:
                self.stats.indexer_lag_skips += 1
                logger.debug(
                    f"Indexer is not ready on {self.chain}: "
                    f"indexer at {indexer_block}, chain at {height}"
                )
                return False
            if self.state.is_running or height <= self.state.last_completed_height:
                return False

        return await self._run_cycle(height)

    async def _run_cycle(self, height: int) -> bool:
        self.state.is_running = True
        self.state.stuck_tick_counter = 0
        started = time.monotonic()
        logger.debug(f"Sync cycle started on {self.chain} at block {height}")

        task = asyncio.create_task(self._fan_out())
        self._cycle_task = task
        await asyncio.wait({task})

        if task.cancelled() or self._cycle_task is not task:
            logger.debug(f"Sync cycle on {self.chain} at block {height} was abandoned")
            return False

        reports = task.result()
        self._cycle_task = None
        self.state.last_completed_height = height
        self.state.stuck_tick_counter = 0
        self.state.is_running = False

        self.stats.cycles_completed += 1
        self.stats.last_cycle_at = datetime.now(timezone.utc)
        self.stats.last_cycle_duration_ms = (time.monotonic() - started) * 1000
        self.stats.last_reports = reports
        logger.info(
            f"Sync cycle on {self.chain} completed at block {height} "
            f"in {self.stats.last_cycle_duration_ms:.0f}ms"
        )
        return True

    async def _fan_out(self) -> list[MergeReport]:
        outcomes = await gather_tolerant(r.refresh() for r in self.reconcilers)
        reports: list[MergeReport] = []
        for reconciler, outcome in zip(self.reconcilers, outcomes):
            if outcome.ok:
                reports.append(outcome.value)
            else:
                logger.error(f"{reconciler.name} refresh failed: {outcome.error!r}")
                reports.append(
                    MergeReport(entity=reconciler.name, skipped=True, error=repr(outcome.error))
                )
        return reports

    def _force_reset(self) -> None:
        error = StuckCycleError(self.chain, self.state.stuck_tick_counter)
        logger.error(str(error))

        if self._cycle_task is not None and not self._cycle_task.done():
            self._cycle_task.cancel()
        self._cycle_task = None
        self.state.is_running = False
        self.state.stuck_tick_counter = 0
        self.stats.forced_resets += 1
        self.stats.last_error = str(error)

    async def start(self) -> None:
        """Start ticking."""
        if self._running:
            logger.warning(f"Sync scheduler for {self.chain} is already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._tick_loop())
        logger.info(f"Sync scheduler for {self.chain} started")

    async def stop(self) -> None:
        """Stop ticking and cancel any in-flight work."""
        self._running = False
        pending = [t for t in (self._task, self._cycle_task) if t is not None]
        pending.extend(self._ticks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        self._task = None
        self._cycle_task = None
        self._ticks.clear()
        self.state.is_running = False
        self.state.stuck_tick_counter = 0
        logger.info(f"Sync scheduler for {self.chain} stopped")

    async def _tick_loop(self) -> None:
        """Launch a tick every poll interval without waiting for it."""
        while self._running:
            task = asyncio.create_task(self.tick())
            self._ticks.add(task)
            task.add_done_callback(self._tick_done)
            await asyncio.sleep(self.poll_interval)

    def _tick_done(self, task: asyncio.Task) -> None:
        self._ticks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.stats.last_error = str(error)
            logger.error(f"Sync tick on {self.chain} failed: {error!r}")
