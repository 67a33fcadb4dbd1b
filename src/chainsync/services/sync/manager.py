"""Wiring and lifecycle of the synchronization core."""

import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from chainsync.core.config import Settings
from chainsync.infrastructure.blockchain.client import Web3ChainClient
from chainsync.infrastructure.blockchain.contracts import ContractReader
from chainsync.infrastructure.blockchain.probe import ChainProbe
from chainsync.infrastructure.database.session import (
    create_async_db_engine,
    create_session_factory,
)
from chainsync.infrastructure.indexer.client import IndexerClient
from chainsync.repositories.indexer_health import IndexerHealthStore
from chainsync.services.data_source.health import IndexerHealthMonitor
from chainsync.services.data_source.router import SourceRouter
from chainsync.services.data_source.status import StatusService
from chainsync.services.entities.challenges import ChallengesService
from chainsync.services.entities.positions import PositionsService
from chainsync.services.reconciler.base import EntityReconciler
from chainsync.services.sync.scheduler import SyncScheduler
from chainsync.services.sync.schemas import ReconcilerView, SchedulerView, SyncStatusView

logger = logging.getLogger(__name__)


class SyncManager:
    """Owns the health monitor, the entity services and one scheduler per chain."""

    def __init__(
        self,
        health: IndexerHealthMonitor,
        router: SourceRouter,
        positions: PositionsService,
        challenges: ChallengesService,
        schedulers: dict[str, SyncScheduler],
        status: StatusService,
        health_check_interval: float = 30.0,
        engine: AsyncEngine | None = None,
    ):
        self.health = health
        self.router = router
        self.positions = positions
        self.challenges = challenges
        self.schedulers = schedulers
        self.status = status
        self.health_check_interval = health_check_interval
        self.engine = engine
        self._started = False

    @property
    def reconcilers(self) -> list[EntityReconciler]:
        return self.positions.reconcilers + self.challenges.reconcilers

    @property
    def is_started(self) -> bool:
        return self._started

    async def start(self) -> None:
        """Start health probes and every scheduler."""
        if self._started:
            logger.warning("Sync manager is already running")
            return

        await self.health.start(self.health_check_interval)
        for scheduler in self.schedulers.values():
            await scheduler.start()
        self._started = True
        logger.info(f"Sync manager started for chains: {', '.join(self.schedulers)}")

    async def stop(self) -> None:
        """Stop schedulers and probes, then release network resources."""
        for scheduler in self.schedulers.values():
            await scheduler.stop()
        await self.health.stop()

        await self.health.primary.close()
        if self.health.backup is not None:
            await self.health.backup.close()
        if self.engine is not None:
            await self.engine.dispose()

        self._started = False
        logger.info("Sync manager stopped")

    async def routed_indexer_height(self) -> int | None:
        """Fetch the block height of the indexer queries are currently routed to.

        The routed indexer is probed on every call, so the result tracks the
        indexer head instead of the last periodic health round.
        """
        role = self.router.determine_source()
        endpoint = self.health.client_for(role)
        if endpoint is None:
            return None
        status = await self.health.check_health(endpoint, role)
        if not status.is_healthy:
            return None
        return status.block_number

    def get_sync_status(self) -> SyncStatusView:
        schedulers = [
            SchedulerView(
                chain=chain,
                phase=s.state.phase,
                last_completed_height=s.state.last_completed_height,
                stuck_tick_counter=s.state.stuck_tick_counter,
                ticks=s.stats.ticks,
                cycles_completed=s.stats.cycles_completed,
                forced_resets=s.stats.forced_resets,
                probe_failures=s.stats.probe_failures,
                indexer_lag_skips=s.stats.indexer_lag_skips,
                last_height_seen=s.stats.last_height_seen,
                last_cycle_at=s.stats.last_cycle_at,
                last_cycle_duration_ms=s.stats.last_cycle_duration_ms,
                last_error=s.stats.last_error,
            )
            for chain, s in self.schedulers.items()
        ]

        reconcilers = []
        for r in self.reconcilers:
            report = r.last_report
            view = ReconcilerView(entity=r.name, entries=len(r), version=r.version)
            if report is not None:
                view = view.model_copy(
                    update={
                        "source": report.source,
                        "skipped": report.skipped,
                        "pulled": report.pulled,
                        "corrected": report.corrected,
                        "retained": report.retained,
                        "duration_ms": report.duration_ms,
                        "finished_at": report.finished_at,
                        "error": report.error,
                    }
                )
            reconcilers.append(view)

        return SyncStatusView(
            current_source=self.router.current_source,
            schedulers=schedulers,
            reconcilers=reconcilers,
        )


def create_sync_manager(settings: Settings) -> SyncManager:
    """Build the synchronization core from settings."""
    primary_rpc_url = settings.primary_rpc_url

    primary = IndexerClient(settings.indexer_url, timeout=settings.indexer_query_timeout)
    backup = None
    if settings.has_backup_indexer:
        backup = IndexerClient(settings.backup_indexer_url, timeout=settings.indexer_query_timeout)

    engine = None
    store = None
    if settings.database_enabled:
        engine = create_async_db_engine(settings)
        store = IndexerHealthStore(create_session_factory(engine))

    health = IndexerHealthMonitor(
        primary,
        backup,
        chain_keys=settings.indexer_status_keys,
        timeout=settings.indexer_status_timeout,
        store=store,
    )
    router = SourceRouter(health)

    reader = ContractReader(Web3ChainClient(primary_rpc_url, chain=settings.primary_chain))
    positions = PositionsService(
        router, reader, settings.savings_address, limit=settings.indexer_query_limit
    )
    challenges = ChallengesService(
        router,
        reader,
        minting_hubs={
            1: settings.minting_hub_v1_address,
            2: settings.minting_hub_v2_address,
        },
        limit=settings.indexer_query_limit,
    )

    manager = SyncManager(
        health=health,
        router=router,
        positions=positions,
        challenges=challenges,
        schedulers={},
        status=StatusService(health, database_enabled=settings.database_enabled),
        health_check_interval=settings.health_check_interval,
        engine=engine,
    )

    for chain, rpc_url in settings.rpc_urls.items():
        is_primary = chain == settings.primary_chain
        client = reader.client if is_primary else Web3ChainClient(rpc_url, chain=chain)
        gate = None
        if is_primary and settings.require_indexer_caught_up:
            gate = manager.routed_indexer_height
        manager.schedulers[chain] = SyncScheduler(
            ChainProbe(client, chain=chain),
            manager.reconcilers if is_primary else [],
            chain=chain,
            poll_interval=settings.polling_delay,
            stuck_threshold=settings.indexing_timeout_count,
            indexer_height=gate,
        )

    return manager
