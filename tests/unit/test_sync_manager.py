"""Tests for sync manager wiring and lifecycle."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from chainsync.core.config import Settings
from chainsync.core.exceptions import TransportError
from chainsync.services.data_source import DataSource, IndexerStatus
from chainsync.services.reconciler import MergeReport
from chainsync.services.sync import SyncManager, SyncPhase, create_sync_manager


def make_settings(**overrides) -> Settings:
    values = {
        "indexer_url": "https://primary.test",
        "backup_indexer_url": "https://backup.test",
        "rpc_urls": {"mainnet": "https://rpc.mainnet.test", "polygon": "https://rpc.polygon.test"},
        "database_enabled": False,
    }
    values.update(overrides)
    return Settings(**values)


class TestCreateSyncManager:
    """Tests for create_sync_manager."""

    def test_wiring(self):
        """Test one scheduler per chain, reconcilers on the primary chain only."""
        manager = create_sync_manager(make_settings())

        assert isinstance(manager, SyncManager)
        assert set(manager.schedulers) == {"mainnet", "polygon"}
        assert len(manager.reconcilers) == 9
        assert manager.schedulers["mainnet"].reconcilers == manager.reconcilers
        assert manager.schedulers["polygon"].reconcilers == []
        assert manager.health.backup.base_url == "https://backup.test"
        assert manager.health.store is None
        assert manager.engine is None

    def test_scheduler_settings(self):
        """Test polling and stuck threshold come from settings."""
        manager = create_sync_manager(
            make_settings(polling_delay=4.0, indexing_timeout_count=5)
        )
        scheduler = manager.schedulers["mainnet"]

        assert scheduler.poll_interval == 4.0
        assert scheduler.stuck_threshold == 5

    def test_indexer_gate(self):
        """Test the indexer gate is only installed on the primary chain."""
        manager = create_sync_manager(make_settings())

        assert manager.schedulers["mainnet"]._indexer_height == manager.routed_indexer_height
        assert manager.schedulers["polygon"]._indexer_height is None

        manager = create_sync_manager(make_settings(require_indexer_caught_up=False))
        assert manager.schedulers["mainnet"]._indexer_height is None

    def test_without_backup(self):
        """Test no backup client without a backup URL."""
        manager = create_sync_manager(make_settings(backup_indexer_url=None))

        assert manager.health.backup is None

    def test_missing_primary_chain(self):
        """Test a primary chain without RPC URL is rejected."""
        with pytest.raises(ValueError):
            create_sync_manager(make_settings(primary_chain="gnosis"))

    def test_database_store(self):
        """Test health persistence is wired when the database is enabled."""
        with patch("chainsync.services.sync.manager.create_async_db_engine") as create_engine:
            manager = create_sync_manager(make_settings(database_enabled=True))

        assert manager.engine is create_engine.return_value
        assert manager.health.store is not None


class TestSyncManager:
    """Tests for SyncManager."""

    def setup_method(self):
        """Set up test fixtures."""
        self.manager = create_sync_manager(make_settings())

    def indexer_at(self, *blocks: int) -> AsyncMock:
        get_status = AsyncMock(
            side_effect=[
                {"mainnet": {"blockNumber": b, "blockTimestamp": 1_700_000_000}} for b in blocks
            ]
        )
        self.manager.health.primary.get_status = get_status
        return get_status

    @pytest.mark.asyncio
    async def test_routed_indexer_height(self):
        """Test the gate fetches the routed indexer's current block."""
        get_status = self.indexer_at(19_000_000, 19_000_001)

        assert await self.manager.routed_indexer_height() == 19_000_000
        assert await self.manager.routed_indexer_height() == 19_000_001
        assert get_status.await_count == 2
        assert self.manager.health.get_status(DataSource.PRIMARY).block_number == 19_000_001

    @pytest.mark.asyncio
    async def test_routed_indexer_height_unhealthy(self):
        """Test a failing routed indexer closes the gate."""
        self.manager.health.primary.get_status = AsyncMock(
            side_effect=TransportError("https://primary.test", "HTTP 503")
        )

        assert await self.manager.routed_indexer_height() is None
        assert self.manager.health.get_status(DataSource.PRIMARY).consecutive_failures == 1

    @pytest.mark.asyncio
    async def test_routed_indexer_height_uses_backup(self):
        """Test the gate follows the router to the backup indexer."""
        self.manager.health._statuses[DataSource.PRIMARY] = IndexerStatus(
            source=DataSource.PRIMARY,
            url="https://primary.test",
            is_healthy=False,
            consecutive_failures=1,
            last_checked_at=datetime.now(timezone.utc),
            error="HTTP 503",
        )
        self.manager.health._statuses[DataSource.BACKUP] = IndexerStatus(
            source=DataSource.BACKUP,
            url="https://backup.test",
            is_healthy=True,
            block_number=99,
            last_checked_at=datetime.now(timezone.utc),
        )
        self.manager.health.backup.get_status = AsyncMock(
            return_value={"mainnet": {"blockNumber": 120, "blockTimestamp": 1_700_000_000}}
        )

        assert await self.manager.routed_indexer_height() == 120

    @pytest.mark.asyncio
    async def test_cycle_per_block_with_indexer_in_step(self):
        """Test every new block runs a cycle while the indexer keeps pace."""
        heights = list(range(100, 106))
        get_status = self.indexer_at(*heights)

        scheduler = self.manager.schedulers["mainnet"]
        scheduler.probe = MagicMock()
        scheduler.probe.current_block_height = AsyncMock(side_effect=heights)
        reconciler = MagicMock()
        reconciler.name = "Things"
        reconciler.refresh = AsyncMock(return_value=MergeReport(entity="Things"))
        scheduler.reconcilers = [reconciler]

        completed = [await scheduler.tick() for _ in heights]

        assert completed == [True] * len(heights)
        assert scheduler.stats.indexer_lag_skips == 0
        assert scheduler.state.last_completed_height == 105
        assert reconciler.refresh.await_count == len(heights)
        assert get_status.await_count == len(heights)

    def test_get_sync_status(self):
        """Test status lists schedulers and reconcilers."""
        status = self.manager.get_sync_status()

        assert status.current_source == DataSource.PRIMARY
        assert [s.chain for s in status.schedulers] == ["mainnet", "polygon"]
        assert status.schedulers[0].phase == SyncPhase.IDLE
        assert len(status.reconcilers) == 9
        assert status.reconcilers[0].entity == "Positions V1"
        assert status.reconcilers[0].entries == 0

    @pytest.mark.asyncio
    async def test_reconciler_report_in_status(self):
        """Test the last refresh report shows up in the status."""
        self.manager.router.fetch_items = AsyncMock(
            return_value=[{"position": "0x" + "a1" * 20, "number": 0, "status": "Active"}]
        )
        reconciler = self.manager.challenges.challenges_v1

        await reconciler.refresh()
        status = self.manager.get_sync_status()

        view = next(r for r in status.reconcilers if r.entity == "Challenges V1")
        assert view.entries == 1
        assert view.version == 1
        assert view.pulled == 1
        assert view.source == DataSource.PRIMARY

    @pytest.mark.asyncio
    async def test_start_stop(self):
        """Test lifecycle starts and stops all components."""
        self.manager.health.start = AsyncMock()
        self.manager.health.stop = AsyncMock()
        for scheduler in self.manager.schedulers.values():
            scheduler.start = AsyncMock()
            scheduler.stop = AsyncMock()
        self.manager.health.primary.close = AsyncMock()
        self.manager.health.backup.close = AsyncMock()

        await self.manager.start()
        assert self.manager.is_started is True
        self.manager.health.start.assert_awaited_once_with(30.0)

        await self.manager.stop()
        assert self.manager.is_started is False
        for scheduler in self.manager.schedulers.values():
            scheduler.start.assert_awaited_once()
            scheduler.stop.assert_awaited_once()
        self.manager.health.primary.close.assert_awaited_once()
        self.manager.health.backup.close.assert_awaited_once()
