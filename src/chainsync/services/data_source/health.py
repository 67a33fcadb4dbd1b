"""Indexer health monitoring and source selection."""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Protocol

from chainsync.core.exceptions import MalformedResponseError, TransportError
from chainsync.infrastructure.indexer.client import IndexerClient
from chainsync.services.data_source.schemas import DataSource, HealthReport, IndexerStatus

logger = logging.getLogger(__name__)

STATUS_TIMEOUT_SECONDS = 5.0


class HealthStatusStore(Protocol):
    """Persistence target for probe results."""

    async def save(self, status: IndexerStatus) -> None: ...


def parse_status_block(
    payload: dict[str, Any], chain_keys: list[str] | tuple[str, ...]
) -> tuple[int, int]:
    """Extract (block number, block timestamp) from an indexer status payload.

    Both ``{chain: {block: {number, timestamp}}}`` and the older flat
    ``{chain: {blockNumber, blockTimestamp}}`` shapes are accepted. Chain keys
    are tried in order; a missing chain yields ``(0, 0)``.

    Raises:
        MalformedResponseError: Values present but not integers
    """
    chain: Any = None
    for key in chain_keys:
        chain = payload.get(key)
        if chain is not None:
            break

    if chain is None:
        return 0, 0
    if not isinstance(chain, dict):
        raise MalformedResponseError("status", f"chain entry is {type(chain).__name__}")

    block = chain.get("block")
    if isinstance(block, dict):
        number = block.get("number") or chain.get("blockNumber") or 0
        timestamp = block.get("timestamp") or chain.get("blockTimestamp") or 0
    else:
        number = chain.get("blockNumber") or 0
        timestamp = chain.get("blockTimestamp") or 0

    try:
        return int(number), int(timestamp)
    except (TypeError, ValueError) as e:
        raise MalformedResponseError("status", f"invalid block values: {e}") from e


class IndexerHealthMonitor:
    """Monitors health of the primary and backup indexers.

    Features:
    - Probes each indexer's ``/status`` endpoint with a hard timeout
    - Tracks consecutive failures per role, reset on the first success
    - Warns when an indexer's block height goes backwards (reindexing)
    - Persists results best-effort when a store is configured
    - Decides which indexer queries should be routed to
    """

    def __init__(
        self,
        primary: IndexerClient,
        backup: IndexerClient | None = None,
        chain_keys: list[str] | tuple[str, ...] = ("Ethereum", "mainnet"),
        timeout: float = STATUS_TIMEOUT_SECONDS,
        store: HealthStatusStore | None = None,
    ):
        """Initialize health monitor.

        Args:
            primary: Primary indexer client
            backup: Optional backup indexer client
            chain_keys: Status payload keys tried in order
            timeout: Probe timeout in seconds
            store: Optional persistence target
        """
        self.primary = primary
        self.backup = backup
        self.chain_keys = tuple(chain_keys)
        self.timeout = timeout
        self.store = store

        self._statuses: dict[DataSource, IndexerStatus] = {}
        self._task: asyncio.Task | None = None
        self._running = False

    def get_status(self, role: DataSource) -> IndexerStatus | None:
        """Get the latest stored status for a role."""
        return self._statuses.get(role)

    def client_for(self, role: DataSource) -> IndexerClient | None:
        """Get the configured client for a role."""
        return self.primary if role == DataSource.PRIMARY else self.backup

    async def check_health(self, endpoint: IndexerClient, role: DataSource) -> IndexerStatus:
        """Probe one indexer and store the result for its role.

        Args:
            endpoint: Indexer to probe
            role: Role the result is stored under

        Returns:
            The new status, which replaces the previous one
        """
        previous = self._statuses.get(role)
        started = time.monotonic()
        block_number = 0
        block_timestamp = 0
        error: str | None = None

        try:
            payload = await asyncio.wait_for(
                endpoint.get_status(timeout=self.timeout), timeout=self.timeout
            )
            block_number, block_timestamp = parse_status_block(payload, self.chain_keys)
            if block_number <= 0:
                error = "Block number is 0"
        except asyncio.TimeoutError:
            error = f"Status request timed out after {self.timeout}s"
        except (TransportError, MalformedResponseError) as e:
            error = str(e)
        except Exception as e:
            error = str(e) or repr(e)

        latency_ms = (time.monotonic() - started) * 1000
        is_healthy = error is None

        if is_healthy:
            consecutive_failures = 0
            if previous and previous.is_healthy and block_number < previous.block_number:
                logger.warning(
                    f"Indexer {role.value} ({endpoint.base_url}) went back from block "
                    f"{previous.block_number} to {block_number}, reindexing?"
                )
        else:
            consecutive_failures = (previous.consecutive_failures if previous else 0) + 1
            logger.warning(
                f"Indexer {role.value} ({endpoint.base_url}) health check failed "
                f"({consecutive_failures}x): {error}"
            )

        status = IndexerStatus(
            source=role,
            url=endpoint.base_url,
            is_healthy=is_healthy,
            block_number=block_number,
            block_timestamp=block_timestamp,
            latency_ms=latency_ms,
            consecutive_failures=consecutive_failures,
            last_checked_at=datetime.now(timezone.utc),
            error=error,
        )
        self._statuses[role] = status

        await self._persist(status)
        return status

    async def check_all(self) -> dict[DataSource, IndexerStatus | None]:
        """Probe the primary and, when configured, the backup indexer."""
        primary = await self.check_health(self.primary, DataSource.PRIMARY)
        backup = None
        if self.backup is not None:
            backup = await self.check_health(self.backup, DataSource.BACKUP)
        return {DataSource.PRIMARY: primary, DataSource.BACKUP: backup}

    def determine_source(self) -> DataSource:
        """Decide which indexer to query.

        Returns primary when healthy, else backup when configured and
        healthy, else primary again as a best-effort default.
        """
        primary = self._statuses.get(DataSource.PRIMARY)
        if primary is not None and primary.is_healthy:
            return DataSource.PRIMARY

        backup = self._statuses.get(DataSource.BACKUP)
        if self.backup is not None and backup is not None and backup.is_healthy:
            logger.warning("Primary indexer unhealthy, using backup indexer")
            return DataSource.BACKUP

        if primary is not None:
            logger.error("Both indexers unhealthy - will keep attempting primary")
        return DataSource.PRIMARY

    def get_health_status(self) -> HealthReport:
        """Get current health status of both indexers."""
        return HealthReport(
            primary=self._statuses.get(DataSource.PRIMARY),
            backup=self._statuses.get(DataSource.BACKUP) if self.backup else None,
            current_source=self.determine_source(),
        )

    async def _persist(self, status: IndexerStatus) -> None:
        if self.store is None:
            return
        try:
            await self.store.save(status)
        except Exception as e:
            logger.error(f"Failed to persist indexer health status: {e}")

    async def start(self, interval: float) -> None:
        """Start periodic health probes.

        Args:
            interval: Seconds between probe rounds
        """
        if self._running:
            logger.warning("Indexer health monitor is already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._check_loop(interval))
        logger.info("Indexer health monitor started")

    async def stop(self) -> None:
        """Stop periodic health probes."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Indexer health monitor stopped")

    async def _check_loop(self, interval: float) -> None:
        """Main probe loop."""
        while self._running:
            try:
                await self.check_all()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Indexer health round failed: {e}")
            await asyncio.sleep(interval)
