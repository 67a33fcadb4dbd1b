"""System status report."""

import time

from chainsync import __version__
from chainsync.services.data_source.health import IndexerHealthMonitor
from chainsync.services.data_source.schemas import (
    ApiView,
    DatabaseView,
    DataSourcesView,
    IndexerStatus,
    SourceStatusView,
    SystemStatus,
)


def _source_view(status: IndexerStatus | None, url: str) -> SourceStatusView:
    if status is None:
        return SourceStatusView(url=url, status="unknown", error="Not yet checked")
    return SourceStatusView(
        url=status.url,
        status="healthy" if status.is_healthy else "unhealthy",
        block_number=str(status.block_number),
        block_timestamp=status.block_timestamp,
        latency_ms=round(status.latency_ms, 1),
        consecutive_failures=status.consecutive_failures,
        last_checked=status.last_checked_at,
        error=status.error,
    )


class StatusService:
    """Builds the status report from the health monitor."""

    def __init__(self, health: IndexerHealthMonitor, database_enabled: bool = False):
        self.health = health
        self.database_enabled = database_enabled
        self._start_time = time.time()

    @property
    def uptime_seconds(self) -> int:
        return int(time.time() - self._start_time)

    def get_system_status(self) -> SystemStatus:
        report = self.health.get_health_status()

        backup = None
        if self.health.backup is not None:
            backup = _source_view(report.backup, self.health.backup.base_url)

        return SystemStatus(
            api=ApiView(version=__version__, uptime=self.uptime_seconds),
            data_sources=DataSourcesView(
                current=report.current_source,
                primary=_source_view(report.primary, self.health.primary.base_url),
                backup=backup,
            ),
            database=DatabaseView(
                status="connected" if self.database_enabled else "disabled",
                enabled=self.database_enabled,
            ),
        )
