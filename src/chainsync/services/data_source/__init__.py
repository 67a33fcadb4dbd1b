"""Indexer data source module."""

from chainsync.services.data_source.health import IndexerHealthMonitor, parse_status_block
from chainsync.services.data_source.router import SourceRouter
from chainsync.services.data_source.schemas import (
    DataSource,
    HealthReport,
    IndexerStatus,
    SystemStatus,
)
from chainsync.services.data_source.status import StatusService

__all__ = [
    "DataSource",
    "HealthReport",
    "IndexerHealthMonitor",
    "IndexerStatus",
    "SourceRouter",
    "StatusService",
    "SystemStatus",
    "parse_status_block",
]
