"""Data source schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class DataSource(str, Enum):
    """Indexer role."""

    PRIMARY = "primary"
    BACKUP = "backup"


class IndexerStatus(BaseModel):
    """Result of one indexer health probe.

    Instances are immutable; every probe produces a new one.
    """

    model_config = ConfigDict(frozen=True)

    source: DataSource = Field(..., description="Indexer role")
    url: str = Field(..., description="Indexer base URL")
    is_healthy: bool = Field(default=False, description="Probe verdict")
    block_number: int = Field(default=0, description="Latest indexed block")
    block_timestamp: int = Field(default=0, description="Latest indexed block timestamp")
    latency_ms: float = Field(default=0.0, description="Probe latency in ms")
    consecutive_failures: int = Field(default=0, description="Failures since last success")
    last_checked_at: datetime = Field(..., description="Probe time")
    error: str | None = Field(default=None, description="Failure reason")


class HealthReport(BaseModel):
    """Status reporting contract consumed by the monitoring endpoint."""

    primary: IndexerStatus | None = Field(None, description="Latest primary status")
    backup: IndexerStatus | None = Field(None, description="Latest backup status")
    current_source: DataSource = Field(..., description="Source queries are routed to")


class SourceStatusView(BaseModel):
    """One indexer entry of the system status report."""

    url: str
    status: str = Field(..., description="healthy, unhealthy or unknown")
    block_number: str = "0"
    block_timestamp: int = 0
    latency_ms: float = 0.0
    consecutive_failures: int = 0
    last_checked: datetime | None = None
    error: str | None = None


class DataSourcesView(BaseModel):
    current: DataSource
    primary: SourceStatusView
    backup: SourceStatusView | None = None


class ApiView(BaseModel):
    status: str = "healthy"
    version: str
    uptime: int = Field(..., description="Uptime in seconds")


class DatabaseView(BaseModel):
    status: str = Field(..., description="connected or disabled")
    enabled: bool


class SystemStatus(BaseModel):
    """System status report."""

    api: ApiView
    data_sources: DataSourcesView
    database: DatabaseView
