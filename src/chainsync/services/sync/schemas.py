"""Sync status response models."""

from datetime import datetime

from pydantic import BaseModel, Field

from chainsync.services.data_source.schemas import DataSource
from chainsync.services.sync.scheduler import SyncPhase


class ReconcilerView(BaseModel):
    """State of one entity snapshot."""

    entity: str
    entries: int = Field(..., description="Entries in the published snapshot")
    version: int = Field(..., description="Number of snapshots published")
    source: DataSource | None = None
    skipped: bool = False
    pulled: int = 0
    corrected: int = 0
    retained: int = 0
    duration_ms: float = 0.0
    finished_at: datetime | None = None
    error: str | None = None


class SchedulerView(BaseModel):
    """State of one chain's scheduler."""

    chain: str
    phase: SyncPhase
    last_completed_height: int
    stuck_tick_counter: int
    ticks: int
    cycles_completed: int
    forced_resets: int
    probe_failures: int
    indexer_lag_skips: int
    last_height_seen: int
    last_cycle_at: datetime | None = None
    last_cycle_duration_ms: float = 0.0
    last_error: str = ""


class SyncStatusView(BaseModel):
    """Overall synchronization state."""

    current_source: DataSource
    schedulers: list[SchedulerView]
    reconcilers: list[ReconcilerView]
