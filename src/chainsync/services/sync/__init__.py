"""Sync scheduling module."""

from chainsync.services.sync.manager import SyncManager, create_sync_manager
from chainsync.services.sync.scheduler import (
    SyncCycleState,
    SyncPhase,
    SyncScheduler,
    SyncStats,
)

__all__ = [
    "SyncCycleState",
    "SyncManager",
    "SyncPhase",
    "SyncScheduler",
    "SyncStats",
    "create_sync_manager",
]
