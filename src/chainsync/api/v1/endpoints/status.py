"""Data source status API endpoints."""

from fastapi import APIRouter

from chainsync.api.deps import SyncManagerDep
from chainsync.services.data_source.schemas import HealthReport, SystemStatus

router = APIRouter(prefix="/status", tags=["Status"])


@router.get("", response_model=SystemStatus)
async def get_system_status(manager: SyncManagerDep) -> SystemStatus:
    """Get API, indexer and database status.

    Returns:
        System status report
    """
    return manager.status.get_system_status()


@router.get("/indexers", response_model=HealthReport)
async def get_indexer_health(manager: SyncManagerDep) -> HealthReport:
    """Get the raw health statuses of both indexers."""
    return manager.health.get_health_status()
