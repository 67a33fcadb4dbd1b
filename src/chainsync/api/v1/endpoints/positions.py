"""Positions API endpoints."""

from typing import Any

from fastapi import APIRouter, HTTPException, Path, status

from chainsync.api.deps import SyncManagerDep

router = APIRouter(prefix="/positions", tags=["Positions"])


def _mapping(positions: dict[str, dict[str, Any]]) -> dict[str, Any]:
    return {
        "num": len(positions),
        "addresses": [p["position"] for p in positions.values()],
        "map": positions,
    }


@router.get("")
async def list_positions(manager: SyncManagerDep) -> dict[str, Any]:
    """Get all known positions of both minting hubs."""
    positions = manager.positions.all()
    return {"num": len(positions), "list": list(positions.values())}


@router.get("/mapping")
async def get_positions_mapping(manager: SyncManagerDep) -> dict[str, Any]:
    return _mapping(manager.positions.all())


@router.get("/open")
async def get_open_positions(manager: SyncManagerDep) -> dict[str, Any]:
    """Get positions that are neither closed nor denied and hold collateral."""
    return _mapping(manager.positions.open())


@router.get("/requests")
async def get_position_requests(manager: SyncManagerDep) -> dict[str, Any]:
    """Get positions started within the last five days."""
    return _mapping(manager.positions.requests())


@router.get("/owners")
async def get_position_owners(manager: SyncManagerDep) -> dict[str, Any]:
    """Get positions grouped by owner."""
    owners = manager.positions.by_owner()
    return {"num": len(owners), "owners": list(owners), "map": owners}


@router.get("/mintingupdates/list")
async def list_minting_updates(manager: SyncManagerDep) -> dict[str, Any]:
    """Get the latest minting updates of both minting hubs, newest first."""
    updates = manager.positions.minting_updates()
    return {"num": len(updates), "list": updates}


@router.get("/mintingupdates/mapping")
async def get_minting_updates_mapping(manager: SyncManagerDep) -> dict[str, Any]:
    """Get the latest minting updates grouped by position."""
    updates = manager.positions.minting_updates_by_position()
    return {"num": len(updates), "positions": list(updates), "map": updates}


@router.get("/{address}")
async def get_position(
    manager: SyncManagerDep,
    address: str = Path(..., pattern=r"^0x[a-fA-F0-9]{40}$"),
) -> dict[str, Any]:
    """Get a single position by address."""
    position = manager.positions.get(address)
    if position is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"Position not found: {address}")
    return position
