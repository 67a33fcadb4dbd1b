"""Challenges API endpoints."""

from typing import Any

from fastapi import APIRouter

from chainsync.api.deps import SyncManagerDep

router = APIRouter(prefix="/challenges", tags=["Challenges"])


@router.get("")
async def list_challenges(manager: SyncManagerDep) -> dict[str, Any]:
    """Get all challenges of both minting hubs."""
    challenges = manager.challenges.challenges()
    return {"num": len(challenges), "list": list(challenges.values())}


@router.get("/prices")
async def get_challenge_prices(manager: SyncManagerDep) -> dict[str, str]:
    """Get the latest auction price per active challenge id."""
    return manager.challenges.challenge_prices()


@router.get("/positions")
async def get_challenges_by_position(manager: SyncManagerDep) -> dict[str, Any]:
    grouped = manager.challenges.by_position()
    return {"num": len(grouped), "positions": list(grouped), "map": grouped}


@router.get("/challengers")
async def get_challenges_by_challenger(manager: SyncManagerDep) -> dict[str, Any]:
    grouped = manager.challenges.by_challenger()
    return {"num": len(grouped), "challengers": list(grouped), "map": grouped}


@router.get("/bids")
async def list_bids(manager: SyncManagerDep) -> dict[str, Any]:
    """Get all bids of both minting hubs."""
    bids = manager.challenges.bids()
    return {"num": len(bids), "list": list(bids.values())}


@router.get("/bids/challenges")
async def get_bids_by_challenge(manager: SyncManagerDep) -> dict[str, Any]:
    """Get bids grouped by challenge id."""
    grouped = manager.challenges.bids_by_challenge()
    return {"num": len(grouped), "challenges": list(grouped), "map": grouped}
