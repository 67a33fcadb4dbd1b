"""API v1 module."""

from fastapi import APIRouter

from chainsync.api.v1.endpoints import challenges, positions, status, sync

api_router = APIRouter()

# Include routers
api_router.include_router(status.router)
api_router.include_router(sync.router)
api_router.include_router(positions.router)
api_router.include_router(challenges.router)
