"""Frankencoin entity services."""

from chainsync.services.entities.challenges import ChallengesService
from chainsync.services.entities.positions import PositionsService

__all__ = ["ChallengesService", "PositionsService"]
