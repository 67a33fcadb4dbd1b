"""Repositories."""

from chainsync.repositories.base import BaseRepository
from chainsync.repositories.indexer_health import IndexerHealthRepository, IndexerHealthStore

__all__ = [
    "BaseRepository",
    "IndexerHealthRepository",
    "IndexerHealthStore",
]
