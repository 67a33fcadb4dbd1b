"""Database models."""

from chainsync.models.base import Base, TimestampMixin
from chainsync.models.indexer_health import IndexerHealthRecord

__all__ = [
    "Base",
    "TimestampMixin",
    "IndexerHealthRecord",
]
