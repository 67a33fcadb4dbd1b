"""Indexer infrastructure module."""

from chainsync.infrastructure.indexer.client import IndexerClient
from chainsync.infrastructure.indexer.query import DEFAULT_LIMIT, ListQuery

__all__ = [
    "IndexerClient",
    "ListQuery",
    "DEFAULT_LIMIT",
]
