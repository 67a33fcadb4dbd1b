"""Query routing between primary and backup indexers."""

import logging
from typing import Any

from chainsync.core.exceptions import TransportError
from chainsync.infrastructure.indexer.client import IndexerClient
from chainsync.infrastructure.indexer.query import ListQuery
from chainsync.services.data_source.health import IndexerHealthMonitor
from chainsync.services.data_source.schemas import DataSource

logger = logging.getLogger(__name__)


class SourceRouter:
    """Routes indexer queries to the currently preferred source.

    The source is re-decided from the latest health statuses on every call.
    A failed query is logged and yields ``None``; there is no retry against
    the other source within the same call, failover happens once the next
    health probe has updated the statuses.
    """

    def __init__(self, health: IndexerHealthMonitor):
        """Initialize router.

        Args:
            health: Health monitor owning the indexer clients and statuses
        """
        self.health = health
        self._current_source = DataSource.PRIMARY

    @property
    def current_source(self) -> DataSource:
        """Source chosen by the most recent routing decision."""
        return self._current_source

    def determine_source(self) -> DataSource:
        """Recompute the routing decision."""
        self._current_source = self.health.determine_source()
        return self._current_source

    async def query(self, request: ListQuery) -> dict[str, Any] | None:
        """Execute a list query against the chosen indexer.

        Args:
            request: Query to execute

        Returns:
            GraphQL ``data`` or None when the query failed
        """
        source = self.determine_source()
        try:
            client = self._client(source)
            logger.debug(f"Querying {source.value} indexer for {request.entity}")
            return await client.query(request.to_graphql())
        except Exception as e:
            logger.error(f"Query {request.entity} failed on {source.value}: {e}")
            return None

    async def fetch_items(self, request: ListQuery) -> list[dict[str, Any]] | None:
        """Execute a list query and return its items.

        Returns:
            Items, or None when the query failed or the envelope is missing
        """
        data = await self.query(request)
        if data is None:
            return None
        items = request.extract_items(data)
        if items is None:
            logger.warning(f"Indexer response for {request.entity} has no items")
        return items

    def _client(self, source: DataSource) -> IndexerClient:
        client = self.health.client_for(source)
        if client is None:
            raise TransportError(source.value, "Backup indexer not configured")
        return client
