"""Indexer health repository and store."""

import logging
from typing import Any, Callable

from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from chainsync.models.indexer_health import IndexerHealthRecord
from chainsync.repositories.base import BaseRepository
from chainsync.services.data_source.schemas import IndexerStatus

logger = logging.getLogger(__name__)


class IndexerHealthRepository(BaseRepository[IndexerHealthRecord]):
    """Repository for indexer health records."""

    model = IndexerHealthRecord

    async def upsert_status(self, status: IndexerStatus, chain_id: int = 1) -> None:
        """Insert or update the record keyed by indexer URL.

        Success/failure timestamps are only touched for the matching outcome.

        @param status - Latest probe result
        @param chain_id - Chain the indexer follows
        """
        values: dict[str, Any] = {
            "indexer_url": status.url,
            "indexer_type": status.source.value,
            "chain_id": chain_id,
            "block_number": status.block_number,
            "block_timestamp": status.block_timestamp,
            "is_healthy": status.is_healthy,
            "consecutive_failures": status.consecutive_failures,
            "last_error": status.error,
            "last_checked_at": status.last_checked_at,
            "last_success_at": status.last_checked_at if status.is_healthy else None,
            "last_failure_at": None if status.is_healthy else status.last_checked_at,
        }

        update_values = {
            k: v
            for k, v in values.items()
            if k not in ("indexer_url", "indexer_type", "chain_id")
        }
        if status.is_healthy:
            update_values.pop("last_failure_at")
        else:
            update_values.pop("last_success_at")

        stmt = (
            insert(IndexerHealthRecord)
            .values(**values)
            .on_conflict_do_update(
                index_elements=[IndexerHealthRecord.indexer_url],
                set_=update_values,
            )
        )
        await self.session.execute(stmt)
        await self.session.flush()


class IndexerHealthStore:
    """Persists probe results through a fresh session per write."""

    def __init__(self, session_factory: Callable[[], AsyncSession], chain_id: int = 1):
        """Initialize store.

        Args:
            session_factory: Callable returning an AsyncSession context manager
            chain_id: Chain the indexers follow
        """
        self.session_factory = session_factory
        self.chain_id = chain_id

    async def save(self, status: IndexerStatus) -> None:
        """Upsert one status and commit."""
        async with self.session_factory() as session:
            repo = IndexerHealthRepository(session)
            await repo.upsert_status(status, chain_id=self.chain_id)
            await session.commit()
        logger.debug(f"Persisted {status.source.value} indexer health ({status.url})")
