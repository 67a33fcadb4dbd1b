"""Base repository.

Provides a generic async repository pattern for SQLAlchemy models.
"""

from typing import Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from chainsync.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Generic async repository bound to one session.

    Example:
        repo = IndexerHealthRepository(session)
        await repo.upsert_status(status)
    """

    model: type[ModelType]

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with async session.

        @param session - SQLAlchemy async session
        """
        self.session = session
