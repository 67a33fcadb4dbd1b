"""Indexer health model."""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from chainsync.models.base import Base, TimestampMixin


class IndexerHealthRecord(Base, TimestampMixin):
    """Latest health probe result per indexer URL."""

    __tablename__ = "indexer_health"

    # Primary key
    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)

    # Indexer identity
    indexer_url: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    indexer_type: Mapped[str] = mapped_column(String(20), nullable=False)
    chain_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Observed state
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    block_timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    is_healthy: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    consecutive_failures: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Probe times
    last_checked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    last_success_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_failure_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint(
            "indexer_type IN ('primary', 'backup')", name="indexer_type"
        ),
    )
