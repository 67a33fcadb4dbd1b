"""Create indexer health table

Revision ID: 001
Revises:
Create Date: 2026-10-19 10:00:00.000000

Creates the following tables:
- indexer_health: Latest probe result per indexer URL
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "indexer_health",
        # Primary key
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        # Indexer identity
        sa.Column("indexer_url", sa.String(255), nullable=False),
        sa.Column("indexer_type", sa.String(20), nullable=False),
        sa.Column("chain_id", sa.Integer(), nullable=False, server_default="1"),
        # Observed state
        sa.Column("block_number", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("block_timestamp", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("is_healthy", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("consecutive_failures", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        # Probe times
        sa.Column("last_checked_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_success_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_failure_at", sa.DateTime(timezone=True), nullable=True),
        # Timestamps
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False),
        # Constraints
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("indexer_url"),
        sa.CheckConstraint(
            "indexer_type IN ('primary', 'backup')",
            name="ck_indexer_health_indexer_type",
        ),
    )
    op.create_index("ix_indexer_health_is_healthy", "indexer_health", ["is_healthy"])


def downgrade() -> None:
    op.drop_index("ix_indexer_health_is_healthy", table_name="indexer_health")
    op.drop_table("indexer_health")
