"""Create blobs table

Revision ID: 001
Revises: None
Create Date: 2026-10-17 00:00:00.000000+00:00

What:  Creates the `blobs` table: one row per stored JSON document.
How:   Portable column types only (SQLite is the default engine). created_at
       is epoch milliseconds, indexed for newest-first listing.

Rollback: downgrade() drops the table (destructive, every blob is lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "blobs",
        sa.Column("id", sa.String(64), nullable=False),
        # Canonical serialized document
        sa.Column("json", sa.Text(), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_blobs"),
    )

    op.create_index("idx_blobs_created_at", "blobs", ["created_at"])


def downgrade() -> None:
    op.drop_index("idx_blobs_created_at", table_name="blobs")
    op.drop_table("blobs")
