"""
JBin Backend — Blob SQLAlchemy Model
======================================

What:  ORM model representing the `blobs` table.
Who:   Used by BlobStore for reads/writes and by Alembic for schema management.

Table Design:
    - id:          Server-generated short ID, primary key (point lookups)
    - json:        The document serialized as JSON text, stored verbatim
    - created_at:  Milliseconds since the Unix epoch (UTC)

    Index on created_at serves the newest-first metadata listing.
"""

from sqlalchemy import BigInteger, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class BlobRecord(Base):
    """
    One stored JSON document.

    Lifecycle:
        Inserted once by BlobStore.put(); never updated; removed only by
        BlobStore.delete().
    """

    __tablename__ = "blobs"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Generated blob identifier ([A-Za-z0-9_-], fixed length)",
    )

    # Column is named "json" to match the persisted layout
    json: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Document serialized as JSON text",
    )

    created_at: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Creation time in milliseconds since epoch (UTC)",
    )

    __table_args__ = (
        Index("idx_blobs_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<BlobRecord(id={self.id!r}, created_at={self.created_at})>"
