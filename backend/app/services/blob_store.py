"""
JBin Backend — Blob Store (Persistence)
=========================================

What:  Durable id → (document, created_at) mapping on top of async SQLAlchemy.
How:   One engine per store, opened once at startup and disposed once at
       shutdown. Each operation runs in its own short session/transaction.
Who:   Owned by the application lifespan; used by BlobService.

Operations:
    put(id, document)  → Blob            (DuplicateKeyError if id exists)
    get(id)            → Blob | None     (absence is a normal result)
    delete(id)         → bool            (idempotent)
    list_metadata()    → [BlobMetadata]  (newest first, no document bodies)

Error Translation:
    IntegrityError on insert → DuplicateKeyError
    any other SQLAlchemyError → DatabaseError (details logged, not returned)
"""

import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.database import Base, build_engine, build_session_factory
from app.exceptions import DatabaseError, DuplicateKeyError
from app.models.blob import BlobRecord

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


def format_timestamp(ms: int) -> str:
    """
    Render an epoch-milliseconds value as ISO 8601 UTC.

    Example: 1705320000123 → "2024-01-15T12:00:00.123Z"
    """
    dt = datetime.fromtimestamp(ms // 1000, tz=timezone.utc).replace(
        microsecond=(ms % 1000) * 1000
    )
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def serialize_document(document: Any) -> str:
    """
    Serialize a document as strict JSON text.

    Raises:
        ValueError: NaN/Infinity values or a circular reference
        TypeError: A value with no JSON representation
        RecursionError: Nesting deeper than the interpreter allows
    """
    return json.dumps(document, allow_nan=False, ensure_ascii=False, separators=(",", ":"))


@dataclass(frozen=True)
class Blob:
    id: str
    document: Any
    created_at: int  # epoch milliseconds

    @property
    def created_at_iso(self) -> str:
        return format_timestamp(self.created_at)


@dataclass(frozen=True)
class BlobMetadata:
    id: str
    created_at: int

    @property
    def created_at_iso(self) -> str:
        return format_timestamp(self.created_at)


class BlobStore:
    """
    Single-table blob persistence.

    The store is safe to share between concurrent requests: every call opens
    its own session, and SQLite serializes writers internally (WAL mode lets
    readers proceed during a write).
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self._echo = echo
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    async def open(self) -> None:
        """Create the engine and any missing tables/indexes. Idempotent."""
        if self._engine is not None:
            return

        engine = build_engine(self.database_url, echo=self._echo)
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            await engine.dispose()
            logger.error("Could not open blob database: %s", str(e))
            raise DatabaseError(
                message="Could not open the blob database",
                context={"error_type": type(e).__name__},
            ) from e

        self._engine = engine
        self._session_factory = build_session_factory(engine)
        logger.info("Blob store opened")

    async def close(self) -> None:
        """Dispose the engine (closes every pooled connection). Idempotent."""
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("Blob store closed")

    def _sessions(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise DatabaseError(
                message="Blob store is not open",
                context={"operation": "session"},
            )
        return self._session_factory

    async def put(self, blob_id: str, document: Any) -> Blob:
        """
        Insert a new blob stamped with the current time.

        The transaction is committed before this returns.

        Raises:
            DuplicateKeyError: `blob_id` is already taken
            DatabaseError: Any other engine failure
        """
        created_at = now_ms()
        record = BlobRecord(
            id=blob_id,
            json=serialize_document(document),
            created_at=created_at,
        )

        try:
            async with self._sessions().begin() as session:
                session.add(record)
        except IntegrityError as e:
            raise DuplicateKeyError(blob_id) from e
        except SQLAlchemyError as e:
            logger.error("Database error storing blob %s: %s", blob_id, str(e))
            raise DatabaseError(
                context={"operation": "put", "error_type": type(e).__name__},
            ) from e

        return Blob(id=blob_id, document=document, created_at=created_at)

    async def get(self, blob_id: str) -> Optional[Blob]:
        """Point lookup by exact ID. Returns None when absent."""
        try:
            async with self._sessions()() as session:
                record = await session.get(BlobRecord, blob_id)
        except SQLAlchemyError as e:
            logger.error("Database error fetching blob %s: %s", blob_id, str(e))
            raise DatabaseError(
                context={"operation": "get", "error_type": type(e).__name__},
            ) from e

        if record is None:
            return None

        return Blob(
            id=record.id,
            document=json.loads(record.json),
            created_at=record.created_at,
        )

    async def delete(self, blob_id: str) -> bool:
        """Remove a blob. Returns True only if a row was actually deleted."""
        try:
            async with self._sessions().begin() as session:
                result = await session.execute(
                    delete(BlobRecord).where(BlobRecord.id == blob_id)
                )
        except SQLAlchemyError as e:
            logger.error("Database error deleting blob %s: %s", blob_id, str(e))
            raise DatabaseError(
                context={"operation": "delete", "error_type": type(e).__name__},
            ) from e

        return result.rowcount > 0

    async def list_metadata(self) -> List[BlobMetadata]:
        """
        IDs and creation times of every blob, newest first.

        Query plan:
            SELECT id, created_at FROM blobs ORDER BY created_at DESC
            → walks idx_blobs_created_at backwards
        """
        try:
            async with self._sessions()() as session:
                result = await session.execute(
                    select(BlobRecord.id, BlobRecord.created_at).order_by(
                        BlobRecord.created_at.desc(), BlobRecord.id
                    )
                )
                rows = result.all()
        except SQLAlchemyError as e:
            logger.error("Database error listing blobs: %s", str(e))
            raise DatabaseError(
                context={"operation": "list_metadata", "error_type": type(e).__name__},
            ) from e

        return [BlobMetadata(id=row.id, created_at=row.created_at) for row in rows]
