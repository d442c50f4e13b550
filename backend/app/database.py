"""
JBin Backend — Database Engine Construction
=============================================

What:  Async SQLAlchemy engine factory, session factory, and declarative Base.
How:   `build_engine()` creates an async engine for the configured URL and,
       for SQLite, installs a connect hook that switches the database to WAL
       journaling with full synchronous commits.
Who:   Used by BlobStore (one engine per store) and by Alembic (Base.metadata).

Durability:
    journal_mode=WAL   Readers never block the single writer.
    synchronous=FULL   A commit is on disk before the call returns, so an
                       acknowledged write survives a process crash.
    timeout (connect)  Seconds a writer waits for the SQLite lock instead of
                       failing immediately with "database is locked".
"""

import logging

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)

SQLITE_LOCK_TIMEOUT = 15


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares a single metadata object between the runtime (create_all on open)
    and Alembic (autogenerate).
    """
    pass


def _install_sqlite_pragmas(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=FULL")
        cursor.close()


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create the async engine for the blob database.

    Args:
        database_url: SQLAlchemy async URL (e.g. sqlite+aiosqlite:///data/jbin.db)
        echo: Log every SQL statement
    """
    connect_args = {}
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        connect_args["timeout"] = SQLITE_LOCK_TIMEOUT

    engine = create_async_engine(
        database_url,
        echo=echo,
        connect_args=connect_args,
    )

    if is_sqlite:
        _install_sqlite_pragmas(engine)

    logger.debug("Database engine created for %s", engine.url.render_as_string(hide_password=True))
    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory bound to `engine`.

    expire_on_commit=False keeps loaded attributes readable after the
    transaction closes.
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
