"""
JBin Backend — Migration Tests
================================

What:  Applies the Alembic migrations to an empty SQLite file and checks the
       resulting schema matches what BlobStore expects.
"""

import sqlite3
from pathlib import Path

from alembic import command
from alembic.config import Config

ALEMBIC_DIR = Path(__file__).resolve().parent.parent / "alembic"


def make_config(db_path: Path) -> Config:
    config = Config()
    config.set_main_option("script_location", str(ALEMBIC_DIR))
    config.set_main_option("sqlalchemy.url", f"sqlite+aiosqlite:///{db_path}")
    return config


def table_columns(db_path: Path, table: str):
    conn = sqlite3.connect(db_path)
    try:
        return {row[1]: row[2] for row in conn.execute(f"PRAGMA table_info({table})")}
    finally:
        conn.close()


def index_names(db_path: Path, table: str):
    conn = sqlite3.connect(db_path)
    try:
        return {row[1] for row in conn.execute(f"PRAGMA index_list({table})")}
    finally:
        conn.close()


class TestMigrations:

    def test_upgrade_creates_blobs_table(self, tmp_path):
        db_path = tmp_path / "migrated.db"

        command.upgrade(make_config(db_path), "head")

        columns = table_columns(db_path, "blobs")
        assert set(columns) == {"id", "json", "created_at"}
        assert "idx_blobs_created_at" in index_names(db_path, "blobs")

    def test_downgrade_drops_blobs_table(self, tmp_path):
        db_path = tmp_path / "migrated.db"
        config = make_config(db_path)

        command.upgrade(config, "head")
        command.downgrade(config, "base")

        assert table_columns(db_path, "blobs") == {}
