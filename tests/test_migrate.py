"""Tests for the programmatic Alembic runner."""

from pathlib import Path

from sqlalchemy import create_engine, inspect, text

from deferq.db.migrate import INITIAL_REVISION, get_alembic_config, upgrade
from deferq.db.models import Base


class TestAlembicConfig:
    """Tests for get_alembic_config."""

    def test_script_location(self):
        cfg = get_alembic_config("sqlite+aiosqlite:///x.db")

        location = Path(cfg.get_main_option("script_location"))
        assert location.name == "migrations"
        assert (location / "env.py").exists()
        assert (location / "versions").is_dir()

    def test_explicit_url(self):
        cfg = get_alembic_config("sqlite+aiosqlite:///explicit.db")
        assert cfg.get_main_option("sqlalchemy.url") == "sqlite+aiosqlite:///explicit.db"

    def test_url_from_environment(self, monkeypatch):
        monkeypatch.setenv("DEFERQ_DATABASE_URL", "sqlite+aiosqlite:///from-env.db")
        cfg = get_alembic_config()
        assert cfg.get_main_option("sqlalchemy.url") == "sqlite+aiosqlite:///from-env.db"


class TestUpgrade:
    """Tests running migrations against a SQLite file."""

    def test_upgrade_creates_tables(self, tmp_path):
        db_path = tmp_path / "deferq.sqlite3"

        upgrade(database_url=f"sqlite+aiosqlite:///{db_path}")

        engine = create_engine(f"sqlite:///{db_path}")
        try:
            tables = set(inspect(engine).get_table_names())
            assert {
                "deferq_tasks",
                "deferq_task_attempts",
                "deferq_sync_checkpoints",
                "alembic_version",
            } <= tables
            columns = {c["name"] for c in inspect(engine).get_columns("deferq_tasks")}
            assert {"metadata", "next_attempt_at", "next_task_id"} <= columns
        finally:
            engine.dispose()

    def test_upgrade_stamps_existing_schema(self, tmp_path):
        """Tables created without Alembic are stamped instead of recreated."""
        db_path = tmp_path / "deferq.sqlite3"
        engine = create_engine(f"sqlite:///{db_path}")
        try:
            Base.metadata.create_all(engine)

            upgrade(database_url=f"sqlite+aiosqlite:///{db_path}")

            with engine.connect() as conn:
                version = conn.execute(text("SELECT version_num FROM alembic_version")).scalar()
            assert version == INITIAL_REVISION
        finally:
            engine.dispose()
