"""Programmatic Alembic migration runner.

The migration scripts ship inside the package, so no alembic.ini is needed.
Installed as the ``deferq-migrate`` console script.
"""

import logging
import os
from pathlib import Path

from alembic import command
from alembic.config import Config

logger = logging.getLogger(__name__)

# Revision that creates the scheduler tables
INITIAL_REVISION = "a1f3c9d2e4b7"


def get_alembic_config(database_url: str | None = None) -> Config:
    """Build an Alembic config pointing at the packaged migrations.

    Args:
        database_url: Async database URL; falls back to DEFERQ_DATABASE_URL
    """
    cfg = Config()
    cfg.set_main_option("script_location", str(Path(__file__).parent / "migrations"))

    url = database_url or os.environ.get("DEFERQ_DATABASE_URL", "")
    if url:
        cfg.set_main_option("sqlalchemy.url", url)

    return cfg


def upgrade(revision: str = "head", database_url: str | None = None) -> None:
    """Upgrade the database to ``revision``.

    A database whose tables were made by ``SqlAlchemyStorage.create_schema()``
    has no alembic_version row; it is stamped at the initial revision and the
    upgrade is retried from there.
    """
    cfg = get_alembic_config(database_url)
    try:
        command.upgrade(cfg, revision)
    except Exception as e:
        if "already exists" not in str(e):
            raise
        logger.warning(
            f"Scheduler tables exist but are not tracked by Alembic, "
            f"stamping {INITIAL_REVISION} before upgrading"
        )
        command.stamp(cfg, INITIAL_REVISION)
        command.upgrade(cfg, revision)
    logger.info(f"Database upgraded to {revision}")


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    upgrade()
