"""
Alembic migration runner.

Several API instances may boot at once; on Postgres a session-level advisory
lock makes them queue behind a single `alembic upgrade head`.
Run: python -m app.db.migrate
"""
import logging
import os
from alembic.config import Config
from alembic import command
from sqlalchemy import create_engine, text

from app.core import config as app_config

logger = logging.getLogger(__name__)

MIGRATION_LOCK_ID = 731942886
ALEMBIC_INI_PATH = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))), "alembic.ini"
)


def get_alembic_config(database_url: str = None) -> Config:
    alembic_cfg = Config(ALEMBIC_INI_PATH)
    alembic_cfg.set_main_option("sqlalchemy.url", database_url or app_config.DATABASE_URL)
    return alembic_cfg


def run_migrations(database_url: str = None):
    """
    Upgrade the schema to the head revision.

    Raises:
        ValueError: No database URL configured
    """
    database_url = database_url or app_config.DATABASE_URL
    if not database_url:
        raise ValueError("DATABASE_URL is not set")

    is_postgres = database_url.startswith("postgresql")
    engine = create_engine(database_url, pool_pre_ping=True)
    lock_conn = None

    try:
        if is_postgres:
            # The lock lives as long as this connection stays open
            lock_conn = engine.connect()
            lock_conn.execute(text(f"SELECT pg_advisory_lock({MIGRATION_LOCK_ID})"))
            lock_conn.commit()
            logger.info("Migration lock acquired")

        logger.info("Running alembic upgrade head")
        command.upgrade(get_alembic_config(database_url), "head")
        logger.info("Migrations complete")
    except Exception:
        logger.exception("Migration failed")
        raise
    finally:
        if lock_conn is not None:
            try:
                lock_conn.execute(text(f"SELECT pg_advisory_unlock({MIGRATION_LOCK_ID})"))
                lock_conn.commit()
            except Exception as unlock_error:
                logger.warning(f"Could not release migration lock: {unlock_error}")
            lock_conn.close()
        engine.dispose()


if __name__ == "__main__":
    from app.core.logging_config import setup_logging

    setup_logging(log_level=app_config.LOG_LEVEL)
    run_migrations()
