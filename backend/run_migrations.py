"""Run Alembic migrations programmatically before app start.

Usage:
    python run_migrations.py

Intended for a container entrypoint ahead of uvicorn.
"""
import logging
import os

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect
from sqlalchemy.exc import SQLAlchemyError

from breeze_erp.config.logging import configure_logging

BASE_DIR = os.path.dirname(__file__)
ALEMBIC_INI = os.path.join(BASE_DIR, 'alembic.ini')
BASELINE_REVISION = '20261018_0001'
SENTINEL_TABLES = {'roles', 'employees', 'inventory_items', 'invoices'}

logger = logging.getLogger(__name__)


def _sync_url(url: str) -> str:
    if url.startswith('postgresql+asyncpg://'):
        return url.replace('postgresql+asyncpg://', 'postgresql+psycopg://', 1)
    if url.startswith('sqlite+aiosqlite://'):
        return url.replace('sqlite+aiosqlite://', 'sqlite://', 1)
    return url


def run():
    cfg = Config(ALEMBIC_INI)
    override = os.getenv('DB_URL') or os.getenv('DATABASE_URL')
    if override:
        cfg.set_main_option('sqlalchemy.url', override)

    # Schemas bootstrapped via create_all have tables but no alembic_version
    url = cfg.get_main_option('sqlalchemy.url')
    if url:
        try:
            engine = create_engine(_sync_url(url))
            existing_tables = set(inspect(engine).get_table_names())
            engine.dispose()
        except SQLAlchemyError as exc:
            logger.warning("Baseline detection failed: %s", exc)
        else:
            if 'alembic_version' not in existing_tables and existing_tables & SENTINEL_TABLES:
                logger.info("Existing tables without alembic_version; stamping baseline %s", BASELINE_REVISION)
                command.stamp(cfg, BASELINE_REVISION)

    command.upgrade(cfg, 'head')
    logger.info("Migrations applied")


if __name__ == '__main__':
    configure_logging()
    run()
