"""Alembic environment script.

Only model metadata and a database URL are needed here, so the runtime
engine/session module is not imported. URL precedence:

1. DB_URL
2. DATABASE_URL
3. TEST_DB_URL when TESTING=true
4. sqlalchemy.url from alembic.ini
5. Local Postgres built from DB_HOST/DB_PORT/DB_NAME/DB_USER/DB_PASSWORD

Async driver URLs are rewritten to their synchronous counterparts.
"""
import os
import sys
from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool
from alembic import context

# env.py lives in backend/alembic; the package lives in backend/
BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

from breeze_erp.models.database import Base  # noqa: E402

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _resolve_url() -> str:
    url = os.getenv('DB_URL') or os.getenv('DATABASE_URL')
    if os.getenv('TESTING', 'false').lower() == 'true' and os.getenv('TEST_DB_URL'):
        url = os.getenv('TEST_DB_URL')
    if not url:
        ini_url = config.get_main_option('sqlalchemy.url')
        if ini_url:
            url = ini_url
    if not url:
        user = os.getenv('DB_USER', 'postgres')
        password = os.getenv('DB_PASSWORD', 'postgres')
        host = os.getenv('DB_HOST', 'localhost')
        port = os.getenv('DB_PORT', '5432')
        name = os.getenv('DB_NAME', 'breeze_erp')
        url = f'postgresql+psycopg://{user}:{password}@{host}:{port}/{name}'

    if url.startswith('postgresql+asyncpg://'):
        url = url.replace('postgresql+asyncpg://', 'postgresql+psycopg://', 1)
    elif url.startswith('sqlite+aiosqlite://'):
        url = url.replace('sqlite+aiosqlite://', 'sqlite://', 1)
    return url


config.set_main_option('sqlalchemy.url', _resolve_url())


def run_migrations_offline():
    """Run migrations in 'offline' mode."""
    context.configure(
        url=config.get_main_option('sqlalchemy.url'),
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    """Run migrations in 'online' mode."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section),
        prefix='sqlalchemy.',
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == 'sqlite',
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
