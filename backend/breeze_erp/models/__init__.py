"""Models package.

Exposes Base for Alembic's env.py and metadata-driven test bootstrap.
"""
from .database import Base  # noqa: F401
