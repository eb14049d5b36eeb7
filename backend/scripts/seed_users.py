#!/usr/bin/env python
"""Seed default roles, the administrator and optional demo staff accounts.

Idempotent: existing roles and employees (matched by email) are left alone.
Environment variables used (with defaults):
  ADMIN_EMAIL=admin@example.com
  ADMIN_PASSWORD=admin123
  SEED_DEMO_STAFF=false   also create a supervisor and a staff account
"""
from __future__ import annotations

import asyncio
import logging
import os
import sys
from pathlib import Path

backend_dir = Path(__file__).resolve().parents[1]
if str(backend_dir) not in sys.path:
    sys.path.append(str(backend_dir))

from breeze_erp.config.database import get_async_db  # noqa: E402
from breeze_erp.config.logging import configure_logging  # noqa: E402
from breeze_erp.services import employee_service  # noqa: E402

logger = logging.getLogger("seed_users")

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@example.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")

DEMO_STAFF = (
    ("Sam Supervisor", "supervisor@example.com", "super123", "Supervisor", "Shift Supervisor"),
    ("Sita Staff", "staff@example.com", "staff123", "Staff", "Store Keeper"),
)


async def main():
    async with get_async_db() as db:
        roles = {r.name: r for r in await employee_service.seed_default_roles(db)}
        await db.commit()
        await employee_service.ensure_admin(db, ADMIN_EMAIL, ADMIN_PASSWORD)

        if os.getenv("SEED_DEMO_STAFF", "false").lower() != "true":
            return
        for name, email, password, role_name, designation in DEMO_STAFF:
            if await employee_service.get_employee_by_email(db, email):
                logger.info("Employee %s already exists; skipping", email)
                continue
            await employee_service.create_employee(db, {
                "name": name,
                "email": email,
                "password": password,
                "role_id": str(roles[role_name].id),
                "designation": designation,
            })
            logger.info("Inserted %s (%s)", email, role_name)


if __name__ == "__main__":  # pragma: no cover
    configure_logging()
    asyncio.run(main())
