"""Human-readable document numbers backed by the ``document_sequences`` table.

A single INSERT .. ON CONFLICT .. DO UPDATE .. RETURNING statement increments
the counter for a scope, so concurrent creators never observe the same value.
Works on PostgreSQL and SQLite >= 3.35. The increment belongs to the caller's
transaction: if the document insert rolls back, so does the number.

Scopes:
  INV-YYYYMMDD  -> INV-20250101-0001 (resets daily)
  PR            -> PR-0001
  DC            -> DC-0001
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, UTC
from typing import Optional

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_NEXT_SEQ = text(
    """
    INSERT INTO document_sequences (scope, last_seq)
    VALUES (:scope, 1)
    ON CONFLICT(scope) DO UPDATE SET last_seq = document_sequences.last_seq + 1
    RETURNING last_seq
    """
)

MAX_ATTEMPTS = 10


async def next_sequence(db: AsyncSession, scope: str) -> int:
    for _ in range(MAX_ATTEMPTS):
        try:
            result = await db.execute(_NEXT_SEQ, {"scope": scope})
            return int(result.scalar_one())
        except OperationalError as exc:
            # SQLITE_BUSY / locked under contention
            msg = str(exc).lower()
            if "busy" in msg or "locked" in msg:
                logger.debug("Sequence %s busy, retrying", scope)
                await asyncio.sleep(0.005)
                continue
            raise
    raise RuntimeError(f"Failed to allocate sequence for {scope} after retries")


async def next_invoice_number(db: AsyncSession, now: Optional[datetime] = None) -> str:
    date_key = (now or datetime.now(UTC)).strftime("%Y%m%d")
    seq = await next_sequence(db, f"INV-{date_key}")
    return f"INV-{date_key}-{seq:04d}"


async def next_purchase_request_number(db: AsyncSession) -> str:
    return f"PR-{await next_sequence(db, 'PR'):04d}"


async def next_challan_number(db: AsyncSession) -> str:
    return f"DC-{await next_sequence(db, 'DC'):04d}"


__all__ = [
    "next_sequence",
    "next_invoice_number",
    "next_purchase_request_number",
    "next_challan_number",
]
