"""Shared API response shapes.

  - success(): standard success envelope
  - paginate(): slice a list and build the pagination block used by list endpoints
  - normalize_keys(): accept camelCase client payloads
  - csv_response(): attachment download for CSV exports
"""
from __future__ import annotations
import math
import time
from typing import Any, List, Sequence, Tuple

from fastapi import Response


def success(data: Any, **meta) -> dict:
    return {"status": "success", "data": data, "meta": meta or None, "timestamp": time.time()}


def paginate(items: Sequence[Any], page: int, page_size: int) -> Tuple[List[Any], dict]:
    total_items = len(items)
    start = (page - 1) * page_size
    total_pages = max(1, math.ceil(total_items / page_size))
    return list(items[start:start + page_size]), {
        "page": page,
        "page_size": page_size,
        "total_items": total_items,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_previous": page > 1,
    }


def normalize_keys(values: Any, key_map: dict) -> Any:
    """Copy client camelCase keys onto their snake_case names; blank strings become None."""
    if not isinstance(values, dict):
        return values
    values = dict(values)
    for src_key, dest_key in key_map.items():
        if src_key in values and dest_key not in values:
            values[dest_key] = values[src_key]
    for key, value in list(values.items()):
        if isinstance(value, str) and value.strip() == "":
            values[key] = None
    return values


def csv_response(body: str, filename: str) -> Response:
    return Response(
        content=body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


__all__ = ["success", "paginate", "normalize_keys", "csv_response"]
