"""CSV export helper.

Fields containing a comma, quote or newline are quoted and embedded quotes
doubled (``csv.QUOTE_MINIMAL``), so notes such as ``late, traffic`` stay in
one column.
"""
from __future__ import annotations

import csv
import io
from typing import Any, Iterable, Sequence


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    return value


def rows_to_csv(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_cell(v) for v in row])
    return buffer.getvalue()


__all__ = ["rows_to_csv"]
