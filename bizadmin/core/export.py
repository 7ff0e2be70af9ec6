"""CSV export of the visible list columns."""

import csv
import io
import json
from datetime import date, datetime
from typing import Any, Iterable, List, Optional

from bizadmin.core.dates import format_ts
from bizadmin.core.paths import get_path


def _is_contact(value: dict) -> bool:
    return any(k in value for k in ("firstName", "lastName")) and not any(isinstance(v, dict) for v in value.values())


def render_value(value: Any) -> str:
    """Text for one cell: timestamps formatted, contacts as ``First Last (email, phone)``, dicts as compact JSON."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (datetime, date)):
        return format_ts(value)
    if isinstance(value, dict):
        if _is_contact(value):
            name = " ".join(str(value[k]) for k in ("firstName", "lastName") if value.get(k))
            extra = ", ".join(str(value[k]) for k in ("email", "phone") if value.get(k))
            return f"{name} ({extra})" if extra else name
        return json.dumps(value, separators=(",", ":"), default=str)
    if isinstance(value, list):
        return json.dumps(value, separators=(",", ":"), default=str)
    return str(value)


def to_csv_cell(value: Any) -> str:
    text = render_value(value)
    return '"' + text.replace('"', '""') + '"'


def export_columns(rows: List[dict], columns: Optional[Iterable[str]] = None, exclude: Iterable[str] = ()) -> List[str]:
    excluded = set(exclude)
    if columns:
        return [c for c in columns if c not in excluded]
    seen: List[str] = []
    for row in rows:
        for key in row:
            if key not in seen and key not in ("id", "tenantId"):
                seen.append(key)
    return [c for c in seen if c not in excluded]


def export_csv(rows: List[dict], columns: Optional[Iterable[str]] = None, exclude: Iterable[str] = ()) -> str:
    """Every field quoted, embedded quotes doubled."""
    cols = export_columns(rows, columns, exclude)
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(cols)
    for row in rows:
        writer.writerow([render_value(get_path(row, c)) for c in cols])
    return output.getvalue()
