"""List-side helpers: filtering, sorting, row shaping, and the live list."""

from __future__ import annotations

import copy
import logging
import re
from datetime import date, datetime
from typing import Any, Callable, Iterable, List, Optional

from bizadmin.core.paths import delete_path, get_path
from bizadmin.schemas.entity import CheckboxField, EntitySchema, NumberField, TextField

logger = logging.getLogger(__name__)


def matches_query(record: dict, query: str, keys: Iterable[str]) -> bool:
    text = (query or "").strip().lower()
    if not text:
        return True
    for k in keys:
        value = get_path(record, k)
        if value is not None and text in str(value).lower():
            return True
    return False


def filter_records(records: List[dict], query: Optional[str], keys: Iterable[str]) -> List[dict]:
    """Case-insensitive substring match over the search keys; order preserved."""
    keys = list(keys)
    if not (query or "").strip():
        return list(records)
    return [r for r in records if matches_query(r, query, keys)]


_CHUNK = re.compile(r"(\d+)")


def _natural(text: str):
    return [(0, int(part), "") if part.isdigit() else (1, 0, part) for part in _CHUNK.split(text.lower()) if part]


def compare_key(value: Any):
    if value is None or value == "":
        return (0,)
    if isinstance(value, bool):
        return (1, int(value))
    if isinstance(value, (int, float)):
        return (1, value)
    if isinstance(value, datetime):
        return (2, value.timestamp())
    if isinstance(value, date):
        return (2, datetime(value.year, value.month, value.day).timestamp())
    return (3, _natural(str(value)))


def sort_records(records: List[dict], key: Optional[str], direction: str = "asc") -> List[dict]:
    if not key:
        return list(records)
    return sorted(records, key=lambda r: compare_key(get_path(r, key)), reverse=direction == "desc")


def merge_display_fields(schema_fields: list, record: Optional[dict]) -> list:
    """Schema fields plus any extra primitive top-level record keys, de-duplicated by key."""
    merged = list(schema_fields)
    seen = {f.path for f in merged}
    for key, value in (record or {}).items():
        if key in seen or key == "id":
            continue
        if isinstance(value, bool):
            merged.append(CheckboxField(path=key, label=key))
        elif isinstance(value, (int, float)):
            merged.append(NumberField(path=key, label=key))
        elif isinstance(value, str):
            merged.append(TextField(path=key, label=key))
        else:
            continue
        seen.add(key)
    return merged


def _address_line(address: Optional[dict]) -> str:
    address = address or {}
    parts = [address.get(k) for k in ("line1", "line2", "city", "state", "postalCode", "country")]
    return ", ".join(str(p) for p in parts if p)


def shape_rows(schema: Optional[EntitySchema], rows: List[dict]) -> List[dict]:
    """Flatten rows for the list table; excluded (sensitive/audit) keys never leave here."""
    exclude = set(schema.list.exclude) if schema else set()
    if schema is not None:
        exclude.update(f.path for f in schema.fields if f.sensitive)
    shaped_rows = []
    for row in rows:
        if schema is not None and schema.entity_label == "Customers":
            credit = row.get("credit") or {}
            billing = row.get("billing") or {}
            shaped = {
                "id": row.get("id"),
                "customerNbr": row.get("customerNbr"),
                "name1": row.get("name1"),
                "name2": row.get("name2"),
                "name3": row.get("name3"),
                "status": row.get("status"),
                "primaryContact": (row.get("contacts") or {}).get("primary"),
                "billingAddress": _address_line(billing.get("address")),
                "creditLimit": credit.get("limit", billing.get("creditLimit", "")),
                "onCreditHold": "Yes" if credit.get("onHold", billing.get("onCreditHold")) else "No",
                "paymentTerms": billing.get("paymentTerms", ""),
                "createdAt": row.get("createdAt"),
                "updatedAt": row.get("updatedAt"),
            }
        else:
            shaped = copy.deepcopy(row)
        for k in exclude:
            delete_path(shaped, k)
        shaped_rows.append(shaped)
    return shaped_rows


def derive_columns(rows: List[dict]) -> List[str]:
    if not rows:
        return []
    return [k for k in rows[0].keys() if k not in ("id", "tenantId")]


def cash_flow_summary(rows: List[dict]) -> dict:
    income = expense = unreconciled = 0.0
    for r in rows or []:
        kind = str(r.get("type") or "").lower()
        try:
            amount = float(r.get("amount") or 0)
        except (TypeError, ValueError):
            amount = 0.0
        if kind == "income":
            income += amount
        elif kind == "expense":
            expense += amount
        if not r.get("reconciled"):
            unreconciled += amount if kind == "income" else -amount
    return {
        "income": round(income, 2),
        "expense": round(expense, 2),
        "net": round(income - expense, 2),
        "unreconciled": round(unreconciled, 2),
    }


class LiveList:
    """Keeps shaped rows for one collection current through a store subscription.

    ``close()`` must be called on teardown so no update callbacks reach a retired list.
    """

    def __init__(self, store, path: str, schema: Optional[EntitySchema] = None,
                 on_change: Optional[Callable[[List[dict]], None]] = None, where=None):
        self.path = path
        self.schema = schema
        self.rows: List[dict] = []
        self._on_change = on_change
        self._unsubscribe = store.subscribe(path, self._receive, where=where)
        logger.debug(f"LiveList subscribed to {path}")

    def _receive(self, docs) -> None:
        self.rows = shape_rows(self.schema, [d.as_row() for d in docs])
        if self._on_change:
            self._on_change(self.rows)

    @property
    def closed(self) -> bool:
        return self._unsubscribe is None

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
            logger.debug(f"LiveList unsubscribed from {self.path}")

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()
