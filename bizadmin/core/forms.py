"""Schema-driven form rendering.

One generic renderer dispatches on the field variant to produce widget models;
changes go through the path accessor against a cloned record.
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Tuple

from bizadmin.core.dates import format_ymd, to_date
from bizadmin.core.paths import get_path, set_path
from bizadmin.core.schema_utils import immutable_union, select_options
from bizadmin.core.search import merge_display_fields
from bizadmin.schemas.entity import EntitySchema
from bizadmin.schemas.forms import (
    CheckboxWidget,
    DateWidget,
    InputWidget,
    SelectWidget,
    TextAreaWidget,
)

# Shown in the audit box on the change screen, not as inputs
EXCLUDE_ON_CHANGE = {"createdAt", "updatedAt"}

TEXT_LIKE = {"text", "email", "tel", "textarea", "select"}

TRUTHY = {"on", "true", "1", "yes"}


def visible_fields(schema: EntitySchema, mode: str, record: Optional[dict] = None) -> list:
    fields = merge_display_fields(schema.fields, record) if mode == "change" and record else list(schema.fields)
    out = []
    for f in fields:
        if f.type == "object" or not f.edit:
            continue
        if mode == "change" and (f.hide_on_change or f.path in EXCLUDE_ON_CHANGE):
            continue
        if mode == "add" and f.hide_on_add:
            continue
        out.append(f)
    return out


def is_locked(field, locked_keys: set, mode: str) -> bool:
    immutable = field.path in locked_keys or field.immutable
    if mode == "add" and field.editable_on_create:
        return False
    return immutable


def render_widget(field, value: Any, disabled: bool):
    common = dict(
        key=field.path,
        label=field.display_label,
        required=field.required,
        disabled=disabled,
        placeholder=field.placeholder,
    )
    if field.type == "select":
        return SelectWidget(
            value="" if value is None else str(value),
            options=select_options(field),
            allow_blank=field.allow_blank or not field.required,
            **common,
        )
    if field.type == "checkbox":
        return CheckboxWidget(value=bool(value), **common)
    if field.type == "date":
        return DateWidget(value=to_date(value), display=format_ymd(value), **common)
    if field.type == "textarea":
        return TextAreaWidget(value="" if value is None else str(value), **common)
    if isinstance(value, (dict, list)):
        value = ""
    return InputWidget(input_type=field.type, value="" if value is None else value, **common)


def build_form(schema: EntitySchema, record: Optional[dict], mode: str = "change") -> list:
    """One widget per visible field, in declared order."""
    data = record or {}
    locked = immutable_union(schema)
    return [
        render_widget(f, get_path(data, f.path), is_locked(f, locked, mode))
        for f in visible_fields(schema, mode, data)
    ]


def initial_values(schema: EntitySchema) -> dict:
    values: dict = {}
    for f in visible_fields(schema, "add"):
        if f.default is not None:
            value = f.default
        elif f.type == "checkbox":
            value = False
        elif f.type in TEXT_LIKE:
            value = ""
        else:
            value = None
        set_path(values, f.path, value)
    return values


def apply_change(record: Mapping[str, Any], path: str, value: Any, actor_id: str = "unknown") -> dict:
    """Return a clone of ``record`` with ``value`` written at ``path``."""
    nxt = copy.deepcopy(dict(record or {}))
    if path in ("isDeleted", "deleted"):
        # preview the delete stamps; they are re-stamped with server time on save
        if value is True:
            nxt["isDeleted"] = True
            nxt["deletedAt"] = datetime.now(timezone.utc)
            nxt["deletedBy"] = actor_id
        else:
            nxt["isDeleted"] = False
            nxt["deletedAt"] = ""
            nxt["deletedBy"] = ""
    set_path(nxt, path, value)
    return nxt


def coerce_form_value(field, raw: Any) -> Any:
    """Convert a posted form value to the field's stored type."""
    if field.type == "checkbox":
        if isinstance(raw, bool):
            return raw
        return str(raw or "").strip().lower() in TRUTHY
    if raw is None:
        return None
    if field.type == "number":
        if isinstance(raw, (int, float)) and not isinstance(raw, bool):
            return raw
        text = str(raw).strip()
        if text == "":
            return None
        number = float(text)
        return int(number) if number.is_integer() and "." not in text else number
    if field.type == "date":
        d = to_date(raw)
        return d.isoformat() if d else None
    return str(raw)


def read_form(schema: EntitySchema, posted: Mapping[str, Any], mode: str, record: Optional[dict] = None) -> Tuple[dict, List[str]]:
    """Collect editable widget values from a posted form into a nested record.

    Starts from ``record`` (change mode) so fields the form does not render are kept.
    """
    data = copy.deepcopy(record or {})
    errors: List[str] = []
    locked = immutable_union(schema)
    for f in visible_fields(schema, mode, record):
        if is_locked(f, locked, mode):
            continue
        # blank sensitive input on change keeps the stored protected value
        if f.sensitive and mode == "change" and not str(posted.get(f.path) or "").strip():
            continue
        try:
            value = coerce_form_value(f, posted.get(f.path))
        except ValueError:
            errors.append(f"{f.display_label} must be a number.")
            continue
        set_path(data, f.path, value)
    return data, errors
