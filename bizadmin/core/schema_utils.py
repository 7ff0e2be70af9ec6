"""Schema normalization, select options and picker labels.

Accepts the declarative entity tables (camelCase keys) as well as their legacy
shapes and returns one uniform ``EntitySchema``.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional

from bizadmin.core.paths import get_path
from bizadmin.schemas.entity import EntitySchema, SelectOption

DEFAULT_SEARCH_KEYS = ["name1", "customerNbr", "email", "city", "state", "country"]

COMMON_IMMUTABLE = ["tenantId", "appId", "createdAt", "createdBy"]

# Always re-stamped on save, never stripped
AUDIT_STAMPS = ("updatedAt", "updatedBy")

FIELD_TYPES = {"text", "email", "tel", "number", "date", "checkbox", "select", "textarea", "object"}

COUNTRY_FALLBACK = [
    ("US", "United States"),
    ("CA", "Canada"),
    ("GB", "United Kingdom"),
    ("DE", "Germany"),
    ("FR", "France"),
    ("AU", "Australia"),
    ("JP", "Japan"),
]

CURRENCY_FALLBACK = [
    ("USD", "US Dollar"),
    ("EUR", "Euro"),
    ("GBP", "British Pound"),
    ("JPY", "Japanese Yen"),
    ("AUD", "Australian Dollar"),
    ("CAD", "Canadian Dollar"),
]

ID_CANDIDATES = {
    "Customers": ["customerNbr", "customerNumber", "custNbr", "custId", "customerId"],
    "Employees": ["employeeNbr", "employeeId", "empNbr", "empId"],
}
DEFAULT_ID_CANDIDATES = ["number", "code", "idNbr"]


def field_key(field: Any) -> str:
    if isinstance(field, dict):
        return field.get("path") or field.get("key") or field.get("name") or ""
    return getattr(field, "path", "") or ""


def _normalize_field(raw: Any) -> Optional[dict]:
    if not isinstance(raw, dict):
        return None
    key = field_key(raw)
    if not key:
        return None
    item = dict(raw)
    item.pop("key", None)
    item.pop("name", None)
    item["path"] = key
    if item.get("type") not in FIELD_TYPES:
        item["type"] = "text"
    item.setdefault("label", item.get("placeholder") or key)
    return item


def _sort_spec(raw: Any) -> Optional[dict]:
    if not isinstance(raw, dict):
        return None
    key = raw.get("key") or raw.get("path")
    if not key:
        return None
    return {"key": key, "dir": "desc" if raw.get("dir") == "desc" else "asc"}


def normalize_schema(raw: Any, entity_label: Optional[str] = None, collection_name: Optional[str] = None) -> EntitySchema:
    """Return a fully populated schema: search keys and immutable list always present."""
    s = raw if isinstance(raw, dict) else {}

    fields = [f for f in (_normalize_field(x) for x in (s.get("fields") or [])) if f]

    search = s.get("search") if isinstance(s.get("search"), dict) else {}
    keys = search.get("keys")
    search_keys = list(keys) if isinstance(keys, list) and keys else list(DEFAULT_SEARCH_KEYS)

    raw_list = s.get("list")
    list_cfg: dict = {}
    if isinstance(raw_list, dict):
        list_cfg["exclude"] = list(raw_list.get("exclude") or [])
        list_cfg["sortable"] = bool(raw_list.get("sortable", True))
        list_cfg["default_sort"] = _sort_spec(raw_list.get("defaultSort"))
    elif isinstance(raw_list, list):
        list_cfg["columns"] = [
            {"path": field_key(c), "label": c.get("label", "")}
            for c in raw_list
            if isinstance(c, dict) and field_key(c)
        ]
    if not list_cfg.get("default_sort"):
        list_cfg["default_sort"] = _sort_spec(s.get("defaultSort"))

    raw_csv = s.get("csv")
    csv_cfg: dict = {}
    if isinstance(raw_csv, dict):
        csv_cfg["exclude"] = list(raw_csv.get("exclude") or [])
    elif isinstance(raw_csv, list):
        csv_cfg["columns"] = [str(c) for c in raw_csv]

    meta = s.get("meta") if isinstance(s.get("meta"), dict) else {}
    immutable = meta.get("immutable")

    edit = s.get("edit") if isinstance(s.get("edit"), dict) else {}

    return EntitySchema.model_validate(
        {
            "entity_label": entity_label or s.get("label"),
            "collection_name": collection_name or s.get("collection") or s.get("collectionName"),
            "fields": fields,
            "search": {"keys": search_keys},
            "list": list_cfg,
            "csv": csv_cfg,
            "meta": {"immutable": list(immutable) if isinstance(immutable, list) else []},
            "edit": {
                "id_fields": list(edit.get("idFields") or edit.get("labelFields") or []),
                "name_field": edit.get("nameField"),
            },
        }
    )


def immutable_union(schema: EntitySchema) -> set:
    """Baseline audit keys + schema-level immutables + per-field immutables."""
    keys = set(COMMON_IMMUTABLE)
    keys.update(schema.meta.immutable)
    keys.update(f.path for f in schema.fields if f.immutable)
    return keys


def select_options(field: Any) -> List[SelectOption]:
    options = list(getattr(field, "options", None) or [])
    if options:
        out = []
        for opt in options:
            if isinstance(opt, str):
                out.append(SelectOption(value=opt, label=opt))
            else:
                out.append(SelectOption(value=str(opt.value), label=str(opt.label or opt.value)))
        return out
    enum = list(getattr(field, "enum", None) or [])
    if enum:
        return [SelectOption(value=str(v), label=str(v)) for v in enum]

    key = field_key(field)
    if key.endswith(".country"):
        return [SelectOption(value=c, label=f"{c} — {n}") for c, n in COUNTRY_FALLBACK]
    if key == "credit.currency":
        return [SelectOption(value=c, label=f"{c} — {n}") for c, n in CURRENCY_FALLBACK]
    return []


def _first_present(record: dict, keys: Iterable[str]) -> Optional[str]:
    for k in keys:
        if not k:
            continue
        value = get_path(record, k)
        if value is not None and str(value).strip() != "":
            return str(value)
    return None


def build_picker_label(schema: Optional[EntitySchema], record: Optional[dict], fallback_id: str = "") -> str:
    """Human label for pickers: ``"<business id> — <name>"``, else name, else ``fallback_id``."""
    data = record or {}
    entity = schema.entity_label if schema else None
    id_fields = schema.edit.id_fields if schema else []
    candidates = id_fields or ID_CANDIDATES.get(entity or "", DEFAULT_ID_CANDIDATES)
    name_key = (schema.edit.name_field if schema else None) or "name1"

    biz_id = _first_present(data, candidates)

    first_last = " ".join(str(data[k]) for k in ("firstName", "lastName") if data.get(k)) or None
    name = (
        _first_present(data, [name_key, "displayName"])
        or first_last
        or _first_present(data, ["name", "email"])
        or ""
    )

    if biz_id:
        return f"{biz_id} — {name}" if name else biz_id
    return name or fallback_id or ""
