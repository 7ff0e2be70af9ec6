"""Dot-path access over plain mappings (e.g. ``billing.address.line1``)."""

from __future__ import annotations

from typing import Any, MutableMapping


def get_path(record: Any, path: str) -> Any:
    """Return the value at ``path`` or ``None`` at the first missing link."""
    if not isinstance(record, dict) or not path:
        return None
    if "." not in path:
        return record.get(path)
    current = record
    for segment in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(segment)
        if current is None:
            return None
    return current


def has_path(record: Any, path: str) -> bool:
    if not isinstance(record, dict) or not path:
        return False
    current = record
    for segment in path.split("."):
        if not isinstance(current, dict) or segment not in current:
            return False
        current = current[segment]
    return True


def set_path(record: MutableMapping[str, Any], path: str, value: Any) -> None:
    """Assign ``value`` at ``path``, creating intermediate mappings.

    Non-mapping values found mid-path are overwritten. The argument is mutated
    in place; clone it first when the original must stay untouched.
    """
    if record is None or not path:
        return
    if "." not in path:
        record[path] = value
        return
    parts = path.split(".")
    current = record
    for segment in parts[:-1]:
        nxt = current.get(segment)
        if not isinstance(nxt, dict):
            nxt = {}
            current[segment] = nxt
        current = nxt
    current[parts[-1]] = value


def delete_path(record: MutableMapping[str, Any], path: str) -> None:
    if not isinstance(record, dict) or not path:
        return
    if "." not in path:
        record.pop(path, None)
        return
    parts = path.split(".")
    current = record
    for segment in parts[:-1]:
        current = current.get(segment)
        if not isinstance(current, dict):
            return
    current.pop(parts[-1], None)
