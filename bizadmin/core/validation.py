"""Record validation for the Add path.

These checks are placeholders: shape checks only, no normalization and no
business rules beyond required-ness.
"""

import re
from typing import List

from bizadmin.core.paths import get_path
from bizadmin.schemas.entity import EntitySchema

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^\+?[0-9 ()\-.]{7,20}$")


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def validate_record(schema: EntitySchema, record: dict, mode: str = "add") -> List[str]:
    """Return every failure as a human-readable message; an empty list means valid."""
    messages: List[str] = []
    for f in schema.fields:
        if f.type == "object" or not f.edit:
            continue
        if mode == "add" and f.hide_on_add:
            continue
        value = get_path(record, f.path)
        if f.required and _blank(value) and not (f.type == "checkbox" and value is False):
            messages.append(f"{f.display_label} is required.")
            continue
        if _blank(value):
            continue
        if f.type == "email" and not EMAIL_RE.match(str(value).strip()):
            messages.append(f"{f.display_label} must be a valid email address.")
        elif f.type == "tel" and not PHONE_RE.match(str(value).strip()):
            messages.append(f"{f.display_label} must be a valid phone number.")
    return messages
