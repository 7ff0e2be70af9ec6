"""Transform applied to ``sensitive`` fields before they are written.

NOT PRODUCTION ENCRYPTION. This masks the value and tags it with the configured
key reference so stored documents never carry the raw text; it gives no
cryptographic guarantee and cannot be reversed.
"""

import hashlib
from typing import Any

from bizadmin.core.config import settings

DEFAULT_KEY_REF = "local-placeholder"


def key_ref_for(tenant_id: str) -> str:
    return settings.PII_KEY_REFS.get(tenant_id, DEFAULT_KEY_REF)


def is_protected(value: Any) -> bool:
    return isinstance(value, dict) and value.get("protected") is True


def protect_value(value: Any, tenant_id: str = "") -> Any:
    """Replace a plain value with a masked, key-tagged stub. Blank and already protected values pass through."""
    if value is None or value == "" or is_protected(value):
        return value
    text = str(value)
    return {
        "protected": True,
        "keyRef": key_ref_for(tenant_id),
        "masked": "•" * max(len(text) - 4, 0) + text[-4:],
        "fingerprint": hashlib.sha256(text.encode("utf-8")).hexdigest()[:16],
    }
