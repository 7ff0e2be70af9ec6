from dataclasses import dataclass, field
from typing import Optional

from bizadmin.core.collections import tenant_collection_path
from bizadmin.db.store import DocumentStore


@dataclass(frozen=True)
class Actor:
    email: Optional[str] = None
    uid: Optional[str] = None

    @property
    def identifier(self) -> str:
        return self.email or self.uid or "unknown"


@dataclass(frozen=True)
class BackendContext:
    """Per-request handle on the document store, scoped to one (app, tenant)."""

    store: DocumentStore
    app_id: str
    tenant_id: str
    actor: Actor = field(default_factory=Actor)

    def collection_path(self, collection: str) -> str:
        return tenant_collection_path(self.app_id, self.tenant_id, collection)
