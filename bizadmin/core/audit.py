from abc import ABC, abstractmethod
from typing import List, Optional
from bizadmin.schemas.audit import AuditLogEntry
import logging

logger = logging.getLogger(__name__)

class AuditRepository(ABC):
    @abstractmethod
    def save(self, entry: AuditLogEntry):
        pass

    @abstractmethod
    def get_all(self, tenant_id: Optional[str] = None) -> List[AuditLogEntry]:
        pass

class InMemoryAuditRepository(AuditRepository):
    """Append-only; one instance per application, created in ``create_app``."""

    def __init__(self):
        self._storage: List[AuditLogEntry] = []

    def save(self, entry: AuditLogEntry):
        self._storage.append(entry)
        logger.info(f"Audit logged: {entry.method} {entry.endpoint} {entry.action_type} tenant={entry.tenant_id} status={entry.status.value}")

    def get_all(self, tenant_id: Optional[str] = None) -> List[AuditLogEntry]:
        if tenant_id is None:
            return list(self._storage)
        return [e for e in self._storage if e.tenant_id == tenant_id]
