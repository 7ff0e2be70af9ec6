"""Document store interface and the in-memory implementation.

The production document database is an external collaborator; everything in
the application talks to ``DocumentStore`` through collection paths of the form
``artifacts/{appId}/tenants/{tenantId}/{collection}``.
"""

from __future__ import annotations

import copy
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from bizadmin.core.errors import BackendError
from bizadmin.core.paths import get_path

logger = logging.getLogger(__name__)


class _Sentinel:
    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return self.name

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


# Resolved to the store's clock at write time
SERVER_TIMESTAMP = _Sentinel("SERVER_TIMESTAMP")
# Removes the field from the stored document
DELETE_FIELD = _Sentinel("DELETE_FIELD")


@dataclass
class Document:
    id: str
    data: dict

    def as_row(self) -> dict:
        return {"id": self.id, **self.data}


Filter = Tuple[str, str, Any]
Listener = Callable[[List[Document]], None]


class DocumentStore(ABC):
    @abstractmethod
    async def get(self, path: str, doc_id: str) -> Optional[Document]:
        pass

    @abstractmethod
    async def query(
        self,
        path: str,
        where: Optional[List[Filter]] = None,
        order_by: Optional[Tuple[str, str]] = None,
        limit: Optional[int] = None,
    ) -> List[Document]:
        pass

    @abstractmethod
    async def add(self, path: str, data: dict) -> str:
        pass

    @abstractmethod
    async def update(self, path: str, doc_id: str, data: dict) -> None:
        pass

    @abstractmethod
    async def delete(self, path: str, doc_id: str) -> None:
        pass

    @abstractmethod
    def subscribe(self, path: str, listener: Listener, where: Optional[List[Filter]] = None) -> Callable[[], None]:
        """Push the collection to ``listener`` now and after every write; returns the unsubscribe callable."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _resolve(value: Any, now: datetime) -> Any:
    if value is SERVER_TIMESTAMP:
        return now
    if isinstance(value, dict):
        return {k: _resolve(v, now) for k, v in value.items() if v is not DELETE_FIELD}
    if isinstance(value, list):
        return [_resolve(v, now) for v in value]
    return value


def _merge(target: dict, changes: dict, now: datetime) -> None:
    for key, value in changes.items():
        if value is DELETE_FIELD:
            target.pop(key, None)
        elif isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge(target[key], value, now)
        else:
            target[key] = _resolve(value, now)


def _sort_key(value: Any):
    # None sorts first; mixed types fall back to string comparison
    if value is None:
        return (0, "")
    if isinstance(value, bool):
        return (1, int(value))
    if isinstance(value, (int, float)):
        return (1, value)
    if isinstance(value, datetime):
        return (2, value.timestamp())
    return (3, str(value).lower())


def _matches(data: dict, where: Optional[List[Filter]]) -> bool:
    for field, op, expected in where or []:
        actual = get_path(data, field)
        if op == "==" and actual != expected:
            return False
        if op == "!=" and actual == expected:
            return False
    return True


class InMemoryDocumentStore(DocumentStore):
    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, dict]] = {}
        self._listeners: Dict[str, List[Tuple[Listener, Optional[List[Filter]]]]] = {}

    def _bucket(self, path: str) -> Dict[str, dict]:
        return self._collections.setdefault(path, {})

    def _snapshot(self, path: str, where: Optional[List[Filter]] = None) -> List[Document]:
        return [
            Document(id=doc_id, data=copy.deepcopy(data))
            for doc_id, data in self._bucket(path).items()
            if _matches(data, where)
        ]

    def _notify(self, path: str) -> None:
        for listener, where in list(self._listeners.get(path, [])):
            try:
                listener(self._snapshot(path, where))
            except Exception as e:
                logger.error(f"Listener failed for {path}: {e}")

    async def get(self, path: str, doc_id: str) -> Optional[Document]:
        data = self._bucket(path).get(doc_id)
        return Document(id=doc_id, data=copy.deepcopy(data)) if data is not None else None

    async def query(self, path, where=None, order_by=None, limit=None) -> List[Document]:
        docs = self._snapshot(path, where)
        if order_by:
            key, direction = order_by
            docs.sort(key=lambda d: _sort_key(get_path(d.data, key)), reverse=direction == "desc")
        if limit is not None:
            docs = docs[:limit]
        return docs

    async def add(self, path: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex[:20]
        self._bucket(path)[doc_id] = _resolve(copy.deepcopy(data), _now())
        self._notify(path)
        return doc_id

    async def update(self, path: str, doc_id: str, data: dict) -> None:
        bucket = self._bucket(path)
        if doc_id not in bucket:
            raise BackendError("not-found", f"No document to update: {path}/{doc_id}")
        _merge(bucket[doc_id], copy.deepcopy(data), _now())
        self._notify(path)

    async def delete(self, path: str, doc_id: str) -> None:
        self._bucket(path).pop(doc_id, None)
        self._notify(path)

    def subscribe(self, path, listener, where=None):
        entry = (listener, where)
        self._listeners.setdefault(path, []).append(entry)
        listener(self._snapshot(path, where))

        def unsubscribe() -> None:
            entries = self._listeners.get(path, [])
            if entry in entries:
                entries.remove(entry)

        return unsubscribe

    def listener_count(self, path: str) -> int:
        return len(self._listeners.get(path, []))
