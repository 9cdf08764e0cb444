from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any, Protocol
from uuid import UUID, uuid4

Document = dict[str, Any]
SortOrder = Sequence[tuple[str, int]]

ASCENDING = 1
DESCENDING = -1


class StoreError(Exception):
    """Base document store error."""


class StoreUnavailableError(StoreError):
    """Raised when the document store is unreachable or not configured."""


class DocumentStore(Protocol):
    backend: str

    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    async def ping(self) -> bool: ...

    def parse_id(self, raw: str) -> Any: ...

    async def find(self, filter: Mapping[str, Any], *, sort: SortOrder | None = None) -> list[Document]: ...

    async def find_one(self, doc_id: Any) -> Document | None: ...

    async def insert_one(self, document: Mapping[str, Any]) -> Any: ...

    async def update_one(self, doc_id: Any, fields: Mapping[str, Any]) -> int: ...

    async def delete_one(self, doc_id: Any) -> int: ...

    async def count(self, filter: Mapping[str, Any] | None = None) -> int: ...


def parse_uuid(raw: str) -> UUID:
    """Parse a canonical UUID string, raising ValueError otherwise."""
    value = UUID(raw)
    if str(value) != raw.lower():
        raise ValueError(f"not a canonical uuid: {raw!r}")
    return value


def sort_key(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat(timespec="microseconds")
    return str(value)


class InMemoryDocumentStore:
    """Process-local document store keyed by UUID."""

    backend = "memory"

    def __init__(self, documents: Sequence[Mapping[str, Any]] = ()) -> None:
        self._documents: dict[UUID, Document] = {}
        self.connected = False
        for document in documents:
            self._insert(document)

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.connected = False

    async def ping(self) -> bool:
        return True

    def parse_id(self, raw: str) -> UUID:
        return parse_uuid(raw)

    async def find(self, filter: Mapping[str, Any], *, sort: SortOrder | None = None) -> list[Document]:
        rows = [
            copy.deepcopy(document)
            for document in self._documents.values()
            if all(document.get(key) == value for key, value in filter.items())
        ]
        # Apply keys last-to-first so the first key has the highest precedence.
        for field, direction in reversed(list(sort or [])):
            rows.sort(key=lambda row: sort_key(row.get(field)), reverse=direction == DESCENDING)
        return rows

    async def find_one(self, doc_id: UUID) -> Document | None:
        document = self._documents.get(doc_id)
        return copy.deepcopy(document) if document is not None else None

    async def insert_one(self, document: Mapping[str, Any]) -> UUID:
        return self._insert(document)

    async def update_one(self, doc_id: UUID, fields: Mapping[str, Any]) -> int:
        document = self._documents.get(doc_id)
        if document is None:
            return 0
        document.update(copy.deepcopy(dict(fields)))
        return 1

    async def delete_one(self, doc_id: UUID) -> int:
        return 1 if self._documents.pop(doc_id, None) is not None else 0

    async def count(self, filter: Mapping[str, Any] | None = None) -> int:
        return len(await self.find(filter or {}))

    def _insert(self, document: Mapping[str, Any]) -> UUID:
        stored = copy.deepcopy(dict(document))
        doc_id = stored.get("_id")
        if not isinstance(doc_id, UUID):
            doc_id = uuid4()
        stored["_id"] = doc_id
        self._documents[doc_id] = stored
        return doc_id
