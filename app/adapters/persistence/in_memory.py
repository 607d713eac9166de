"""In-process repository used for local development and tests.

Per-process only: data is lost on restart and not shared between workers.
Methods never await while touching ``_docs``, so each call is atomic on the
event loop.
"""

from __future__ import annotations

import copy
import itertools
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from app.adapters.persistence.base import AbstractRepository, Document, DocumentId


def object_id_factory() -> Callable[[], str]:
    """Ids shaped like document-store ids (24 hex characters)."""
    return lambda: uuid.uuid4().hex[:24]


def sequence_id_factory(start: int = 1) -> Callable[[], int]:
    """Auto-increment integer ids, as issued by a relational store."""
    counter = itertools.count(start)
    return lambda: next(counter)


class InMemoryRepository(AbstractRepository):
    """Dict-backed repository; returns copies so callers cannot mutate storage."""

    def __init__(self, *, id_factory: Callable[[], DocumentId] | None = None) -> None:
        self._id_factory = id_factory or object_id_factory()
        self._docs: dict[DocumentId, Document] = {}

    async def list(self) -> list[Document]:
        return [copy.deepcopy(doc) for doc in self._docs.values()]

    async def get(self, doc_id: DocumentId) -> Document | None:
        doc = self._docs.get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def find_by(self, field: str, value: Any) -> Document | None:
        for doc in self._docs.values():
            if doc.get(field) == value:
                return copy.deepcopy(doc)
        return None

    async def create(self, data: Document) -> Document:
        now = datetime.now(timezone.utc)
        doc_id = self._id_factory()
        doc = {**copy.deepcopy(data), "id": doc_id, "created_at": now, "updated_at": now}
        self._docs[doc_id] = doc
        return copy.deepcopy(doc)

    async def update(self, doc_id: DocumentId, data: Document) -> Document | None:
        doc = self._docs.get(doc_id)
        if doc is None:
            return None
        changes = {k: v for k, v in copy.deepcopy(data).items() if k not in ("id", "created_at")}
        doc.update(changes)
        doc["updated_at"] = datetime.now(timezone.utc)
        return copy.deepcopy(doc)

    async def delete(self, doc_id: DocumentId) -> Document | None:
        return self._docs.pop(doc_id, None)
