"""Repository interface consumed by the resource services."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

Document = dict[str, Any]
DocumentId = int | str


class AbstractRepository(ABC):
    """Async CRUD access to one resource collection.

    Documents are plain dicts carrying ``id``, ``created_at`` and
    ``updated_at`` in addition to their own fields.
    """

    @abstractmethod
    async def list(self) -> list[Document]:
        """Return every document, oldest first."""
        raise NotImplementedError

    @abstractmethod
    async def get(self, doc_id: DocumentId) -> Document | None:
        """Return the document with ``doc_id`` or None."""
        raise NotImplementedError

    @abstractmethod
    async def find_by(self, field: str, value: Any) -> Document | None:
        """Return the first document whose ``field`` equals ``value``."""
        raise NotImplementedError

    @abstractmethod
    async def create(self, data: Document) -> Document:
        """Insert a new document and return it with its generated id."""
        raise NotImplementedError

    @abstractmethod
    async def update(self, doc_id: DocumentId, data: Document) -> Document | None:
        """Merge ``data`` into a document; None if it does not exist."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, doc_id: DocumentId) -> Document | None:
        """Remove a document and return it; None if it did not exist."""
        raise NotImplementedError
