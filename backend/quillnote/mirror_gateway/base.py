"""Interface every secondary document store implements.

Documents live under ``users/{user_id}/{collection}/{document_id}``. The
mirror writer only relies on three operations: update an existing document,
create one at a fixed id, and delete one.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class MirrorDocumentMissing(Exception):
    """The document to update does not exist in the mirror."""

    def __init__(self, collection: str, document_id: str) -> None:
        self.collection = collection
        self.document_id = document_id
        super().__init__(f"Mirror document {collection}/{document_id} does not exist")


class MirrorBackend(ABC):
    """Abstract secondary document store."""

    @abstractmethod
    async def update_document(self, user_id: str, collection: str, document_id: str, data: dict[str, Any]) -> None:
        """Merge *data* into an existing document.

        Raises:
            MirrorDocumentMissing: No document exists at this path.
        """

    @abstractmethod
    async def create_document(self, user_id: str, collection: str, document_id: str, data: dict[str, Any]) -> None:
        """Create (or overwrite) the document at this path."""

    @abstractmethod
    async def delete_document(self, user_id: str, collection: str, document_id: str) -> bool:
        """Remove a document. Returns ``False`` if there was nothing to remove."""

    async def close(self) -> None:
        """Release any underlying connections."""
