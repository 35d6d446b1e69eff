"""In-process mirror backend.

Used by default and in tests. Keeps documents in a nested dict and can be
told to fail the next N calls to exercise retry and failure paths.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from quillnote.mirror_gateway.base import MirrorBackend, MirrorDocumentMissing

logger = logging.getLogger(__name__)

_Path = tuple[str, str, str]


class InMemoryMirror(MirrorBackend):
    """Dict-backed :class:`MirrorBackend`.

    Args:
        record_calls: Keep an ``(op, path)`` log of every backend call in
            :attr:`calls`. Off by default; the log is unbounded.
    """

    def __init__(self, *, record_calls: bool = False) -> None:
        self._documents: dict[_Path, dict[str, Any]] = {}
        self._failures_left = 0
        self._record_calls = record_calls
        self.calls: list[tuple[str, _Path]] = []

    def fail_next(self, count: int = 1) -> None:
        """Make the next *count* backend calls raise ``ConnectionError``."""
        self._failures_left = count

    async def update_document(self, user_id: str, collection: str, document_id: str, data: dict[str, Any]) -> None:
        path = (user_id, collection, document_id)
        self._record("update", path)
        if path not in self._documents:
            raise MirrorDocumentMissing(collection, document_id)
        self._documents[path].update(copy.deepcopy(data))

    async def create_document(self, user_id: str, collection: str, document_id: str, data: dict[str, Any]) -> None:
        path = (user_id, collection, document_id)
        self._record("create", path)
        self._documents[path] = copy.deepcopy(data)

    async def delete_document(self, user_id: str, collection: str, document_id: str) -> bool:
        path = (user_id, collection, document_id)
        self._record("delete", path)
        return self._documents.pop(path, None) is not None

    def get_document(self, user_id: str, collection: str, document_id: str) -> dict[str, Any] | None:
        doc = self._documents.get((user_id, collection, document_id))
        return copy.deepcopy(doc) if doc is not None else None

    def documents(self, user_id: str, collection: str) -> dict[str, dict[str, Any]]:
        """All documents of one user's collection, keyed by document id."""
        return {
            doc_id: copy.deepcopy(doc)
            for (uid, coll, doc_id), doc in self._documents.items()
            if uid == user_id and coll == collection
        }

    def _record(self, op: str, path: _Path) -> None:
        if self._record_calls:
            self.calls.append((op, path))
        if self._failures_left > 0:
            self._failures_left -= 1
            logger.debug("Injected mirror failure on %s %s", op, "/".join(path))
            raise ConnectionError(f"mirror unavailable ({op} {'/'.join(path)})")
