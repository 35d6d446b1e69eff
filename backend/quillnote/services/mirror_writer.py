# @TASK P3-T3.2 - Fire-and-forget mirror writes with bounded retries
# @TEST tests/test_mirror_writer.py

"""Background propagation of primary records into the mirror.

Every write runs as a detached ``asyncio`` task: the caller gets its primary
result before the mirror is touched and never waits on it. Upserts use an
update-or-create probe (update in place; on :class:`MirrorDocumentMissing`
create the document), so the mirror may have never seen the record before.

Writes to the same document run one at a time, in scheduling order, and a
document stays locked across all retries of a write, so a retried payload can
never land after a newer write or delete of that document.

A failed write is retried up to ``max_attempts`` times, then logged as a
:class:`MirrorWriteError` and counted in :attr:`MirrorWriter.stats`. Nothing
is ever raised back to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Coroutine
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, TypeVar

from pydantic import BaseModel

from quillnote.constants import MIRROR_COLLECTIONS, EntityKind
from quillnote.exceptions import MirrorWriteError
from quillnote.mirror_gateway.base import MirrorBackend, MirrorDocumentMissing
from quillnote.utils.datetime_utils import datetime_to_iso, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DocKey = tuple[str, str, str]

UpsertOutcome = Literal["updated", "created"]


@dataclass
class MirrorStats:
    """Running totals of mirror write outcomes."""

    succeeded: int = 0
    failed: int = 0
    last_error: str | None = None
    last_failure_at: datetime | None = None


def to_document(record: BaseModel) -> dict[str, Any]:
    """Serialize a primary record as a mirror document (camelCase, string id)."""
    doc = record.model_dump(mode="json", by_alias=True)
    doc["id"] = str(doc["id"])
    doc["mirroredAt"] = datetime_to_iso(utc_now())
    return doc


class MirrorWriter:
    """Schedules and performs mirror writes.

    Args:
        backend: Secondary store, or ``None`` to disable mirroring.
        max_attempts: Attempts per write before giving up (at least 1).
        retry_delay: Seconds to wait between attempts.
    """

    def __init__(
        self,
        backend: MirrorBackend | None,
        *,
        max_attempts: int = 2,
        retry_delay: float = 0.5,
    ) -> None:
        self.backend = backend
        self._max_attempts = max(1, max_attempts)
        self._retry_delay = retry_delay
        self._tasks: set[asyncio.Task] = set()
        self._doc_locks: dict[_DocKey, asyncio.Lock] = {}
        self._doc_waiters: dict[_DocKey, int] = {}
        self.stats = MirrorStats()

    @property
    def enabled(self) -> bool:
        return self.backend is not None

    @property
    def pending(self) -> int:
        """Number of mirror tasks still running."""
        return len(self._tasks)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task | None:
        """Run *coro* as a tracked background task.

        When mirroring is disabled the coroutine is closed without running.
        """
        if not self.enabled:
            coro.close()
            return None
        task = asyncio.create_task(self._guard(coro))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def schedule_upsert(self, kind: EntityKind, user_id: int, record: BaseModel) -> asyncio.Task | None:
        return self.spawn(self.upsert(kind, user_id, record))

    def schedule_delete(self, kind: EntityKind, user_id: int, entity_id: int) -> asyncio.Task | None:
        return self.spawn(self.delete(kind, user_id, entity_id))

    async def drain(self) -> None:
        """Wait until every scheduled mirror task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def close(self) -> None:
        await self.drain()
        if self.backend is not None:
            await self.backend.close()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert(self, kind: EntityKind, user_id: int, record: BaseModel) -> UpsertOutcome | None:
        """Mirror *record* with the update-or-create probe.

        Returns:
            ``"updated"`` or ``"created"``, or ``None`` if the write failed
            (or mirroring is disabled).
        """
        if self.backend is None:
            return None
        backend = self.backend
        collection = MIRROR_COLLECTIONS[kind]
        doc = to_document(record)
        uid, doc_id = str(user_id), doc["id"]

        async def probe() -> UpsertOutcome:
            try:
                await backend.update_document(uid, collection, doc_id, doc)
                return "updated"
            except MirrorDocumentMissing:
                await backend.create_document(uid, collection, doc_id, doc)
                return "created"

        try:
            async with self._document_lock(uid, collection, doc_id):
                outcome = await self._with_retries(collection, doc_id, probe)
        except MirrorWriteError as exc:
            self._record_failure(exc)
            return None
        self.stats.succeeded += 1
        logger.debug("Mirrored %s/%s for user %s (%s)", collection, doc_id, uid, outcome)
        return outcome

    async def delete(self, kind: EntityKind, user_id: int, entity_id: int) -> bool:
        """Remove the mirrored document. Returns ``False`` on failure or if absent."""
        if self.backend is None:
            return False
        backend = self.backend
        collection = MIRROR_COLLECTIONS[kind]
        uid, doc_id = str(user_id), str(entity_id)

        try:
            async with self._document_lock(uid, collection, doc_id):
                removed = await self._with_retries(
                    collection, doc_id, lambda: backend.delete_document(uid, collection, doc_id)
                )
        except MirrorWriteError as exc:
            self._record_failure(exc)
            return False
        self.stats.succeeded += 1
        return removed

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _document_lock(self, user_id: str, collection: str, document_id: str) -> AsyncIterator[None]:
        """Hold the per-document lock; waiters are served first come, first served."""
        key = (user_id, collection, document_id)
        lock = self._doc_locks.setdefault(key, asyncio.Lock())
        self._doc_waiters[key] = self._doc_waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._doc_waiters[key] -= 1
            if not self._doc_waiters[key]:
                del self._doc_waiters[key]
                del self._doc_locks[key]

    async def _with_retries(self, collection: str, document_id: str, op: Callable[[], Awaitable[T]]) -> T:
        last_exc: Exception | None = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                return await op()
            except Exception as exc:
                last_exc = exc
                logger.debug("Mirror write %s/%s attempt %d failed: %s", collection, document_id, attempt, exc)
                if attempt < self._max_attempts:
                    await asyncio.sleep(self._retry_delay)
        raise MirrorWriteError(collection, document_id, self._max_attempts, last_exc)

    def _record_failure(self, exc: MirrorWriteError) -> None:
        self.stats.failed += 1
        self.stats.last_error = exc.message
        self.stats.last_failure_at = utc_now()
        logger.warning(
            "Mirror write failed: collection=%s document=%s attempts=%d (%s)",
            exc.collection, exc.document_id, exc.attempts, exc.cause,
        )

    @staticmethod
    async def _guard(coro: Coroutine[Any, Any, Any]) -> None:
        try:
            await coro
        except Exception:
            logger.exception("Unexpected error in mirror task")
