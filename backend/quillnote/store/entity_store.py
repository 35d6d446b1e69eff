# @TASK P1-T1.1 - Authoritative entity store
# @TEST tests/test_entity_store.py

"""Authoritative keyed storage for users, notes, folders, categories, tags
and note/tag join rows.

:class:`EntityStore` is built once per process and handed to the query and
mutation layers. Every unit of work runs inside :meth:`EntityStore.transaction`,
which holds a store-wide ``asyncio.Lock`` for its whole duration: validation
reads, the write and its cascades are therefore never interleaved with another
request. The lock also keeps concurrent sessions off the single connection
that backs an in-memory SQLite database.

Records leave the store as pydantic read models (detached snapshots), never as
live ORM objects.

Usage::

    store = EntityStore.from_settings(settings)
    await store.init_schema()

    async with store.transaction() as tx:
        folder = await tx.create(EntityKind.FOLDER, {"name": "Work", "user_id": 1})
        await tx.update(EntityKind.FOLDER, folder.id, {"name": "Projects"})
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from typing import Any

from pydantic import BaseModel
from sqlalchemy import inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from quillnote.config import Settings
from quillnote.constants import EntityKind
from quillnote.database import Base, create_engine_for, create_session_factory
from quillnote.exceptions import ConflictError
from quillnote.models import Category, Folder, Note, NoteTag, Tag, User
from quillnote.schemas import CategoryRead, FolderRead, NoteRead, NoteTagRead, TagRead, UserRead
from quillnote.store.cascades import CascadeResult, run_cascade
from quillnote.utils.datetime_utils import next_timestamp, utc_now

logger = logging.getLogger(__name__)

MODELS: dict[EntityKind, type[Base]] = {
    EntityKind.USER: User,
    EntityKind.NOTE: Note,
    EntityKind.FOLDER: Folder,
    EntityKind.CATEGORY: Category,
    EntityKind.TAG: Tag,
    EntityKind.NOTE_TAG: NoteTag,
}

READ_SCHEMAS: dict[EntityKind, type[BaseModel]] = {
    EntityKind.USER: UserRead,
    EntityKind.NOTE: NoteRead,
    EntityKind.FOLDER: FolderRead,
    EntityKind.CATEGORY: CategoryRead,
    EntityKind.TAG: TagRead,
    EntityKind.NOTE_TAG: NoteTagRead,
}

# Fields owned by the store; callers can never set them.
_STORE_MANAGED = frozenset({"id", "created_at", "updated_at"})


def _columns(kind: EntityKind) -> frozenset[str]:
    return frozenset(inspect(MODELS[kind]).columns.keys())


def to_record(kind: EntityKind, obj: Base) -> BaseModel:
    """Convert an ORM row to the read model for *kind*."""
    return READ_SCHEMAS[kind].model_validate(obj)


class StoreTransaction:
    """Entity operations bound to one open session.

    Obtained from :meth:`EntityStore.transaction`; not meant to be built
    directly.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, kind: EntityKind, payload: Mapping[str, Any]) -> Any:
        """Insert a record, allocating its id and creation timestamps."""
        values = self._writable(kind, payload)
        if kind is not EntityKind.NOTE_TAG:
            now = utc_now()
            values["created_at"] = now
            if kind is EntityKind.NOTE:
                values["updated_at"] = now

        obj = MODELS[kind](**values)
        self.session.add(obj)
        await self._flush(kind)
        return to_record(kind, obj)

    async def get(self, kind: EntityKind, entity_id: int) -> Any | None:
        obj = await self.session.get(MODELS[kind], entity_id)
        if obj is None:
            return None
        return to_record(kind, obj)

    async def update(self, kind: EntityKind, entity_id: int, partial: Mapping[str, Any]) -> Any | None:
        """Shallow-merge *partial* over the stored record.

        Keys absent from *partial* are left untouched; a key present with
        ``None`` clears the field. Notes get a fresh ``updated_at`` that is
        strictly later than the previous one.

        Returns:
            The merged record, or ``None`` if no record has this id.
        """
        obj = await self.session.get(MODELS[kind], entity_id)
        if obj is None:
            return None

        for field, value in self._writable(kind, partial).items():
            setattr(obj, field, value)
        if kind is EntityKind.NOTE:
            obj.updated_at = next_timestamp(obj.updated_at)

        await self._flush(kind)
        return to_record(kind, obj)

    async def delete(self, kind: EntityKind, entity_id: int) -> CascadeResult | None:
        """Run the cascade policy for *kind*, then remove the record.

        Returns:
            A :class:`CascadeResult` describing the removed record and the
            dependent rows touched, or ``None`` if no record has this id.
        """
        obj = await self.session.get(MODELS[kind], entity_id)
        if obj is None:
            return None

        record = to_record(kind, obj)
        result = await run_cascade(self.session, kind, entity_id)
        result.record = record
        await self.session.delete(obj)
        await self._flush(kind)
        if result.nulled_note_ids or result.removed_note_tag_ids:
            logger.debug(
                "Deleted %s %d: nulled %d note reference(s), removed %d note tag(s)",
                kind, entity_id, len(result.nulled_note_ids), len(result.removed_note_tag_ids),
            )
        return result

    async def select(self, kind: EntityKind, *criteria: Any) -> list[Any]:
        """Return every record of *kind* matching *criteria*, in id (insertion) order."""
        model = MODELS[kind]
        stmt = select(model).order_by(model.id)
        if criteria:
            stmt = stmt.where(*criteria)
        result = await self.session.execute(stmt)
        return [to_record(kind, row) for row in result.scalars().all()]

    async def find_note_tag(self, note_id: int, tag_id: int) -> NoteTagRead | None:
        rows = await self.select(EntityKind.NOTE_TAG, NoteTag.note_id == note_id, NoteTag.tag_id == tag_id)
        return rows[0] if rows else None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _writable(kind: EntityKind, payload: Mapping[str, Any]) -> dict[str, Any]:
        columns = _columns(kind)
        values: dict[str, Any] = {}
        for field, value in payload.items():
            if field in _STORE_MANAGED:
                continue
            if field not in columns:
                raise ValueError(f"Unknown field {field!r} for {kind}")
            values[field] = value
        return values

    async def _flush(self, kind: EntityKind) -> None:
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise ConflictError(f"Uniqueness violated for {kind}", {"kind": str(kind)}) from exc


class EntityStore:
    """Process-wide primary store.

    Args:
        engine: Async SQLAlchemy engine. The store owns it and disposes it
            in :meth:`dispose`.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._session_factory = create_session_factory(engine)
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> EntityStore:
        return cls(create_engine_for(settings))

    async def init_schema(self) -> None:
        """Create all tables if they don't exist."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self._engine.dispose()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreTransaction]:
        """Open an exclusive unit of work.

        Commits when the block exits normally and rolls back if it raises.
        Transactions do not nest: do not open one while holding another.
        """
        async with self._lock:
            async with self._session_factory() as session:
                try:
                    yield StoreTransaction(session)
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise

    # ------------------------------------------------------------------
    # One-shot shorthands
    # ------------------------------------------------------------------

    async def create(self, kind: EntityKind, payload: Mapping[str, Any]) -> Any:
        async with self.transaction() as tx:
            return await tx.create(kind, payload)

    async def get(self, kind: EntityKind, entity_id: int) -> Any | None:
        async with self.transaction() as tx:
            return await tx.get(kind, entity_id)

    async def update(self, kind: EntityKind, entity_id: int, partial: Mapping[str, Any]) -> Any | None:
        async with self.transaction() as tx:
            return await tx.update(kind, entity_id, partial)

    async def delete(self, kind: EntityKind, entity_id: int) -> bool:
        async with self.transaction() as tx:
            return await tx.delete(kind, entity_id) is not None
