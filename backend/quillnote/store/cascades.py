"""Delete-time cascade policies, one per entity kind.

Each policy runs inside the same store transaction as the delete that
triggers it, before the target row itself is removed:

- Folder   → ``notes.folder_id`` set to NULL (notes are kept)
- Category → ``notes.category_id`` set to NULL (notes are kept)
- Note     → its ``note_tags`` rows are removed
- Tag      → its ``note_tags`` rows are removed
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from quillnote.constants import EntityKind
from quillnote.models import Note, NoteTag


@dataclass
class CascadeResult:
    """What a delete removed and which dependent rows it touched."""

    kind: EntityKind
    entity_id: int
    record: Any = None
    nulled_note_ids: list[int] = field(default_factory=list)
    # (note_tag_id, note_id) pairs
    removed_note_tags: list[tuple[int, int]] = field(default_factory=list)

    @property
    def removed_note_tag_ids(self) -> list[int]:
        return [note_tag_id for note_tag_id, _ in self.removed_note_tags]


CascadePolicy = Callable[[AsyncSession, int, CascadeResult], Awaitable[None]]


async def null_folder_references(session: AsyncSession, folder_id: int, result: CascadeResult) -> None:
    ids = await _note_ids_where(session, Note.folder_id == folder_id)
    if ids:
        await session.execute(update(Note).where(Note.id.in_(ids)).values(folder_id=None))
    result.nulled_note_ids.extend(ids)


async def null_category_references(session: AsyncSession, category_id: int, result: CascadeResult) -> None:
    ids = await _note_ids_where(session, Note.category_id == category_id)
    if ids:
        await session.execute(update(Note).where(Note.id.in_(ids)).values(category_id=None))
    result.nulled_note_ids.extend(ids)


async def drop_note_tags_for_note(session: AsyncSession, note_id: int, result: CascadeResult) -> None:
    await _drop_note_tags(session, NoteTag.note_id == note_id, result)


async def drop_note_tags_for_tag(session: AsyncSession, tag_id: int, result: CascadeResult) -> None:
    await _drop_note_tags(session, NoteTag.tag_id == tag_id, result)


CASCADE_POLICIES: dict[EntityKind, CascadePolicy] = {
    EntityKind.FOLDER: null_folder_references,
    EntityKind.CATEGORY: null_category_references,
    EntityKind.NOTE: drop_note_tags_for_note,
    EntityKind.TAG: drop_note_tags_for_tag,
}


async def run_cascade(session: AsyncSession, kind: EntityKind, entity_id: int) -> CascadeResult:
    """Apply the cascade policy registered for *kind* (if any) and report what it did."""
    result = CascadeResult(kind=kind, entity_id=entity_id)
    policy = CASCADE_POLICIES.get(kind)
    if policy is not None:
        await policy(session, entity_id, result)
    return result


async def _note_ids_where(session: AsyncSession, criterion) -> list[int]:
    rows = await session.execute(select(Note.id).where(criterion).order_by(Note.id))
    return list(rows.scalars().all())


async def _drop_note_tags(session: AsyncSession, criterion, result: CascadeResult) -> None:
    rows = await session.execute(select(NoteTag.id, NoteTag.note_id).where(criterion).order_by(NoteTag.id))
    pairs = [(note_tag_id, note_id) for note_tag_id, note_id in rows.all()]
    if pairs:
        await session.execute(delete(NoteTag).where(NoteTag.id.in_([p[0] for p in pairs])))
    result.removed_note_tags.extend(pairs)
