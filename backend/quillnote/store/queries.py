# @TASK P1-T1.2 - Read-side note/folder/category/tag queries
# @TEST tests/test_queries.py

"""Read-only projections over the entity store.

These queries only ever read the primary store; the secondary mirror is
write-only and is never consulted here. All list operations return records
in insertion (id) order and return an empty list when nothing matches.

Folder/category/tag note listings take an optional ``user_id``: when given,
results are restricted to notes owned by that user.
"""

from __future__ import annotations

import json
from typing import Any

from sqlalchemy import select

from quillnote.constants import EntityKind
from quillnote.models import Category, Folder, Note, NoteTag, Tag, User
from quillnote.schemas import CategoryRead, FolderRead, NoteRead, NoteTagRead, TagRead, UserRead
from quillnote.store.entity_store import EntityStore


def serialize_content(content: Any) -> str:
    """Compact JSON text of a note body, as used for substring search."""
    if content is None:
        return ""
    return json.dumps(content, separators=(",", ":"), ensure_ascii=False)


def note_matches(note: NoteRead, needle: str) -> bool:
    """Case-insensitive substring match against the title or serialized content."""
    needle = needle.lower()
    return needle in note.title.lower() or needle in serialize_content(note.content).lower()


class NoteQueries:
    """Query/filter engine over an :class:`EntityStore`."""

    def __init__(self, store: EntityStore) -> None:
        self._store = store

    # ------------------------------------------------------------------
    # Single records
    # ------------------------------------------------------------------

    async def get_user(self, user_id: int) -> UserRead | None:
        return await self._store.get(EntityKind.USER, user_id)

    async def get_user_by_external_id(self, external_auth_id: str) -> UserRead | None:
        async with self._store.transaction() as tx:
            rows = await tx.select(EntityKind.USER, User.external_auth_id == external_auth_id)
        return rows[0] if rows else None

    async def get_note(self, note_id: int) -> NoteRead | None:
        return await self._store.get(EntityKind.NOTE, note_id)

    async def get_notes(self, note_ids: list[int]) -> list[NoteRead]:
        if not note_ids:
            return []
        async with self._store.transaction() as tx:
            return await tx.select(EntityKind.NOTE, Note.id.in_(note_ids))

    async def get_folder(self, folder_id: int) -> FolderRead | None:
        return await self._store.get(EntityKind.FOLDER, folder_id)

    async def get_category(self, category_id: int) -> CategoryRead | None:
        return await self._store.get(EntityKind.CATEGORY, category_id)

    async def get_tag(self, tag_id: int) -> TagRead | None:
        return await self._store.get(EntityKind.TAG, tag_id)

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    async def list_notes_by_owner(self, user_id: int) -> list[NoteRead]:
        return await self._notes_where(Note.user_id == user_id)

    async def list_notes_by_folder(self, folder_id: int, user_id: int | None = None) -> list[NoteRead]:
        return await self._notes_where(Note.folder_id == folder_id, user_id=user_id)

    async def list_notes_by_category(self, category_id: int, user_id: int | None = None) -> list[NoteRead]:
        return await self._notes_where(Note.category_id == category_id, user_id=user_id)

    async def list_notes_by_tag(self, tag_id: int, user_id: int | None = None) -> list[NoteRead]:
        tagged = select(NoteTag.note_id).where(NoteTag.tag_id == tag_id)
        return await self._notes_where(Note.id.in_(tagged), user_id=user_id)

    async def search_notes(self, user_id: int, query: str) -> list[NoteRead]:
        """Return the user's notes whose title or content contains *query*.

        This is a linear scan over all of the user's notes (O(n), no index):
        the content is an opaque document, so its compact JSON text is
        matched as a plain string.
        """
        notes = await self.list_notes_by_owner(user_id)
        return [note for note in notes if note_matches(note, query)]

    # ------------------------------------------------------------------
    # Folders, categories, tags
    # ------------------------------------------------------------------

    async def list_folders_by_owner(self, user_id: int) -> list[FolderRead]:
        async with self._store.transaction() as tx:
            return await tx.select(EntityKind.FOLDER, Folder.user_id == user_id)

    async def list_categories_by_owner(self, user_id: int) -> list[CategoryRead]:
        async with self._store.transaction() as tx:
            return await tx.select(EntityKind.CATEGORY, Category.user_id == user_id)

    async def list_tags_by_owner(self, user_id: int) -> list[TagRead]:
        async with self._store.transaction() as tx:
            return await tx.select(EntityKind.TAG, Tag.user_id == user_id)

    async def list_tags_for_note(self, note_id: int) -> list[TagRead]:
        attached = select(NoteTag.tag_id).where(NoteTag.note_id == note_id)
        async with self._store.transaction() as tx:
            return await tx.select(EntityKind.TAG, Tag.id.in_(attached))

    async def list_note_tags(self, *, note_id: int | None = None, tag_id: int | None = None) -> list[NoteTagRead]:
        criteria = []
        if note_id is not None:
            criteria.append(NoteTag.note_id == note_id)
        if tag_id is not None:
            criteria.append(NoteTag.tag_id == tag_id)
        async with self._store.transaction() as tx:
            return await tx.select(EntityKind.NOTE_TAG, *criteria)

    async def _notes_where(self, criterion: Any, user_id: int | None = None) -> list[NoteRead]:
        criteria = [criterion]
        if user_id is not None:
            criteria.append(Note.user_id == user_id)
        async with self._store.transaction() as tx:
            return await tx.select(EntityKind.NOTE, *criteria)
