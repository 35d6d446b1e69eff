# @TASK P3-T3.3 - Dual-write adapter: primary mutation, cache invalidation, mirror
# @TEST tests/test_sync_adapter.py

"""Primary-first mutations with write-behind mirroring.

Every mutation goes to the primary store through :class:`MutationService`.
Once it has succeeded the adapter

1. invalidates every cached read of the affected kinds (a note mutation
   drops all note reads, the note's own entries included), then
2. schedules the mirror write through :class:`MirrorWriter`,

and returns the primary result. The mirror write runs in the background; its
outcome never changes what the caller sees.

Cascades are mirrored too: notes whose folder or category was nulled are
re-mirrored, and the removed note tag rows are deleted from the mirror.
Note tags live under the note owner's collection.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic.alias_generators import to_snake

from quillnote.constants import EntityKind
from quillnote.exceptions import NotFoundError, ValidationFailedError
from quillnote.schemas import (
    CategoryRead,
    FolderRead,
    NoteRead,
    NoteTagRead,
    TagRead,
    UserRead,
)
from quillnote.services.mirror_writer import MirrorWriter
from quillnote.services.mutations import MutationService, Payload
from quillnote.services.read_cache import ReadCache
from quillnote.store.cascades import CascadeResult
from quillnote.store.queries import NoteQueries
from quillnote.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Summary of a full mirror resynchronisation."""

    updated: int = 0
    created: int = 0
    failed: int = 0
    total: int = 0
    synced_at: datetime = field(default_factory=utc_now)


class SyncAdapter:
    """Mutation API front that keeps the read cache and the mirror in step.

    Args:
        mutations: Validated primary-store mutations.
        queries: Read access used to resolve cascade targets and resync sets.
        mirror: Background mirror writer.
        cache: Read cache to invalidate after each mutation.
    """

    def __init__(
        self,
        mutations: MutationService,
        queries: NoteQueries,
        mirror: MirrorWriter,
        cache: ReadCache,
    ) -> None:
        self._mutations = mutations
        self._queries = queries
        self._mirror = mirror
        self._cache = cache
        self.last_sync: SyncResult | None = None

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def create_user(self, payload: Payload) -> UserRead:
        user = await self._mutations.create_user(payload)
        self._cache.invalidate(EntityKind.USER)
        return user

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    async def create_note(self, payload: Payload) -> NoteRead:
        note = await self._mutations.create_note(payload)
        self._cache.invalidate(EntityKind.NOTE)
        self._mirror.schedule_upsert(EntityKind.NOTE, note.user_id, note)
        return note

    async def update_note(self, note_id: int, payload: Payload) -> NoteRead | None:
        note = await self._mutations.update_note(note_id, payload)
        if note is None:
            return None
        self._cache.invalidate(EntityKind.NOTE)
        self._mirror.schedule_upsert(EntityKind.NOTE, note.user_id, note)
        return note

    async def apply_autosave(self, note_id: int, fields: Mapping[str, Any]) -> NoteRead:
        """Apply a coalesced autosave edit.

        Fields that stopped validating after they were queued (a folder or
        category deleted in the meantime) are dropped and the rest of the edit
        is applied.

        Raises:
            NotFoundError: The note was deleted before the edit was applied.
            ValidationFailedError: No field of the edit could be applied.
        """
        try:
            note = await self.update_note(note_id, dict(fields))
        except ValidationFailedError as exc:
            rejected = {to_snake(problem["field"]) for problem in exc.errors if problem.get("field")}
            kept = {name: value for name, value in fields.items() if name not in rejected}
            if not kept or len(kept) == len(fields):
                raise
            logger.warning(
                "Autosave of note %d dropped invalid field(s): %s", note_id, ", ".join(sorted(rejected & set(fields)))
            )
            note = await self.update_note(note_id, kept)
        if note is None:
            raise NotFoundError(EntityKind.NOTE, note_id)
        return note

    async def delete_note(self, note_id: int) -> bool:
        result = await self._mutations.delete_note(note_id)
        if result is None:
            return False
        self._cache.invalidate(EntityKind.NOTE)
        self._cache.invalidate(EntityKind.TAG)
        owner = result.record.user_id
        self._mirror.schedule_delete(EntityKind.NOTE, owner, note_id)
        for note_tag_id in result.removed_note_tag_ids:
            self._mirror.schedule_delete(EntityKind.NOTE_TAG, owner, note_tag_id)
        return True

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    async def create_folder(self, payload: Payload) -> FolderRead:
        folder = await self._mutations.create_folder(payload)
        return self._after_write(EntityKind.FOLDER, folder)

    async def update_folder(self, folder_id: int, payload: Payload) -> FolderRead | None:
        folder = await self._mutations.update_folder(folder_id, payload)
        return self._after_write(EntityKind.FOLDER, folder)

    async def delete_folder(self, folder_id: int) -> bool:
        return self._after_delete(await self._mutations.delete_folder(folder_id))

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    async def create_category(self, payload: Payload) -> CategoryRead:
        category = await self._mutations.create_category(payload)
        return self._after_write(EntityKind.CATEGORY, category)

    async def update_category(self, category_id: int, payload: Payload) -> CategoryRead | None:
        category = await self._mutations.update_category(category_id, payload)
        return self._after_write(EntityKind.CATEGORY, category)

    async def delete_category(self, category_id: int) -> bool:
        return self._after_delete(await self._mutations.delete_category(category_id))

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    async def create_tag(self, payload: Payload) -> TagRead:
        tag = await self._mutations.create_tag(payload)
        return self._after_write(EntityKind.TAG, tag)

    async def update_tag(self, tag_id: int, payload: Payload) -> TagRead | None:
        tag = await self._mutations.update_tag(tag_id, payload)
        return self._after_write(EntityKind.TAG, tag)

    async def delete_tag(self, tag_id: int) -> bool:
        return self._after_delete(await self._mutations.delete_tag(tag_id))

    # ------------------------------------------------------------------
    # Note tags
    # ------------------------------------------------------------------

    async def add_tag_to_note(self, note_id: int, tag_id: int) -> NoteTagRead:
        note_tag = await self._mutations.add_tag_to_note(note_id, tag_id)
        self._invalidate_note_tag()
        self._mirror.spawn(self._mirror_note_tag(note_tag))
        return note_tag

    async def remove_tag_from_note(self, note_id: int, tag_id: int) -> bool:
        removed = await self._mutations.remove_tag_from_note(note_id, tag_id)
        if removed is None:
            return False
        self._invalidate_note_tag()
        self._mirror.spawn(self._unmirror_note_tags([(removed.id, removed.note_id)]))
        return True

    # ------------------------------------------------------------------
    # Full resync
    # ------------------------------------------------------------------

    async def sync_all_to_secondary(self, user_id: int) -> SyncResult:
        """Push every note owned by *user_id* into the mirror.

        Uses the same update-or-create probe as the per-mutation writes and
        waits for each write, so the counts reflect what happened.
        """
        notes = await self._queries.list_notes_by_owner(user_id)
        result = SyncResult(total=len(notes))

        if not self._mirror.enabled:
            logger.info("Mirror disabled, skipping resync of %d note(s) for user %d", len(notes), user_id)
        else:
            for note in notes:
                outcome = await self._mirror.upsert(EntityKind.NOTE, user_id, note)
                if outcome == "updated":
                    result.updated += 1
                elif outcome == "created":
                    result.created += 1
                else:
                    result.failed += 1
            logger.info(
                "Mirror resync for user %d: %d updated, %d created, %d failed (total %d)",
                user_id, result.updated, result.created, result.failed, result.total,
            )

        result.synced_at = utc_now()
        self.last_sync = result
        return result

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _after_write(self, kind: EntityKind, record: Any) -> Any:
        if record is not None:
            self._cache.invalidate(kind)
            self._mirror.schedule_upsert(kind, record.user_id, record)
        return record

    def _after_delete(self, result: CascadeResult | None) -> bool:
        if result is None:
            return False
        self._cache.invalidate(result.kind)
        self._mirror.schedule_delete(result.kind, result.record.user_id, result.entity_id)

        if result.nulled_note_ids:
            self._cache.invalidate(EntityKind.NOTE)
            self._mirror.spawn(self._remirror_notes(result.nulled_note_ids))
        if result.removed_note_tags:
            self._cache.invalidate(EntityKind.NOTE)
            self._mirror.spawn(self._unmirror_note_tags(result.removed_note_tags))
        return True

    def _invalidate_note_tag(self) -> None:
        self._cache.invalidate(EntityKind.NOTE)
        self._cache.invalidate(EntityKind.TAG)

    async def _remirror_notes(self, note_ids: list[int]) -> None:
        for note in await self._queries.get_notes(note_ids):
            await self._mirror.upsert(EntityKind.NOTE, note.user_id, note)

    async def _mirror_note_tag(self, note_tag: NoteTagRead) -> None:
        note = await self._queries.get_note(note_tag.note_id)
        if note is None:
            return
        await self._mirror.upsert(EntityKind.NOTE_TAG, note.user_id, note_tag)

    async def _unmirror_note_tags(self, pairs: list[tuple[int, int]]) -> None:
        owners = {note.id: note.user_id for note in await self._queries.get_notes(sorted({n for _, n in pairs}))}
        for note_tag_id, note_id in pairs:
            owner = owners.get(note_id)
            if owner is not None:
                await self._mirror.delete(EntityKind.NOTE_TAG, owner, note_tag_id)
