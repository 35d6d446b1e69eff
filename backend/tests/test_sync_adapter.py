# @TASK P3-T3.3 - Dual-write adapter: primary mutation, cache invalidation, mirror
# @TEST tests/test_sync_adapter.py

"""Tests for SyncAdapter: mirror propagation, cascades, cache invalidation, resync."""

import logging
from unittest.mock import AsyncMock, patch

import pytest

from quillnote.constants import EntityKind
from quillnote.exceptions import NotFoundError, ValidationFailedError


class TestMirrorPropagation:
    @pytest.mark.asyncio
    async def test_created_note_is_mirrored_under_owner(self, services, sync, mirror_backend, user):
        note = await sync.create_note({"title": "hello", "content": {"type": "doc"}, "userId": user.id})
        await services.mirror.drain()

        doc = mirror_backend.get_document(str(user.id), "notes", str(note.id))
        assert doc["title"] == "hello"
        assert doc["content"] == {"type": "doc"}
        assert doc["id"] == str(note.id)

    @pytest.mark.asyncio
    async def test_update_uses_update_in_place(self, services, sync, mirror_backend, user):
        note = await sync.create_note({"title": "a", "userId": user.id})
        await services.mirror.drain()
        await sync.update_note(note.id, {"title": "b"})
        await services.mirror.drain()

        assert mirror_backend.get_document(str(user.id), "notes", str(note.id))["title"] == "b"
        ops = [op for op, path in mirror_backend.calls if path[1:] == ("notes", str(note.id))]
        assert ops == ["update", "create", "update"]

    @pytest.mark.asyncio
    async def test_mirror_failure_does_not_change_primary_result(self, services, sync, queries, mirror_backend, user):
        mirror_backend.fail_next(100)
        note = await sync.create_note({"title": "kept", "userId": user.id})
        await services.mirror.drain()

        assert (await queries.get_note(note.id)).title == "kept"
        assert services.mirror.stats.failed == 1
        assert mirror_backend.get_document(str(user.id), "notes", str(note.id)) is None

    @pytest.mark.asyncio
    async def test_retried_create_never_resurrects_deleted_note(self, services, sync, queries, mirror_backend, user):
        mirror_backend.fail_next(1)
        note = await sync.create_note({"title": "secret", "userId": user.id})
        assert await sync.delete_note(note.id) is True
        await services.mirror.drain()

        assert await queries.get_note(note.id) is None
        assert mirror_backend.documents(str(user.id), "notes") == {}

    @pytest.mark.asyncio
    async def test_retried_update_lands_before_newer_update(self, services, sync, mirror_backend, user):
        note = await sync.create_note({"title": "v0", "userId": user.id})
        await services.mirror.drain()

        mirror_backend.fail_next(1)
        await sync.update_note(note.id, {"title": "v1"})
        await sync.update_note(note.id, {"title": "v2"})
        await services.mirror.drain()

        assert mirror_backend.get_document(str(user.id), "notes", str(note.id))["title"] == "v2"

    @pytest.mark.asyncio
    async def test_delete_removes_mirrored_document(self, services, sync, mirror_backend, user):
        folder = await sync.create_folder({"name": "f", "userId": user.id})
        await services.mirror.drain()
        assert await sync.delete_folder(folder.id) is True
        await services.mirror.drain()
        assert mirror_backend.get_document(str(user.id), "folders", str(folder.id)) is None

    @pytest.mark.asyncio
    async def test_folder_cascade_remirrors_notes(self, services, sync, mirror_backend, user):
        folder = await sync.create_folder({"name": "f", "userId": user.id})
        note = await sync.create_note({"title": "n", "userId": user.id, "folderId": folder.id})
        await services.mirror.drain()

        await sync.delete_folder(folder.id)
        await services.mirror.drain()

        assert mirror_backend.get_document(str(user.id), "notes", str(note.id))["folderId"] is None

    @pytest.mark.asyncio
    async def test_note_tags_follow_add_and_tag_delete(self, services, sync, mirror_backend, user):
        tag = await sync.create_tag({"name": "t", "userId": user.id})
        note = await sync.create_note({"title": "n", "userId": user.id})
        link = await sync.add_tag_to_note(note.id, tag.id)
        await services.mirror.drain()
        doc = mirror_backend.get_document(str(user.id), "noteTags", str(link.id))
        assert (doc["noteId"], doc["tagId"]) == (note.id, tag.id)

        await sync.delete_tag(tag.id)
        await services.mirror.drain()
        assert mirror_backend.documents(str(user.id), "noteTags") == {}

    @pytest.mark.asyncio
    async def test_note_delete_removes_mirrored_note_tags(self, services, sync, mirror_backend, user):
        tag = await sync.create_tag({"name": "t", "userId": user.id})
        note = await sync.create_note({"title": "n", "userId": user.id})
        await sync.add_tag_to_note(note.id, tag.id)
        await services.mirror.drain()

        assert await sync.delete_note(note.id) is True
        await services.mirror.drain()

        assert mirror_backend.documents(str(user.id), "notes") == {}
        assert mirror_backend.documents(str(user.id), "noteTags") == {}

    @pytest.mark.asyncio
    async def test_remove_tag_reports_absence(self, sync, user):
        tag = await sync.create_tag({"name": "t", "userId": user.id})
        note = await sync.create_note({"title": "n", "userId": user.id})
        assert await sync.remove_tag_from_note(note.id, tag.id) is False
        await sync.add_tag_to_note(note.id, tag.id)
        assert await sync.remove_tag_from_note(note.id, tag.id) is True


class TestCacheInvalidation:
    @pytest.mark.asyncio
    async def test_note_update_invalidates_cached_reads(self, services, sync, queries, user):
        note = await sync.create_note({"title": "old", "userId": user.id})
        cache = services.cache

        cached = await cache.get_or_load(EntityKind.NOTE, ("get", note.id), lambda: queries.get_note(note.id), entity_id=note.id)
        assert cached.title == "old"

        await sync.update_note(note.id, {"title": "new"})

        fresh = await cache.get_or_load(EntityKind.NOTE, ("get", note.id), lambda: queries.get_note(note.id), entity_id=note.id)
        assert fresh.title == "new"

    @pytest.mark.asyncio
    async def test_note_mutation_drops_every_cached_note_read(self, services, sync, queries, user):
        first = await sync.create_note({"title": "a", "userId": user.id})
        second = await sync.create_note({"title": "b", "userId": user.id})
        cache = services.cache
        await cache.get_or_load(EntityKind.NOTE, ("get", second.id), lambda: queries.get_note(second.id), entity_id=second.id)
        assert len(cache) == 1

        await sync.update_note(first.id, {"title": "a2"})

        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_folder_delete_invalidates_note_listings(self, services, sync, queries, user):
        folder = await sync.create_folder({"name": "f", "userId": user.id})
        await sync.create_note({"title": "n", "userId": user.id, "folderId": folder.id})
        key = ("owner", user.id)
        await services.cache.get_or_load(EntityKind.NOTE, key, lambda: queries.list_notes_by_owner(user.id))

        with patch.object(services.cache, "invalidate", wraps=services.cache.invalidate) as spy:
            await sync.delete_folder(folder.id)

        kinds = {call.args[0] for call in spy.call_args_list}
        assert {EntityKind.FOLDER, EntityKind.NOTE} <= kinds
        notes = await services.cache.get_or_load(EntityKind.NOTE, key, lambda: queries.list_notes_by_owner(user.id))
        assert notes[0].folder_id is None

    @pytest.mark.asyncio
    async def test_failed_mutation_leaves_cache_alone(self, services, sync):
        with patch.object(services.cache, "invalidate") as spy:
            assert await sync.update_folder(999, {"name": "x"}) is None
        spy.assert_not_called()


class TestResync:
    @pytest.mark.asyncio
    async def test_sync_all_counts_created_and_updated(self, services, sync, mirror_backend, user, other_user):
        first = await sync.create_note({"title": "a", "userId": user.id})
        await services.mirror.drain()
        second = await services.store.create(EntityKind.NOTE, {"title": "primary only", "user_id": user.id})
        await sync.create_note({"title": "not mine", "userId": other_user.id})
        await services.mirror.drain()

        result = await sync.sync_all_to_secondary(user.id)

        assert (result.total, result.updated, result.created, result.failed) == (2, 1, 1, 0)
        assert sync.last_sync is result
        assert set(mirror_backend.documents(str(user.id), "notes")) == {str(first.id), str(second.id)}

    @pytest.mark.asyncio
    async def test_sync_all_counts_failures(self, sync, services, mirror_backend, user):
        await services.store.create(EntityKind.NOTE, {"title": "x", "user_id": user.id})
        with patch.object(mirror_backend, "update_document", new_callable=AsyncMock, side_effect=ConnectionError("down")):
            result = await sync.sync_all_to_secondary(user.id)
        assert (result.total, result.failed) == (1, 1)


class TestApplyAutosave:
    @pytest.mark.asyncio
    async def test_missing_note_raises_not_found(self, sync):
        with pytest.raises(NotFoundError):
            await sync.apply_autosave(12345, {"title": "x"})

    @pytest.mark.asyncio
    async def test_field_invalidated_after_queueing_is_dropped(self, sync, queries, user, caplog):
        folder = await sync.create_folder({"name": "f", "userId": user.id})
        note = await sync.create_note({"title": "draft", "userId": user.id})
        await sync.delete_folder(folder.id)

        with caplog.at_level(logging.WARNING, logger="quillnote.services.sync_adapter"):
            saved = await sync.apply_autosave(note.id, {"title": "final", "folder_id": folder.id})

        assert saved.title == "final"
        assert saved.folder_id is None
        assert (await queries.get_note(note.id)).title == "final"
        assert "folder_id" in caplog.text

    @pytest.mark.asyncio
    async def test_edit_with_no_valid_field_raises(self, sync, user):
        folder = await sync.create_folder({"name": "f", "userId": user.id})
        note = await sync.create_note({"title": "draft", "userId": user.id})
        await sync.delete_folder(folder.id)

        with pytest.raises(ValidationFailedError):
            await sync.apply_autosave(note.id, {"folder_id": folder.id})
