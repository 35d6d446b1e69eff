# @TASK P3-T3.2 - Fire-and-forget mirror writes with bounded retries
# @TEST tests/test_mirror_writer.py

"""Tests for MirrorWriter: update-or-create probe, retries, failure absorption."""

import logging
from datetime import UTC, datetime

import pytest

from quillnote.constants import EntityKind
from quillnote.mirror_gateway.memory import InMemoryMirror
from quillnote.schemas import FolderRead
from quillnote.services.mirror_writer import MirrorWriter, to_document


def _folder(folder_id: int = 3, name: str = "Work") -> FolderRead:
    return FolderRead(id=folder_id, name=name, user_id=1, created_at=datetime(2024, 1, 1, tzinfo=UTC))


class TestToDocument:
    def test_camel_case_and_string_id(self):
        doc = to_document(_folder())
        assert doc["id"] == "3"
        assert doc["userId"] == 1
        assert doc["createdAt"].startswith("2024-01-01")
        assert "mirroredAt" in doc


class TestUpsert:
    @pytest.mark.asyncio
    async def test_creates_when_missing_then_updates(self):
        backend = InMemoryMirror()
        writer = MirrorWriter(backend, retry_delay=0)

        assert await writer.upsert(EntityKind.FOLDER, 1, _folder()) == "created"
        assert await writer.upsert(EntityKind.FOLDER, 1, _folder(name="Projects")) == "updated"

        doc = backend.get_document("1", "folders", "3")
        assert doc["name"] == "Projects"
        assert writer.stats.succeeded == 2

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self):
        backend = InMemoryMirror()
        backend.fail_next(1)
        writer = MirrorWriter(backend, max_attempts=2, retry_delay=0)

        assert await writer.upsert(EntityKind.FOLDER, 1, _folder()) == "created"
        assert writer.stats.failed == 0

    @pytest.mark.asyncio
    async def test_persistent_failure_is_logged_not_raised(self, caplog):
        backend = InMemoryMirror(record_calls=True)
        backend.fail_next(10)
        writer = MirrorWriter(backend, max_attempts=3, retry_delay=0)

        with caplog.at_level(logging.WARNING, logger="quillnote.services.mirror_writer"):
            outcome = await writer.upsert(EntityKind.FOLDER, 1, _folder())

        assert outcome is None
        assert writer.stats.failed == 1
        assert "folders/3" in writer.stats.last_error
        assert writer.stats.last_failure_at is not None
        assert "attempts=3" in caplog.text
        assert len(backend.calls) == 3


class TestScheduling:
    @pytest.mark.asyncio
    async def test_schedule_runs_in_background_and_drains(self):
        backend = InMemoryMirror()
        writer = MirrorWriter(backend, retry_delay=0)

        task = writer.schedule_upsert(EntityKind.FOLDER, 1, _folder())
        assert task is not None
        assert writer.pending == 1

        await writer.drain()
        assert writer.pending == 0
        assert backend.get_document("1", "folders", "3") is not None

    @pytest.mark.asyncio
    async def test_delete(self):
        backend = InMemoryMirror()
        writer = MirrorWriter(backend, retry_delay=0)
        await writer.upsert(EntityKind.FOLDER, 1, _folder())

        assert await writer.delete(EntityKind.FOLDER, 1, 3) is True
        assert await writer.delete(EntityKind.FOLDER, 1, 3) is False
        assert backend.get_document("1", "folders", "3") is None

    @pytest.mark.asyncio
    async def test_disabled_writer_does_nothing(self):
        writer = MirrorWriter(None)
        assert writer.enabled is False
        assert writer.schedule_upsert(EntityKind.FOLDER, 1, _folder()) is None
        assert await writer.upsert(EntityKind.FOLDER, 1, _folder()) is None
        assert writer.pending == 0

    @pytest.mark.asyncio
    async def test_unexpected_task_error_is_logged(self, caplog):
        writer = MirrorWriter(InMemoryMirror())

        async def broken():
            raise RuntimeError("boom")

        with caplog.at_level(logging.ERROR, logger="quillnote.services.mirror_writer"):
            writer.spawn(broken())
            await writer.drain()

        assert "Unexpected error in mirror task" in caplog.text


class TestPerDocumentOrdering:
    @pytest.mark.asyncio
    async def test_retried_create_does_not_outlive_later_delete(self):
        backend = InMemoryMirror()
        backend.fail_next(1)
        writer = MirrorWriter(backend, max_attempts=2, retry_delay=0)

        writer.schedule_upsert(EntityKind.FOLDER, 1, _folder())
        writer.schedule_delete(EntityKind.FOLDER, 1, 3)
        await writer.drain()

        assert backend.get_document("1", "folders", "3") is None
        assert writer.stats.succeeded == 2

    @pytest.mark.asyncio
    async def test_retried_update_does_not_overwrite_newer_one(self):
        backend = InMemoryMirror()
        writer = MirrorWriter(backend, max_attempts=2, retry_delay=0)
        await writer.upsert(EntityKind.FOLDER, 1, _folder(name="v0"))

        backend.fail_next(1)
        writer.schedule_upsert(EntityKind.FOLDER, 1, _folder(name="v1"))
        writer.schedule_upsert(EntityKind.FOLDER, 1, _folder(name="v2"))
        await writer.drain()

        assert backend.get_document("1", "folders", "3")["name"] == "v2"

    @pytest.mark.asyncio
    async def test_other_documents_are_not_blocked(self):
        backend = InMemoryMirror(record_calls=True)
        writer = MirrorWriter(backend, max_attempts=2, retry_delay=0.05)
        backend.fail_next(1)

        writer.schedule_upsert(EntityKind.FOLDER, 1, _folder(3))
        writer.schedule_upsert(EntityKind.FOLDER, 1, _folder(4))
        await writer.drain()

        paths = [path for _, path in backend.calls]
        # folder 4 is written while folder 3 waits out its retry delay
        assert paths.index(("1", "folders", "4")) < paths.index(("1", "folders", "3"), 1)
        assert writer._doc_locks == {}


class TestInMemoryMirror:
    @pytest.mark.asyncio
    async def test_calls_are_recorded_only_on_request(self):
        quiet = InMemoryMirror()
        await quiet.create_document("1", "folders", "3", {"id": "3"})
        assert quiet.calls == []

        recording = InMemoryMirror(record_calls=True)
        await recording.create_document("1", "folders", "3", {"id": "3"})
        assert recording.calls == [("create", ("1", "folders", "3"))]
