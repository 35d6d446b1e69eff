# @TASK P4-T4.1 - Process-wide service container and FastAPI dependency

"""Builds the store and the services around it, once per process.

The container is created in the application lifespan and stored on
``app.state.services``; request handlers receive it through
:func:`get_services`. Nothing here is a module-level singleton, so tests
can build as many independent containers as they like.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Request

from quillnote.config import Settings
from quillnote.mirror_gateway.base import MirrorBackend
from quillnote.mirror_gateway.client import HttpMirrorClient
from quillnote.mirror_gateway.memory import InMemoryMirror
from quillnote.services.autosave import AutosaveCoalescer
from quillnote.services.mirror_writer import MirrorWriter
from quillnote.services.mutations import MutationService
from quillnote.services.read_cache import ReadCache
from quillnote.services.sync_adapter import SyncAdapter
from quillnote.store.entity_store import EntityStore
from quillnote.store.queries import NoteQueries

logger = logging.getLogger(__name__)


def build_mirror_backend(settings: Settings) -> MirrorBackend | None:
    """Create the mirror backend selected by ``MIRROR_BACKEND``."""
    if settings.MIRROR_BACKEND == "none":
        return None
    if settings.MIRROR_BACKEND == "http":
        if not settings.MIRROR_URL:
            raise ValueError("MIRROR_URL must be set when MIRROR_BACKEND is 'http'")
        return HttpMirrorClient(
            settings.MIRROR_URL,
            api_key=settings.MIRROR_API_KEY,
            timeout=settings.MIRROR_TIMEOUT_SECONDS,
        )
    return InMemoryMirror()


@dataclass
class AppServices:
    """Everything a request handler needs."""

    settings: Settings
    store: EntityStore
    queries: NoteQueries
    mutations: MutationService
    mirror: MirrorWriter
    cache: ReadCache
    sync: SyncAdapter
    autosave: AutosaveCoalescer

    @classmethod
    def build(
        cls,
        settings: Settings,
        *,
        store: EntityStore | None = None,
        mirror_backend: MirrorBackend | None = None,
    ) -> AppServices:
        """Wire the services for *settings*.

        *store* and *mirror_backend* override what the settings would build.
        """
        store = store or EntityStore.from_settings(settings)
        backend = mirror_backend if mirror_backend is not None else build_mirror_backend(settings)

        queries = NoteQueries(store)
        mutations = MutationService(store, enforce_ownership=settings.ENFORCE_OWNERSHIP)
        mirror = MirrorWriter(
            backend,
            max_attempts=settings.MIRROR_MAX_ATTEMPTS,
            retry_delay=settings.MIRROR_RETRY_DELAY_SECONDS,
        )
        cache = ReadCache(enabled=settings.READ_CACHE_ENABLED)
        sync = SyncAdapter(mutations, queries, mirror, cache)
        autosave = AutosaveCoalescer(sync.apply_autosave, delay=settings.AUTOSAVE_DEBOUNCE_SECONDS)
        return cls(
            settings=settings,
            store=store,
            queries=queries,
            mutations=mutations,
            mirror=mirror,
            cache=cache,
            sync=sync,
            autosave=autosave,
        )

    async def startup(self) -> None:
        await self.store.init_schema()
        logger.info(
            "Quillnote store ready (memory=%s, mirror=%s)",
            self.settings.is_memory_database,
            self.settings.MIRROR_BACKEND if self.mirror.enabled else "none",
        )

    async def shutdown(self) -> None:
        """Apply pending autosaves, finish mirror writes, then release the store."""
        await self.autosave.flush_all()
        await self.mirror.close()
        await self.store.dispose()


def get_services(request: Request) -> AppServices:
    """FastAPI dependency returning the container built in the lifespan."""
    return request.app.state.services
