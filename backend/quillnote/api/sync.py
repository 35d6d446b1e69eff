# @TASK P4-T4.5 - Mirror resync and status endpoints
# @TEST tests/test_api_sync.py

"""Mirror control endpoints.

Provides:
- ``POST /sync/notes?userId=`` -- Push all of a user's notes to the mirror
- ``GET  /sync/status``        -- Mirror write counters and the last resync

The resync runs as a background task so the trigger endpoint returns
immediately with ``202``.
"""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from quillnote.constants import EntityKind
from quillnote.dependencies import AppServices, get_services
from quillnote.exceptions import NotFoundError
from quillnote.utils.messages import msg

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SyncTriggerResponse(_CamelModel):
    status: str  # "started" | "disabled"
    user_id: int
    message: str


class LastSync(_CamelModel):
    updated: int
    created: int
    failed: int
    total: int
    synced_at: datetime


class SyncStatusResponse(_CamelModel):
    mirror_enabled: bool
    backend: str
    pending_writes: int
    succeeded: int
    failed: int
    last_error: str | None = None
    last_failure_at: datetime | None = None
    last_sync: LastSync | None = None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/notes", response_model=SyncTriggerResponse, status_code=status.HTTP_202_ACCEPTED)
async def trigger_note_sync(
    background_tasks: BackgroundTasks,
    user_id: int | None = Query(None, alias="userId"),
    services: AppServices = Depends(get_services),  # noqa: B008
) -> SyncTriggerResponse:
    """Start a full resync of the user's notes into the mirror."""
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=msg("note.user_id_required"))
    if await services.queries.get_user(user_id) is None:
        raise NotFoundError(EntityKind.USER, user_id)

    if not services.mirror.enabled:
        return SyncTriggerResponse(status="disabled", user_id=user_id, message="Mirror is disabled")

    background_tasks.add_task(services.sync.sync_all_to_secondary, user_id)
    logger.info("Mirror resync queued for user %d", user_id)
    return SyncTriggerResponse(status="started", user_id=user_id, message=msg("sync.started", user_id=user_id))


@router.get("/status", response_model=SyncStatusResponse)
async def get_sync_status(
    services: AppServices = Depends(get_services),  # noqa: B008
) -> SyncStatusResponse:
    stats = services.mirror.stats
    last = services.sync.last_sync
    return SyncStatusResponse(
        mirror_enabled=services.mirror.enabled,
        backend=services.settings.MIRROR_BACKEND if services.mirror.enabled else "none",
        pending_writes=services.mirror.pending,
        succeeded=stats.succeeded,
        failed=stats.failed,
        last_error=stats.last_error,
        last_failure_at=stats.last_failure_at,
        last_sync=(
            LastSync(
                updated=last.updated,
                created=last.created,
                failed=last.failed,
                total=last.total,
                synced_at=last.synced_at,
            )
            if last is not None
            else None
        ),
    )
