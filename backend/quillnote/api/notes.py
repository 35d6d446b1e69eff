# @TASK P4-T4.3 - Note endpoints (CRUD, listing filters, autosave, tagging)
# @TEST tests/test_api_notes.py

"""Note API endpoints.

Listing filters are mutually exclusive and applied in this order:
``q`` (search) > ``folderId`` > ``categoryId`` > ``tagId`` > all notes of
``userId``. Every listing is scoped to ``userId``.

``POST /notes/{note_id}/autosave`` accepts the same partial body as
``PUT /notes/{note_id}`` but only queues it: rapid edits are coalesced and
persisted once after a short quiet period.
"""

from __future__ import annotations

import logging
from functools import partial

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from quillnote.constants import EntityKind
from quillnote.dependencies import AppServices, get_services
from quillnote.exceptions import NotFoundError
from quillnote.schemas import NoteCreate, NoteRead, NoteTagRead, NoteUpdate
from quillnote.utils.messages import msg

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notes", tags=["notes"])


class AutosaveAccepted(BaseModel):
    """Response for a queued autosave."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    note_id: int
    pending_fields: list[str]
    message: str


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=list[NoteRead])
async def list_notes(
    user_id: int | None = Query(None, alias="userId", description="Owner of the notes"),
    folder_id: int | None = Query(None, alias="folderId"),
    category_id: int | None = Query(None, alias="categoryId"),
    tag_id: int | None = Query(None, alias="tagId"),
    q: str | None = Query(None, description="Case-insensitive text search"),
    services: AppServices = Depends(get_services),  # noqa: B008
) -> list[NoteRead]:
    """List a user's notes, optionally filtered.

    Args:
        user_id: Required owner id.
        folder_id: Only notes in this folder.
        category_id: Only notes in this category.
        tag_id: Only notes carrying this tag.
        q: Substring to match against title and content; wins over the
            other filters.
        services: Injected service container.
    """
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=msg("note.user_id_required"))

    queries = services.queries
    if q:
        # Free-text results are not cached; the key space is unbounded.
        return await queries.search_notes(user_id, q)
    if folder_id is not None:
        key = ("folder", user_id, folder_id)
        loader = partial(queries.list_notes_by_folder, folder_id, user_id)
    elif category_id is not None:
        key = ("category", user_id, category_id)
        loader = partial(queries.list_notes_by_category, category_id, user_id)
    elif tag_id is not None:
        key = ("tag", user_id, tag_id)
        loader = partial(queries.list_notes_by_tag, tag_id, user_id)
    else:
        key = ("owner", user_id)
        loader = partial(queries.list_notes_by_owner, user_id)

    return await services.cache.get_or_load(EntityKind.NOTE, key, loader)


@router.get("/{note_id}", response_model=NoteRead)
async def get_note(
    note_id: int,
    services: AppServices = Depends(get_services),  # noqa: B008
) -> NoteRead:
    note = await services.cache.get_or_load(
        EntityKind.NOTE,
        ("get", note_id),
        lambda: services.queries.get_note(note_id),
        entity_id=note_id,
    )
    if note is None:
        raise NotFoundError(EntityKind.NOTE, note_id)
    return note


@router.post("", response_model=NoteRead, status_code=status.HTTP_201_CREATED)
async def create_note(
    payload: NoteCreate,
    services: AppServices = Depends(get_services),  # noqa: B008
) -> NoteRead:
    return await services.sync.create_note(payload)


@router.put("/{note_id}", response_model=NoteRead)
async def update_note(
    note_id: int,
    payload: NoteUpdate,
    services: AppServices = Depends(get_services),  # noqa: B008
) -> NoteRead:
    """Apply a partial update. Omitted fields are left untouched."""
    note = await services.sync.update_note(note_id, payload)
    if note is None:
        raise NotFoundError(EntityKind.NOTE, note_id)
    return note


@router.post("/{note_id}/autosave", response_model=AutosaveAccepted, status_code=status.HTTP_202_ACCEPTED)
async def autosave_note(
    note_id: int,
    payload: NoteUpdate,
    services: AppServices = Depends(get_services),  # noqa: B008
) -> AutosaveAccepted:
    """Queue a partial edit for debounced persistence.

    The edit is validated against the current store before it is queued, so a
    bad field is rejected with 400 here instead of sinking the merged edit.
    """
    fields = await services.mutations.check_note_update(note_id, payload)
    if fields is None:
        raise NotFoundError(EntityKind.NOTE, note_id)

    pending = services.autosave.submit(note_id, fields)
    logger.debug("Queued autosave for note %d (%d field(s))", note_id, len(fields))
    return AutosaveAccepted(
        note_id=note_id,
        pending_fields=sorted(to_camel(f) for f in pending),
        message=msg("note.autosave_scheduled"),
    )


@router.delete("/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_note(
    note_id: int,
    services: AppServices = Depends(get_services),  # noqa: B008
) -> Response:
    if not await services.sync.delete_note(note_id):
        raise NotFoundError(EntityKind.NOTE, note_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Note tags
# ---------------------------------------------------------------------------


@router.post("/{note_id}/tags/{tag_id}", response_model=NoteTagRead, status_code=status.HTTP_201_CREATED)
async def add_tag_to_note(
    note_id: int,
    tag_id: int,
    services: AppServices = Depends(get_services),  # noqa: B008
) -> NoteTagRead:
    """Attach a tag. A pair that is already attached is rejected with 400."""
    return await services.sync.add_tag_to_note(note_id, tag_id)


@router.delete("/{note_id}/tags/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_tag_from_note(
    note_id: int,
    tag_id: int,
    services: AppServices = Depends(get_services),  # noqa: B008
) -> Response:
    if not await services.sync.remove_tag_from_note(note_id, tag_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=msg("note_tag.not_found"))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
