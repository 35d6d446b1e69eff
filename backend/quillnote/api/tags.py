# @TASK P4-T4.4 - Tag endpoints
# @TEST tests/test_api_taxonomy.py

"""Tag API endpoints.

``GET /tags`` lists either a user's tags (``userId``) or the tags attached to
one note (``noteId``); ``noteId`` wins when both are given.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from quillnote.constants import EntityKind
from quillnote.dependencies import AppServices, get_services
from quillnote.exceptions import NotFoundError
from quillnote.schemas import TagCreate, TagRead, TagUpdate
from quillnote.utils.messages import msg

router = APIRouter(prefix="/tags", tags=["tags"])


@router.get("", response_model=list[TagRead])
async def list_tags(
    user_id: int | None = Query(None, alias="userId"),
    note_id: int | None = Query(None, alias="noteId"),
    services: AppServices = Depends(get_services),  # noqa: B008
) -> list[TagRead]:
    if note_id is not None:
        return await services.cache.get_or_load(
            EntityKind.TAG,
            ("note", note_id),
            lambda: services.queries.list_tags_for_note(note_id),
        )
    if user_id is not None:
        return await services.cache.get_or_load(
            EntityKind.TAG,
            ("owner", user_id),
            lambda: services.queries.list_tags_by_owner(user_id),
        )
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=msg("tag.owner_or_note_required"))


@router.get("/{tag_id}", response_model=TagRead)
async def get_tag(
    tag_id: int,
    services: AppServices = Depends(get_services),  # noqa: B008
) -> TagRead:
    tag = await services.queries.get_tag(tag_id)
    if tag is None:
        raise NotFoundError(EntityKind.TAG, tag_id)
    return tag


@router.post("", response_model=TagRead, status_code=status.HTTP_201_CREATED)
async def create_tag(
    payload: TagCreate,
    services: AppServices = Depends(get_services),  # noqa: B008
) -> TagRead:
    return await services.sync.create_tag(payload)


@router.put("/{tag_id}", response_model=TagRead)
async def update_tag(
    tag_id: int,
    payload: TagUpdate,
    services: AppServices = Depends(get_services),  # noqa: B008
) -> TagRead:
    tag = await services.sync.update_tag(tag_id, payload)
    if tag is None:
        raise NotFoundError(EntityKind.TAG, tag_id)
    return tag


@router.delete("/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tag(
    tag_id: int,
    services: AppServices = Depends(get_services),  # noqa: B008
) -> Response:
    """Delete a tag and detach it from every note."""
    if not await services.sync.delete_tag(tag_id):
        raise NotFoundError(EntityKind.TAG, tag_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
