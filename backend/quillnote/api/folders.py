# @TASK P4-T4.4 - Folder endpoints
# @TEST tests/test_api_taxonomy.py

"""Folder API endpoints.

Deleting a folder keeps its notes: their ``folderId`` is cleared.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from quillnote.constants import EntityKind
from quillnote.dependencies import AppServices, get_services
from quillnote.exceptions import NotFoundError
from quillnote.schemas import FolderCreate, FolderRead, FolderUpdate
from quillnote.utils.messages import msg

router = APIRouter(prefix="/folders", tags=["folders"])


@router.get("", response_model=list[FolderRead])
async def list_folders(
    user_id: int | None = Query(None, alias="userId"),
    services: AppServices = Depends(get_services),  # noqa: B008
) -> list[FolderRead]:
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=msg("note.user_id_required"))
    return await services.cache.get_or_load(
        EntityKind.FOLDER,
        ("owner", user_id),
        lambda: services.queries.list_folders_by_owner(user_id),
    )


@router.get("/{folder_id}", response_model=FolderRead)
async def get_folder(
    folder_id: int,
    services: AppServices = Depends(get_services),  # noqa: B008
) -> FolderRead:
    folder = await services.queries.get_folder(folder_id)
    if folder is None:
        raise NotFoundError(EntityKind.FOLDER, folder_id)
    return folder


@router.post("", response_model=FolderRead, status_code=status.HTTP_201_CREATED)
async def create_folder(
    payload: FolderCreate,
    services: AppServices = Depends(get_services),  # noqa: B008
) -> FolderRead:
    return await services.sync.create_folder(payload)


@router.put("/{folder_id}", response_model=FolderRead)
async def update_folder(
    folder_id: int,
    payload: FolderUpdate,
    services: AppServices = Depends(get_services),  # noqa: B008
) -> FolderRead:
    folder = await services.sync.update_folder(folder_id, payload)
    if folder is None:
        raise NotFoundError(EntityKind.FOLDER, folder_id)
    return folder


@router.delete("/{folder_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_folder(
    folder_id: int,
    services: AppServices = Depends(get_services),  # noqa: B008
) -> Response:
    if not await services.sync.delete_folder(folder_id):
        raise NotFoundError(EntityKind.FOLDER, folder_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
