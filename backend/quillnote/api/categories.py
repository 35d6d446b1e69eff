# @TASK P4-T4.4 - Category endpoints
# @TEST tests/test_api_taxonomy.py

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from quillnote.constants import EntityKind
from quillnote.dependencies import AppServices, get_services
from quillnote.exceptions import NotFoundError
from quillnote.schemas import CategoryCreate, CategoryRead, CategoryUpdate
from quillnote.utils.messages import msg

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("", response_model=list[CategoryRead])
async def list_categories(
    user_id: int | None = Query(None, alias="userId"),
    services: AppServices = Depends(get_services),  # noqa: B008
) -> list[CategoryRead]:
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=msg("note.user_id_required"))
    return await services.cache.get_or_load(
        EntityKind.CATEGORY,
        ("owner", user_id),
        lambda: services.queries.list_categories_by_owner(user_id),
    )


@router.get("/{category_id}", response_model=CategoryRead)
async def get_category(
    category_id: int,
    services: AppServices = Depends(get_services),  # noqa: B008
) -> CategoryRead:
    category = await services.queries.get_category(category_id)
    if category is None:
        raise NotFoundError(EntityKind.CATEGORY, category_id)
    return category


@router.post("", response_model=CategoryRead, status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreate,
    services: AppServices = Depends(get_services),  # noqa: B008
) -> CategoryRead:
    return await services.sync.create_category(payload)


@router.put("/{category_id}", response_model=CategoryRead)
async def update_category(
    category_id: int,
    payload: CategoryUpdate,
    services: AppServices = Depends(get_services),  # noqa: B008
) -> CategoryRead:
    category = await services.sync.update_category(category_id, payload)
    if category is None:
        raise NotFoundError(EntityKind.CATEGORY, category_id)
    return category


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: int,
    services: AppServices = Depends(get_services),  # noqa: B008
) -> Response:
    """Delete a category; its notes stay, uncategorised."""
    if not await services.sync.delete_category(category_id):
        raise NotFoundError(EntityKind.CATEGORY, category_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
