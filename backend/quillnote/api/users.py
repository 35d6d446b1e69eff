# @TASK P4-T4.2 - User endpoints
# @TEST tests/test_api_users.py

"""User API endpoints.

Provides:
- ``GET  /users/current?uid=`` -- Resolve a user by external auth id
- ``GET  /users/{user_id}``     -- Fetch a user by id
- ``POST /users``               -- Register a user
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from quillnote.constants import EntityKind
from quillnote.dependencies import AppServices, get_services
from quillnote.exceptions import NotFoundError
from quillnote.schemas import UserCreate, UserRead
from quillnote.utils.messages import msg

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/current", response_model=UserRead)
async def get_current_user(
    uid: str | None = Query(None, description="External auth id"),
    services: AppServices = Depends(get_services),  # noqa: B008
) -> UserRead:
    """Resolve the signed-in user from the id issued by the auth provider."""
    if not uid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=msg("user.uid_required"))

    user = await services.cache.get_or_load(
        EntityKind.USER,
        ("external", uid),
        lambda: services.queries.get_user_by_external_id(uid),
    )
    if user is None:
        raise NotFoundError(EntityKind.USER, uid)
    return user


@router.get("/{user_id}", response_model=UserRead)
async def get_user(
    user_id: int,
    services: AppServices = Depends(get_services),  # noqa: B008
) -> UserRead:
    user = await services.cache.get_or_load(
        EntityKind.USER,
        ("get", user_id),
        lambda: services.queries.get_user(user_id),
        entity_id=user_id,
    )
    if user is None:
        raise NotFoundError(EntityKind.USER, user_id)
    return user


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    services: AppServices = Depends(get_services),  # noqa: B008
) -> UserRead:
    return await services.sync.create_user(payload)
