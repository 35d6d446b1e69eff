"""Pydantic schemas for entity payloads and records.

The wire format is camelCase (``userId``, ``folderId``); input accepts either
camelCase or snake_case. ``*Create`` schemas list required fields, ``*Update``
schemas are partial: only fields present in the request are applied, and
``model_fields_set`` tells an explicit ``null`` apart from an omitted field.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel

from quillnote.constants import CategoryColor
from quillnote.utils.datetime_utils import ensure_utc

Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
OwnerId = Annotated[int, Field(gt=0)]
RefId = Annotated[int, Field(gt=0)]


class _Schema(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class _Record(_Schema):
    id: int
    created_at: datetime

    @field_validator("created_at", mode="after")
    @classmethod
    def _as_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


def _reject_null(value: Any, field: str) -> Any:
    if value is None:
        raise ValueError(f"{field} may not be null")
    return value


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserCreate(_Schema):
    external_auth_id: Name
    display_name: Name
    email: Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")]
    avatar_url: str | None = None


class UserRead(_Record):
    external_auth_id: str
    display_name: str
    email: str
    avatar_url: str | None = None


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------


class NoteCreate(_Schema):
    title: Annotated[str, StringConstraints(max_length=500)]
    content: Any = None
    user_id: OwnerId
    folder_id: RefId | None = None
    category_id: RefId | None = None


class NoteUpdate(_Schema):
    title: Annotated[str, StringConstraints(max_length=500)] | None = None
    content: Any = None
    folder_id: RefId | None = None
    category_id: RefId | None = None

    @field_validator("title")
    @classmethod
    def _title_not_null(cls, v: str | None) -> str:
        return _reject_null(v, "title")


class NoteRead(_Record):
    title: str
    content: Any = None
    user_id: int
    folder_id: int | None = None
    category_id: int | None = None
    updated_at: datetime

    @field_validator("updated_at", mode="after")
    @classmethod
    def _updated_as_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


# ---------------------------------------------------------------------------
# Folders
# ---------------------------------------------------------------------------


class FolderCreate(_Schema):
    name: Name
    user_id: OwnerId


class FolderUpdate(_Schema):
    name: Name | None = None

    @field_validator("name")
    @classmethod
    def _name_not_null(cls, v: str | None) -> str:
        return _reject_null(v, "name")


class FolderRead(_Record):
    name: str
    user_id: int


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


class CategoryCreate(_Schema):
    name: Name
    color: CategoryColor
    user_id: OwnerId


class CategoryUpdate(_Schema):
    name: Name | None = None
    color: CategoryColor | None = None

    @field_validator("name", "color")
    @classmethod
    def _not_null(cls, v: Any, info) -> Any:
        return _reject_null(v, info.field_name)


class CategoryRead(_Record):
    name: str
    color: CategoryColor
    user_id: int


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------


class TagCreate(_Schema):
    name: Name
    user_id: OwnerId


class TagUpdate(_Schema):
    name: Name | None = None

    @field_validator("name")
    @classmethod
    def _name_not_null(cls, v: str | None) -> str:
        return _reject_null(v, "name")


class TagRead(_Record):
    name: str
    user_id: int


class NoteTagRead(_Schema):
    id: int
    note_id: int
    tag_id: int
