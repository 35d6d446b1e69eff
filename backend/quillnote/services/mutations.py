# @TASK P2-T2.1 - Validated create/update/delete per entity kind
# @TEST tests/test_mutations.py

"""Mutation API over the primary store.

Every operation validates its payload with the matching pydantic schema
before touching the store, then re-checks references (owner, folder,
category, tag) inside the same store transaction as the write, so a
concurrent delete cannot slip between the check and the write.

Outcomes:

- malformed payload or dangling/foreign reference → :class:`ValidationFailedError`
- update/delete of a missing id → ``None`` (no exception)
- duplicate note tag or external identity → :class:`ConflictError`
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from quillnote.constants import EntityKind
from quillnote.exceptions import ConflictError, ValidationFailedError
from quillnote.models import User
from quillnote.schemas import (
    CategoryCreate,
    CategoryRead,
    CategoryUpdate,
    FolderCreate,
    FolderRead,
    FolderUpdate,
    NoteCreate,
    NoteRead,
    NoteTagRead,
    NoteUpdate,
    TagCreate,
    TagRead,
    TagUpdate,
    UserCreate,
    UserRead,
)
from quillnote.store.cascades import CascadeResult
from quillnote.store.entity_store import EntityStore, StoreTransaction
from quillnote.utils.messages import msg

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

Payload = Mapping[str, Any] | BaseModel

# Note fields that point at other owned entities.
_NOTE_REFERENCES: tuple[tuple[str, EntityKind], ...] = (
    ("folder_id", EntityKind.FOLDER),
    ("category_id", EntityKind.CATEGORY),
)


def validate_payload(schema: type[SchemaT], payload: Payload, message_key: str) -> SchemaT:
    """Validate *payload* against *schema*, raising :class:`ValidationFailedError`.

    An instance of *schema* is returned as-is, keeping its ``model_fields_set``
    so partial updates still know which fields were sent.
    """
    if isinstance(payload, schema):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(exclude_unset=True)
    try:
        return schema.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationFailedError.from_pydantic(msg(message_key), exc) from exc


class MutationService:
    """Create/update/delete operations with validation and cascades.

    Args:
        store: The primary entity store.
        enforce_ownership: Reject notes that reference another user's
            folder, category or tag.
    """

    def __init__(self, store: EntityStore, *, enforce_ownership: bool = True) -> None:
        self._store = store
        self._enforce_ownership = enforce_ownership

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def create_user(self, payload: Payload) -> UserRead:
        data = validate_payload(UserCreate, payload, "user.invalid")
        async with self._store.transaction() as tx:
            existing = await tx.select(EntityKind.USER, User.external_auth_id == data.external_auth_id)
            if existing:
                raise ConflictError(
                    f"User with external id {data.external_auth_id!r} already exists",
                    {"externalAuthId": data.external_auth_id},
                )
            user = await tx.create(EntityKind.USER, data.model_dump())
        logger.info("Created user %d", user.id)
        return user

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    async def create_note(self, payload: Payload) -> NoteRead:
        data = validate_payload(NoteCreate, payload, "note.invalid")
        values = data.model_dump()
        async with self._store.transaction() as tx:
            await self._check_owner(tx, data.user_id, "note.invalid")
            await self._check_note_references(tx, data.user_id, values)
            return await tx.create(EntityKind.NOTE, values)

    async def update_note(self, note_id: int, payload: Payload) -> NoteRead | None:
        changes = validate_payload(NoteUpdate, payload, "note.invalid").model_dump(exclude_unset=True)
        async with self._store.transaction() as tx:
            current = await tx.get(EntityKind.NOTE, note_id)
            if current is None:
                return None
            await self._check_note_references(tx, current.user_id, changes)
            return await tx.update(EntityKind.NOTE, note_id, changes)

    async def check_note_update(self, note_id: int, payload: Payload) -> dict[str, Any] | None:
        """Validate a partial note update without applying it.

        Returns the normalised changes, or ``None`` when the note does not
        exist. Raises :class:`ValidationFailedError` exactly as
        :meth:`update_note` would.
        """
        changes = validate_payload(NoteUpdate, payload, "note.invalid").model_dump(exclude_unset=True)
        async with self._store.transaction() as tx:
            current = await tx.get(EntityKind.NOTE, note_id)
            if current is None:
                return None
            await self._check_note_references(tx, current.user_id, changes)
        return changes

    async def delete_note(self, note_id: int) -> CascadeResult | None:
        async with self._store.transaction() as tx:
            return await tx.delete(EntityKind.NOTE, note_id)

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    async def create_folder(self, payload: Payload) -> FolderRead:
        data = validate_payload(FolderCreate, payload, "folder.invalid")
        return await self._create_owned(EntityKind.FOLDER, data, "folder.invalid")

    async def update_folder(self, folder_id: int, payload: Payload) -> FolderRead | None:
        changes = validate_payload(FolderUpdate, payload, "folder.invalid").model_dump(exclude_unset=True)
        return await self._store.update(EntityKind.FOLDER, folder_id, changes)

    async def delete_folder(self, folder_id: int) -> CascadeResult | None:
        async with self._store.transaction() as tx:
            return await tx.delete(EntityKind.FOLDER, folder_id)

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    async def create_category(self, payload: Payload) -> CategoryRead:
        data = validate_payload(CategoryCreate, payload, "category.invalid")
        return await self._create_owned(EntityKind.CATEGORY, data, "category.invalid")

    async def update_category(self, category_id: int, payload: Payload) -> CategoryRead | None:
        changes = validate_payload(CategoryUpdate, payload, "category.invalid").model_dump(exclude_unset=True)
        return await self._store.update(EntityKind.CATEGORY, category_id, changes)

    async def delete_category(self, category_id: int) -> CascadeResult | None:
        async with self._store.transaction() as tx:
            return await tx.delete(EntityKind.CATEGORY, category_id)

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    async def create_tag(self, payload: Payload) -> TagRead:
        data = validate_payload(TagCreate, payload, "tag.invalid")
        return await self._create_owned(EntityKind.TAG, data, "tag.invalid")

    async def update_tag(self, tag_id: int, payload: Payload) -> TagRead | None:
        changes = validate_payload(TagUpdate, payload, "tag.invalid").model_dump(exclude_unset=True)
        return await self._store.update(EntityKind.TAG, tag_id, changes)

    async def delete_tag(self, tag_id: int) -> CascadeResult | None:
        async with self._store.transaction() as tx:
            return await tx.delete(EntityKind.TAG, tag_id)

    # ------------------------------------------------------------------
    # Note tags
    # ------------------------------------------------------------------

    async def add_tag_to_note(self, note_id: int, tag_id: int) -> NoteTagRead:
        """Attach *tag_id* to *note_id*.

        Raises:
            ValidationFailedError: The note or tag does not exist, or (with
                ownership enforcement) they belong to different users.
            ConflictError: The pair is already attached. Attaching twice is
                rejected, never merged.
        """
        async with self._store.transaction() as tx:
            note = await tx.get(EntityKind.NOTE, note_id)
            tag = await tx.get(EntityKind.TAG, tag_id)

            problems = []
            if note is None:
                problems.append(_problem("noteId", f"Note {note_id} does not exist", "reference_missing"))
            if tag is None:
                problems.append(_problem("tagId", f"Tag {tag_id} does not exist", "reference_missing"))
            elif note is not None and self._enforce_ownership and tag.user_id != note.user_id:
                problems.append(_problem("tagId", f"Tag {tag_id} belongs to another user", "ownership"))
            if problems:
                raise ValidationFailedError(msg("note_tag.invalid"), errors=problems)

            if await tx.find_note_tag(note_id, tag_id) is not None:
                raise ConflictError(msg("note_tag.duplicate"), {"noteId": note_id, "tagId": tag_id})

            return await tx.create(EntityKind.NOTE_TAG, {"note_id": note_id, "tag_id": tag_id})

    async def remove_tag_from_note(self, note_id: int, tag_id: int) -> NoteTagRead | None:
        """Detach *tag_id* from *note_id*.

        Returns:
            The removed join row, or ``None`` when the pair was not attached.
        """
        async with self._store.transaction() as tx:
            existing = await tx.find_note_tag(note_id, tag_id)
            if existing is None:
                return None
            await tx.delete(EntityKind.NOTE_TAG, existing.id)
            return existing

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _create_owned(self, kind: EntityKind, data: BaseModel, message_key: str) -> Any:
        values = data.model_dump()
        async with self._store.transaction() as tx:
            await self._check_owner(tx, values["user_id"], message_key)
            return await tx.create(kind, values)

    async def _check_owner(self, tx: StoreTransaction, user_id: int, message_key: str) -> None:
        if await tx.get(EntityKind.USER, user_id) is None:
            raise ValidationFailedError(
                msg(message_key),
                errors=[_problem("userId", f"User {user_id} does not exist", "reference_missing")],
            )

    async def _check_note_references(self, tx: StoreTransaction, owner_id: int, values: Mapping[str, Any]) -> None:
        problems = []
        for field, kind in _NOTE_REFERENCES:
            ref_id = values.get(field)
            if ref_id is None:
                continue
            target = await tx.get(kind, ref_id)
            if target is None:
                problems.append(_problem(to_camel(field), f"{kind.capitalize()} {ref_id} does not exist", "reference_missing"))
            elif self._enforce_ownership and target.user_id != owner_id:
                problems.append(_problem(to_camel(field), f"{kind.capitalize()} {ref_id} belongs to another user", "ownership"))
        if problems:
            raise ValidationFailedError(msg("note.invalid"), errors=problems)


def _problem(field: str, message: str, type_: str) -> dict[str, str]:
    return {"field": field, "message": message, "type": type_}
