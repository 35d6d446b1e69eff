"""Exception hierarchy for the primary store and the mirror.

Each primary-store error carries a machine-readable ``kind`` so that the HTTP
layer (and any other caller) can tell validation failures, missing targets
and uniqueness conflicts apart without string matching.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError as PydanticValidationError


class QuillnoteError(Exception):
    """Base exception for all Quillnote errors.

    Attributes:
        message: Human-readable error message.
        kind: Machine-readable error category.
        details: Additional context about the error.
    """

    kind: str = "error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to the JSON error body."""
        return {"detail": self.message, "kind": self.kind, "errors": []}


class ValidationFailedError(QuillnoteError):
    """A create/update payload is missing required fields or is malformed.

    Attributes:
        errors: Field-level problems, each ``{"field", "message", "type"}``.
    """

    kind = "validation"

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors or []
        super().__init__(message, {"errors": self.errors})

    @classmethod
    def from_pydantic(cls, message: str, exc: PydanticValidationError) -> ValidationFailedError:
        return cls(message, errors=field_problems(exc.errors()))

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class NotFoundError(QuillnoteError):
    """An operation targets an id that does not exist."""

    kind = "not_found"

    def __init__(self, entity: str, entity_id: int | str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity.replace('_', ' ').capitalize()} {entity_id} not found",
            {"entity": entity, "id": entity_id},
        )


class ConflictError(QuillnoteError):
    """A write would violate a uniqueness rule (duplicate note tag, duplicate identity)."""

    kind = "conflict"


class MirrorWriteError(QuillnoteError):
    """Propagating a record to the secondary store failed.

    Only ever logged by the mirror writer; never raised to API callers.
    """

    kind = "mirror_write"

    def __init__(self, collection: str, document_id: str, attempts: int, cause: BaseException) -> None:
        self.collection = collection
        self.document_id = document_id
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"Mirror write to {collection}/{document_id} failed after {attempts} attempt(s): {cause}",
            {"collection": collection, "document_id": document_id, "attempts": attempts},
        )


def field_problems(raw_errors: Any) -> list[dict[str, Any]]:
    """Flatten pydantic/FastAPI error dicts into ``{"field", "message", "type"}`` entries."""
    problems = []
    for err in raw_errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        problems.append(
            {
                "field": ".".join(loc) or None,
                "message": err.get("msg", ""),
                "type": err.get("type", "value_error"),
            }
        )
    return problems
