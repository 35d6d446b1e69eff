"""Message catalogue for API responses.

Usage:
    from quillnote.utils.messages import msg
    msg("note.invalid")                   # -> "Invalid note data"
    msg("tag.owner_or_note_required")     # -> "Either User ID or Note ID is required"
"""

from __future__ import annotations

_MESSAGES: dict[str, str] = {
    # Users
    "user.uid_required": "UID is required",
    "user.invalid": "Invalid user data",
    # Notes
    "note.user_id_required": "User ID is required",
    "note.invalid": "Invalid note data",
    "note.autosave_scheduled": "Edit scheduled for autosave",
    # Folders / categories / tags
    "folder.invalid": "Invalid folder data",
    "category.invalid": "Invalid category data",
    "tag.invalid": "Invalid tag data",
    "tag.owner_or_note_required": "Either User ID or Note ID is required",
    # Note tags
    "note_tag.duplicate": "Tag is already assigned to this note",
    "note_tag.not_found": "Relationship not found",
    "note_tag.invalid": "Invalid data",
    # Generic
    "request.invalid": "Invalid request data",
    # Sync
    "sync.started": "Mirror resync started for user {user_id}",
}


def msg(key: str, **kwargs: object) -> str:
    """Look up a message by *key*, formatting any keyword arguments into it.

    Unknown keys are returned unchanged so that a missing entry never breaks
    an error response.
    """
    template = _MESSAGES.get(key)
    if template is None:
        return key
    if kwargs:
        return template.format(**kwargs)
    return template
