from enum import StrEnum


class EntityKind(StrEnum):
    USER = "user"
    NOTE = "note"
    FOLDER = "folder"
    CATEGORY = "category"
    TAG = "tag"
    NOTE_TAG = "note_tag"


class CategoryColor(StrEnum):
    BLUE = "blue"
    GREEN = "green"
    PURPLE = "purple"
    YELLOW = "yellow"
    RED = "red"
    INDIGO = "indigo"
    PINK = "pink"
    TEAL = "teal"


# Per-user collection names in the secondary document store.
MIRROR_COLLECTIONS: dict[EntityKind, str] = {
    EntityKind.NOTE: "notes",
    EntityKind.FOLDER: "folders",
    EntityKind.CATEGORY: "categories",
    EntityKind.TAG: "tags",
    EntityKind.NOTE_TAG: "noteTags",
}
