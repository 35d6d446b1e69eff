"""Primary (authoritative) store: entity storage, cascade policies and read queries."""

from quillnote.store.cascades import CascadeResult
from quillnote.store.entity_store import EntityStore, StoreTransaction
from quillnote.store.queries import NoteQueries

__all__ = ["CascadeResult", "EntityStore", "NoteQueries", "StoreTransaction"]
