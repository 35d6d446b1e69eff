# @TASK P0-T0.5 - Relational schema for the primary store

"""ORM models for the primary (authoritative) store.

Relationships between tables are plain indexed integer columns. There are no
physical foreign keys; referential rules (ownership, reference nulling on
delete) are applied by the mutation layer and the cascade policies in
:mod:`quillnote.store.cascades`.

Every table uses ``sqlite_autoincrement`` so that ids are never reused after
a delete, even on SQLite.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from quillnote.database import Base


class User(Base):
    """A person known through an external identity provider."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    external_auth_id: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    display_name: Mapped[str] = mapped_column(String(255))
    email: Mapped[str] = mapped_column(String(320))
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    __table_args__ = ({"sqlite_autoincrement": True},)


class Folder(Base):
    __tablename__ = "folders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255))
    user_id: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("idx_folders_user_id", "user_id"),
        {"sqlite_autoincrement": True},
    )


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255))
    color: Mapped[str] = mapped_column(String(20))  # CategoryColor value
    user_id: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("idx_categories_user_id", "user_id"),
        {"sqlite_autoincrement": True},
    )


class Tag(Base):
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255))
    user_id: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("idx_tags_user_id", "user_id"),
        {"sqlite_autoincrement": True},
    )


class Note(Base):
    """A note with an opaque rich-text document as its content."""

    __tablename__ = "notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(500))
    content: Mapped[Any | None] = mapped_column(JSON, nullable=True)  # Editor document tree, stored verbatim
    user_id: Mapped[int] = mapped_column(Integer)
    folder_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    category_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("idx_notes_user_id", "user_id"),
        Index("idx_notes_folder_id", "folder_id"),
        Index("idx_notes_category_id", "category_id"),
        {"sqlite_autoincrement": True},
    )


class NoteTag(Base):
    """Join row between a note and a tag."""

    __tablename__ = "note_tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    note_id: Mapped[int] = mapped_column(Integer)
    tag_id: Mapped[int] = mapped_column(Integer)

    __table_args__ = (
        UniqueConstraint("note_id", "tag_id", name="uq_note_tags_note_tag"),
        Index("idx_note_tags_tag_id", "tag_id"),
        {"sqlite_autoincrement": True},
    )
