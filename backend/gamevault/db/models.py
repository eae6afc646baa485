"""Database models for GameVault.

All SQLModel models should be defined here and imported in db/__init__.py.

Models follow these patterns:
- Use singular nouns: LibraryEntry
- Table names use plural, snake_case: library_entries
- Use uuid.uuid4().hex for IDs (32 character hex strings)
- Include created_at and updated_at timestamps (epoch seconds)
"""

from __future__ import annotations

import time
import uuid
from enum import StrEnum

from sqlalchemy import JSON, Column, Index, Text
from sqlmodel import Field, SQLModel

metadata = SQLModel.metadata


class MatchStatus(StrEnum):
    """Where an entry stands in the matching lifecycle."""

    PENDING = "pending"
    MATCHED = "matched"
    FAILED = "failed"
    MANUAL = "manual"


class LibraryEntry(SQLModel, table=True):
    """One physical game folder and its reconciled catalog metadata."""

    __tablename__ = "library_entries"  # type: ignore[assignment]

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, primary_key=True)
    folder_path: str = Field(unique=True)  # Identity key; never shown to users
    folder_name: str  # Raw directory name as found on disk
    title: str  # Normalized from folder_name, or user supplied

    catalog_id: int | None = Field(default=None, index=True)
    alt_catalog_id: int | None = Field(default=None)  # Secondary catalog linkage
    match_confidence: float | None = Field(default=None)
    match_status: str = Field(default=MatchStatus.PENDING)

    summary: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    release_date: str | None = Field(default=None)  # Free-form, as the catalog reports it
    genres: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    developers: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    publishers: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    review_score: int | None = Field(default=None)  # 0-100 percent positive
    review_count: int | None = Field(default=None)
    review_summary: str | None = Field(default=None)  # e.g. "Very Positive"

    cover_url: str | None = Field(default=None)
    background_url: str | None = Field(default=None)
    local_cover_path: str | None = Field(default=None)
    local_background_path: str | None = Field(default=None)

    size_bytes: int | None = Field(default=None)

    # Sticky flags, cleared only by an explicit reset
    manually_edited: bool = Field(default=False)
    match_locked: bool = Field(default=False)

    created_at: int = Field(default_factory=lambda: int(time.time()))
    updated_at: int = Field(default_factory=lambda: int(time.time()))

    __table_args__ = (
        Index("idx_library_entries_title", "title"),
        Index("idx_library_entries_status", "match_status"),
        Index("idx_library_entries_updated", "updated_at"),
    )
