"""Database models and utilities.

This module exports all database models.
"""

from __future__ import annotations

from gamevault.db.models import LibraryEntry, MatchStatus, metadata

__all__ = [
    "metadata",
    "LibraryEntry",
    "MatchStatus",
]
