"""Reconciliation store for library entries.

All mutations of LibraryEntry rows go through this module. Each operation runs
in its own transaction (retried on SQLite lock errors) and re-reads the row
before the transaction ends, so callers always get a committed snapshot.

Enrichment changes are mirrored into the folder's sidecar after the commit.
Sidecar failures are logged and counted but never undo or fail the commit.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from gamevault.core.database import retry_db_operation
from gamevault.core.exceptions import EntryNotFoundError, SidecarFormatError, StorageError
from gamevault.core.matching.results import MatchResult
from gamevault.core.metrics import match_decisions_total, sidecar_writes_total
from gamevault.core.sidecar import SidecarRecord, read_sidecar, write_sidecar
from gamevault.db.models import LibraryEntry, MatchStatus

logger = structlog.get_logger("gamevault.library_store")

T = TypeVar("T")

SEARCH_QUERY_MAX_LENGTH = 200
SEARCH_RESULT_LIMIT = 50


class ManualEdit(BaseModel):
    """User supplied field edits. Omitted (None) fields keep their values."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1, max_length=500)
    summary: str | None = None
    release_date: str | None = None
    genres: list[str] | None = None
    developers: list[str] | None = None
    publishers: list[str] | None = None
    review_score: int | None = Field(default=None, ge=0, le=100)

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value


class ImportOutcome(StrEnum):
    IMPORTED = "imported"
    SKIPPED = "skipped"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass(frozen=True)
class ImportResult:
    """Outcome of importing one entry's sidecar."""

    outcome: ImportOutcome
    reason: str | None = None
    entry: LibraryEntry | None = None


@dataclass
class ExportSummary:
    exported: int = 0
    skipped: int = 0
    failed: int = 0
    total: int = 0


@dataclass
class ImportSummary:
    imported: int = 0
    skipped: int = 0
    not_found: int = 0
    failed: int = 0
    total: int = 0


@dataclass(frozen=True)
class LibraryStats:
    total: int
    matched: int
    pending: int
    failed: int
    manual: int
    enriched: int  # Entries with a catalog linkage


def _now() -> int:
    return int(time.time())


def _touch(entry: LibraryEntry) -> None:
    """Stamp updated_at without ever moving it backwards."""
    entry.updated_at = max(_now(), entry.updated_at or 0)


def _set_if_changed(entry: LibraryEntry, field: str, value: Any) -> bool:
    if getattr(entry, field) == value:
        return False
    setattr(entry, field, value)
    return True


class LibraryStore:
    """Transactional access to library entries plus sidecar dual-write."""

    def __init__(
        self,
        session_factory: async_sessionmaker[SQLModelAsyncSession],
        write_sidecars: bool = True,
    ) -> None:
        self._session_factory = session_factory
        self.write_sidecars = write_sidecars

    async def _run(self, operation: str, work: Callable[[], Awaitable[T]]) -> T:
        """Run one unit of work with lock retries, mapping database errors to StorageError."""
        try:
            return await retry_db_operation(work, operation_type=operation)
        except SQLAlchemyError as e:
            logger.error(
                "Storage operation failed",
                operation=operation,
                error_type=e.__class__.__name__,
                exc_info=True,
            )
            raise StorageError(operation, e.__class__.__name__) from e

    @staticmethod
    async def _load(session: SQLModelAsyncSession, entry_id: str) -> LibraryEntry:
        entry = await session.get(LibraryEntry, entry_id)
        if entry is None:
            raise EntryNotFoundError(entry_id)
        return entry

    @staticmethod
    async def _read_back(session: SQLModelAsyncSession, entry_id: str) -> LibraryEntry:
        """Re-select the row inside the current transaction."""
        result = await session.exec(
            select(LibraryEntry)
            .where(LibraryEntry.id == entry_id)
            .execution_options(populate_existing=True)
        )
        return result.one()

    async def _dual_write(self, entry: LibraryEntry) -> bool:
        """Mirror an entry into its sidecar. Never raises."""
        if not self.write_sidecars:
            return False

        try:
            await asyncio.to_thread(
                write_sidecar, Path(entry.folder_path), SidecarRecord.from_entry(entry)
            )
        except (OSError, ValueError) as e:
            logger.warning(
                "Sidecar write failed",
                entry_id=entry.id,
                error_type=e.__class__.__name__,
            )
            sidecar_writes_total.labels(outcome="failed").inc()
            return False

        sidecar_writes_total.labels(outcome="written").inc()
        return True

    # Scan results

    async def upsert_scanned(
        self,
        folder_path: str,
        folder_name: str,
        title: str,
        size_bytes: int | None = None,
    ) -> str:
        """Insert a pending entry for a folder, or update the existing one.

        A manually edited title is kept; folder_name and size are refreshed.
        size_bytes=None keeps the stored size.

        Returns:
            The entry id
        """

        async def work() -> str:
            async with self._session_factory() as session, session.begin():
                result = await session.exec(
                    select(LibraryEntry).where(LibraryEntry.folder_path == folder_path)
                )
                entry = result.first()

                if entry is None:
                    entry = LibraryEntry(
                        folder_path=folder_path,
                        folder_name=folder_name,
                        title=title,
                        size_bytes=size_bytes,
                    )
                    session.add(entry)
                    await session.flush()
                    logger.debug("Library entry created", entry_id=entry.id, title=title)
                    return entry.id

                changed = _set_if_changed(entry, "folder_name", folder_name)
                if not entry.manually_edited:
                    changed |= _set_if_changed(entry, "title", title)
                if size_bytes is not None:
                    changed |= _set_if_changed(entry, "size_bytes", size_bytes)
                if changed:
                    _touch(entry)
                    session.add(entry)
                return entry.id

        # A concurrent scan may insert the same folder between our select and
        # insert; the second attempt then takes the update branch.
        try:
            return await self._run("upsert", work)
        except StorageError as e:
            if not isinstance(e.__cause__, IntegrityError):
                raise
            logger.debug("Concurrent insert detected, retrying upsert as update")
            return await self._run("upsert", work)

    # Match decisions

    async def commit_match(self, entry_id: str, result: MatchResult) -> LibraryEntry:
        """Apply a match result in one transaction and return the committed row.

        Automated results never replace the catalog linkage of a locked entry
        (the entry is returned unchanged) and never overwrite the title,
        summary or genres of a manually edited entry. Manual results set the
        lock.
        """

        async def work() -> tuple[LibraryEntry, bool]:
            async with self._session_factory() as session, session.begin():
                entry = await self._load(session, entry_id)

                if entry.match_locked and not result.is_manual:
                    logger.warning(
                        "Ignoring automated match for locked entry",
                        entry_id=entry_id,
                        catalog_id=result.catalog_id,
                        locked_catalog_id=entry.catalog_id,
                    )
                    return entry, False

                relinked = entry.catalog_id is not None and entry.catalog_id != result.catalog_id
                protected = entry.manually_edited

                entry.catalog_id = result.catalog_id
                entry.match_confidence = result.confidence
                entry.match_status = result.status
                if result.is_manual:
                    entry.match_locked = True

                details = result.details
                if details is not None:
                    if not protected:
                        if result.is_manual:
                            entry.title = details.name
                        if details.summary is not None or relinked:
                            entry.summary = details.summary
                        if details.genres or relinked:
                            entry.genres = list(details.genres)
                    if details.developers or relinked:
                        entry.developers = list(details.developers)
                    if details.publishers or relinked:
                        entry.publishers = list(details.publishers)
                    if details.release_date is not None or relinked:
                        entry.release_date = details.release_date
                    if details.cover_url is not None or relinked:
                        entry.cover_url = details.cover_url
                    if details.background_url is not None or relinked:
                        entry.background_url = details.background_url

                reviews = result.reviews
                if reviews is not None:
                    entry.review_score = reviews.score
                    entry.review_count = reviews.count
                    entry.review_summary = reviews.label
                elif relinked:
                    entry.review_score = None
                    entry.review_count = None
                    entry.review_summary = None

                if relinked:
                    # Cached images belong to the previous catalog entry
                    entry.local_cover_path = None
                    entry.local_background_path = None

                _touch(entry)
                session.add(entry)
                await session.flush()
                return await self._read_back(session, entry_id), True

        entry, applied = await self._run("commit_match", work)
        if applied:
            match_decisions_total.labels(status=entry.match_status).inc()
            logger.info(
                "Match committed",
                entry_id=entry.id,
                catalog_id=entry.catalog_id,
                status=entry.match_status,
                confidence=entry.match_confidence,
            )
            await self._dual_write(entry)
        return entry

    async def mark_failed(self, entry_id: str) -> LibraryEntry:
        """Record that resolution found no acceptable catalog entry.

        Locked entries are returned unchanged. An existing catalog linkage is
        kept; only the status and confidence change.
        """

        async def work() -> LibraryEntry:
            async with self._session_factory() as session, session.begin():
                entry = await self._load(session, entry_id)
                if entry.match_locked:
                    return entry
                changed = _set_if_changed(entry, "match_status", MatchStatus.FAILED)
                changed |= _set_if_changed(entry, "match_confidence", None)
                if changed:
                    _touch(entry)
                    session.add(entry)
                    await session.flush()
                return await self._read_back(session, entry_id)

        entry = await self._run("mark_failed", work)
        if entry.match_status == MatchStatus.FAILED:
            match_decisions_total.labels(status=MatchStatus.FAILED).inc()
        return entry

    async def update_local_images(
        self,
        entry_id: str,
        cover_path: str | None,
        background_path: str | None,
    ) -> LibraryEntry:
        """Record cached image paths; None keeps the stored path."""

        async def work() -> LibraryEntry:
            async with self._session_factory() as session, session.begin():
                entry = await self._load(session, entry_id)
                changed = False
                if cover_path is not None:
                    changed |= _set_if_changed(entry, "local_cover_path", cover_path)
                if background_path is not None:
                    changed |= _set_if_changed(entry, "local_background_path", background_path)
                if changed:
                    _touch(entry)
                    session.add(entry)
                    await session.flush()
                return await self._read_back(session, entry_id)

        return await self._run("update_local_images", work)

    # User edits

    async def apply_manual_edit(
        self,
        entry_id: str,
        fields: ManualEdit | Mapping[str, Any],
    ) -> LibraryEntry:
        """Partially update an entry from user input and mark it manually edited.

        Raises:
            pydantic.ValidationError: Unknown field or invalid value
            EntryNotFoundError: No entry with this id
        """
        edit = fields if isinstance(fields, ManualEdit) else ManualEdit.model_validate(fields)
        updates = edit.model_dump(exclude_none=True)

        async def work() -> LibraryEntry:
            async with self._session_factory() as session, session.begin():
                entry = await self._load(session, entry_id)
                for name, value in updates.items():
                    setattr(entry, name, value)
                entry.manually_edited = True
                _touch(entry)
                session.add(entry)
                await session.flush()
                return await self._read_back(session, entry_id)

        entry = await self._run("manual_edit", work)
        logger.info("Manual edit applied", entry_id=entry.id, fields=sorted(updates))
        await self._dual_write(entry)
        return entry

    async def reset_protection(
        self,
        entry_id: str,
        clear_manual_edit: bool = True,
        clear_match_lock: bool = True,
    ) -> LibraryEntry:
        """Clear the sticky manually_edited / match_locked flags (explicit user action)."""

        async def work() -> LibraryEntry:
            async with self._session_factory() as session, session.begin():
                entry = await self._load(session, entry_id)
                changed = False
                if clear_manual_edit:
                    changed |= _set_if_changed(entry, "manually_edited", False)
                if clear_match_lock:
                    changed |= _set_if_changed(entry, "match_locked", False)
                if changed:
                    _touch(entry)
                    session.add(entry)
                    await session.flush()
                return await self._read_back(session, entry_id)

        entry = await self._run("reset_protection", work)
        logger.info(
            "Entry protection reset",
            entry_id=entry.id,
            manually_edited=entry.manually_edited,
            match_locked=entry.match_locked,
        )
        await self._dual_write(entry)
        return entry

    # Queries

    async def get_entry(self, entry_id: str) -> LibraryEntry:
        async def work() -> LibraryEntry:
            async with self._session_factory() as session:
                return await self._load(session, entry_id)

        return await self._run("get_entry", work)

    async def _select_entries(self, statement: Any, operation: str) -> list[LibraryEntry]:
        async def work() -> list[LibraryEntry]:
            async with self._session_factory() as session:
                result = await session.exec(statement)
                return list(result.all())

        return await self._run(operation, work)

    async def list_entries(self) -> list[LibraryEntry]:
        """All entries ordered by title."""
        return await self._select_entries(
            select(LibraryEntry).order_by(col(LibraryEntry.title), col(LibraryEntry.id)),
            "list_entries",
        )

    async def search_entries(self, query: str) -> list[LibraryEntry]:
        """Entries whose title contains query (case-insensitive), at most 50.

        Raises:
            ValueError: query is blank or longer than 200 characters
        """
        query = query.strip()
        if not query or len(query) > SEARCH_QUERY_MAX_LENGTH:
            raise ValueError(
                f"Search query must be between 1 and {SEARCH_QUERY_MAX_LENGTH} characters"
            )

        return await self._select_entries(
            select(LibraryEntry)
            .where(col(LibraryEntry.title).contains(query, autoescape=True))
            .order_by(col(LibraryEntry.title))
            .limit(SEARCH_RESULT_LIMIT),
            "search_entries",
        )

    async def recent_entries(self, limit: int = 10) -> list[LibraryEntry]:
        """Most recently created entries first."""
        return await self._select_entries(
            select(LibraryEntry)
            .order_by(col(LibraryEntry.created_at).desc(), col(LibraryEntry.title))
            .limit(max(1, limit)),
            "recent_entries",
        )

    async def list_needing_enrichment(self, limit: int | None = None) -> list[LibraryEntry]:
        """Pending, unlocked entries in title order."""
        statement = (
            select(LibraryEntry)
            .where(LibraryEntry.match_status == MatchStatus.PENDING)
            .where(col(LibraryEntry.match_locked).is_(False))
            .order_by(col(LibraryEntry.title), col(LibraryEntry.id))
        )
        if limit is not None:
            statement = statement.limit(limit)
        return await self._select_entries(statement, "list_needing_enrichment")

    async def count_needing_enrichment(self) -> int:
        async def work() -> int:
            async with self._session_factory() as session:
                result = await session.exec(
                    select(func.count())
                    .select_from(LibraryEntry)
                    .where(LibraryEntry.match_status == MatchStatus.PENDING)
                    .where(col(LibraryEntry.match_locked).is_(False))
                )
                return int(result.one())

        return await self._run("count_needing_enrichment", work)

    async def get_stats(self) -> LibraryStats:
        async def work() -> LibraryStats:
            async with self._session_factory() as session:
                by_status = await session.exec(
                    select(LibraryEntry.match_status, func.count()).group_by(
                        LibraryEntry.match_status
                    )
                )
                counts = {status: int(count) for status, count in by_status.all()}
                enriched = await session.exec(
                    select(func.count())
                    .select_from(LibraryEntry)
                    .where(col(LibraryEntry.catalog_id).is_not(None))
                )
                return LibraryStats(
                    total=sum(counts.values()),
                    matched=counts.get(MatchStatus.MATCHED, 0),
                    pending=counts.get(MatchStatus.PENDING, 0),
                    failed=counts.get(MatchStatus.FAILED, 0),
                    manual=counts.get(MatchStatus.MANUAL, 0),
                    enriched=int(enriched.one()),
                )

        return await self._run("get_stats", work)

    # Sidecar import / export

    async def import_sidecar(self, entry_id: str) -> ImportResult:
        """Repopulate an entry from its sidecar.

        An entry that already has a catalog linkage is only overwritten by a
        sidecar flagged as manually edited; otherwise the import is skipped so
        a stale backup never regresses a good match.
        """
        entry = await self.get_entry(entry_id)

        try:
            record = await asyncio.to_thread(read_sidecar, Path(entry.folder_path))
        except SidecarFormatError as e:
            logger.warning("Sidecar unreadable", entry_id=entry_id, error=str(e))
            return ImportResult(ImportOutcome.FAILED, reason=str(e))

        if record is None:
            return ImportResult(ImportOutcome.NOT_FOUND)

        if entry.catalog_id is not None and not record.manually_edited:
            return ImportResult(
                ImportOutcome.SKIPPED,
                reason="Entry already matched and sidecar has no manual edits",
            )

        async def work() -> LibraryEntry:
            async with self._session_factory() as session, session.begin():
                current = await self._load(session, entry_id)

                if record.manually_edited:
                    current.title = record.title
                    current.manually_edited = True
                if record.catalog_id is not None and not current.match_locked:
                    current.catalog_id = record.catalog_id
                if record.alt_catalog_id is not None:
                    current.alt_catalog_id = record.alt_catalog_id

                if current.catalog_id is not None and current.match_status in (
                    MatchStatus.PENDING,
                    MatchStatus.FAILED,
                ):
                    current.match_status = MatchStatus.MATCHED
                    current.match_confidence = (
                        record.match_confidence
                        if record.match_confidence is not None
                        else current.match_confidence
                        if current.match_confidence is not None
                        else 1.0
                    )

                for name in (
                    "summary",
                    "release_date",
                    "review_score",
                    "review_count",
                    "review_summary",
                    "cover_url",
                    "background_url",
                ):
                    value = getattr(record, name)
                    if value is not None:
                        setattr(current, name, value)
                for name in ("genres", "developers", "publishers"):
                    values = getattr(record, name)
                    if values:
                        setattr(current, name, list(values))

                _touch(current)
                session.add(current)
                await session.flush()
                return await self._read_back(session, entry_id)

        try:
            updated = await self._run("import_sidecar", work)
        except StorageError as e:
            return ImportResult(ImportOutcome.FAILED, reason=str(e))

        logger.info("Sidecar imported", entry_id=entry_id, catalog_id=updated.catalog_id)
        return ImportResult(ImportOutcome.IMPORTED, entry=updated)

    async def import_all_sidecars(self) -> ImportSummary:
        entries = await self.list_entries()
        summary = ImportSummary(total=len(entries))

        for entry in entries:
            result = await self.import_sidecar(entry.id)
            if result.outcome == ImportOutcome.IMPORTED:
                summary.imported += 1
            elif result.outcome == ImportOutcome.SKIPPED:
                summary.skipped += 1
            elif result.outcome == ImportOutcome.NOT_FOUND:
                summary.not_found += 1
            else:
                summary.failed += 1

        logger.info(
            "Sidecar import complete",
            imported=summary.imported,
            skipped=summary.skipped,
            not_found=summary.not_found,
            failed=summary.failed,
        )
        return summary

    async def export_all_sidecars(self) -> ExportSummary:
        """Write sidecars for every entry that has a catalog linkage."""
        entries = await self.list_entries()
        summary = ExportSummary(total=len(entries))

        for entry in entries:
            if entry.catalog_id is None:
                summary.skipped += 1
            elif await self._dual_write(entry):
                summary.exported += 1
            else:
                summary.failed += 1

        logger.info(
            "Sidecar export complete",
            exported=summary.exported,
            skipped=summary.skipped,
            failed=summary.failed,
        )
        return summary
