"""Tests for the library reconciliation store."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError
from sqlalchemy.exc import OperationalError

from gamevault.core.catalog.models import CatalogDetails, ReviewSummary
from gamevault.core.exceptions import EntryNotFoundError, StorageError
from gamevault.core.library_store import ImportOutcome, LibraryStore, ManualEdit
from gamevault.core.matching.results import MatchResult
from gamevault.core.sidecar import SidecarRecord, read_sidecar, sidecar_path, write_sidecar
from gamevault.db.models import MatchStatus


def _witcher_details(**overrides) -> CatalogDetails:
    fields = {
        "catalog_id": 292030,
        "name": "The Witcher 3: Wild Hunt",
        "summary": "Geralt of Rivia hunts monsters",
        "genres": ["RPG"],
        "developers": ["CD PROJEKT RED"],
        "publishers": ["CD PROJEKT RED"],
        "release_date": "18 May, 2015",
        "cover_url": "https://cdn.example/292030/header.jpg",
        "background_url": "https://cdn.example/292030/background.jpg",
    }
    fields.update(overrides)
    return CatalogDetails(**fields)


def _automated(catalog_id: int = 292030, confidence: float = 0.92, **details) -> MatchResult:
    return MatchResult(
        catalog_id=catalog_id,
        confidence=confidence,
        details=_witcher_details(catalog_id=catalog_id, **details),
        reviews=ReviewSummary(score=96, count=700000, label="Overwhelmingly Positive"),
    )


async def _add(store: LibraryStore, folder: Path, title: str | None = None) -> str:
    return await store.upsert_scanned(str(folder), folder.name, title or folder.name, 128)


# upsert_scanned


@pytest.mark.asyncio
async def test_upsert_creates_pending_entry(store: LibraryStore, make_folder) -> None:
    folder = make_folder("Witcher 3 [FitGirl Repack]")

    entry_id = await store.upsert_scanned(
        str(folder), folder.name, "Witcher 3", size_bytes=128
    )

    entry = await store.get_entry(entry_id)
    assert entry.title == "Witcher 3"
    assert entry.folder_name == "Witcher 3 [FitGirl Repack]"
    assert entry.match_status == MatchStatus.PENDING
    assert entry.catalog_id is None
    assert entry.size_bytes == 128
    assert entry.manually_edited is False
    assert entry.match_locked is False


@pytest.mark.asyncio
async def test_upsert_same_folder_updates_existing_entry(store: LibraryStore, make_folder) -> None:
    folder = make_folder("Witcher 3")
    first_id = await store.upsert_scanned(str(folder), "Witcher 3", "Witcher 3", 128)

    second_id = await store.upsert_scanned(str(folder), "Witcher 3 GOTY", "Witcher 3 GOTY", 256)

    assert second_id == first_id
    assert len(await store.list_entries()) == 1
    entry = await store.get_entry(first_id)
    assert entry.title == "Witcher 3 GOTY"
    assert entry.size_bytes == 256


@pytest.mark.asyncio
async def test_upsert_without_size_keeps_stored_size(store: LibraryStore, make_folder) -> None:
    folder = make_folder("Hades")
    entry_id = await store.upsert_scanned(str(folder), "Hades", "Hades", 4096)

    await store.upsert_scanned(str(folder), "Hades", "Hades", None)

    assert (await store.get_entry(entry_id)).size_bytes == 4096


@pytest.mark.asyncio
async def test_upsert_keeps_manually_edited_title(store: LibraryStore, make_folder) -> None:
    folder = make_folder("W3")
    entry_id = await _add(store, folder)
    await store.apply_manual_edit(entry_id, {"title": "The Witcher 3"})

    await store.upsert_scanned(str(folder), "W3", "W3", 128)

    assert (await store.get_entry(entry_id)).title == "The Witcher 3"


# commit_match


@pytest.mark.asyncio
async def test_commit_match_writes_all_fields(store: LibraryStore, make_folder) -> None:
    folder = make_folder("Witcher 3")
    entry_id = await _add(store, folder, "Witcher 3")

    entry = await store.commit_match(entry_id, _automated())

    assert entry.catalog_id == 292030
    assert entry.match_confidence == pytest.approx(0.92)
    assert entry.match_status == MatchStatus.MATCHED
    assert entry.title == "Witcher 3"  # automated results keep the folder title
    assert entry.summary == "Geralt of Rivia hunts monsters"
    assert entry.genres == ["RPG"]
    assert entry.developers == ["CD PROJEKT RED"]
    assert entry.release_date == "18 May, 2015"
    assert entry.cover_url == "https://cdn.example/292030/header.jpg"
    assert entry.review_score == 96
    assert entry.review_count == 700000
    assert entry.review_summary == "Overwhelmingly Positive"
    assert entry.match_locked is False

    stored = await store.get_entry(entry_id)
    assert stored.catalog_id == 292030
    assert stored.genres == ["RPG"]


@pytest.mark.asyncio
async def test_commit_match_mirrors_sidecar(store: LibraryStore, make_folder) -> None:
    folder = make_folder("Witcher 3")
    entry_id = await _add(store, folder, "Witcher 3")

    await store.commit_match(entry_id, _automated())

    record = read_sidecar(folder)
    assert record is not None
    assert record.catalog_id == 292030
    assert record.review_score == 96
    assert record.genres == ["RPG"]


@pytest.mark.asyncio
async def test_commit_match_without_details_keeps_existing_enrichment(
    store: LibraryStore, make_folder
) -> None:
    folder = make_folder("Witcher 3")
    entry_id = await _add(store, folder, "Witcher 3")
    await store.commit_match(entry_id, _automated())

    entry = await store.commit_match(entry_id, MatchResult(catalog_id=292030, confidence=0.9))

    assert entry.summary == "Geralt of Rivia hunts monsters"
    assert entry.genres == ["RPG"]
    assert entry.review_score == 96
    assert entry.match_confidence == pytest.approx(0.9)


@pytest.mark.asyncio
async def test_commit_match_failure_rolls_back(
    store: LibraryStore, make_folder, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A database error mid-commit leaves the row exactly as it was."""
    folder = make_folder("Witcher 3")
    entry_id = await _add(store, folder, "Witcher 3")
    before = await store.get_entry(entry_id)

    async def broken_read_back(session, entry_id):
        raise OperationalError("SELECT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(store, "_read_back", broken_read_back)

    with pytest.raises(StorageError) as exc_info:
        await store.commit_match(entry_id, _automated())

    assert exc_info.value.operation == "commit_match"
    monkeypatch.undo()
    after = await store.get_entry(entry_id)
    assert after.catalog_id is None
    assert after.match_status == MatchStatus.PENDING
    assert after.summary is None
    assert after.review_score is None
    assert after.updated_at == before.updated_at
    assert not sidecar_path(folder).exists()


@pytest.mark.asyncio
async def test_commit_match_unknown_entry_raises(store: LibraryStore) -> None:
    with pytest.raises(EntryNotFoundError):
        await store.commit_match("0" * 32, _automated())


@pytest.mark.asyncio
async def test_commit_match_survives_sidecar_failure(store: LibraryStore, make_folder) -> None:
    folder = make_folder("Witcher 3")
    entry_id = await _add(store, folder, "Witcher 3")

    with patch(
        "gamevault.core.library_store.write_sidecar", side_effect=OSError("read-only file system")
    ):
        entry = await store.commit_match(entry_id, _automated())

    assert entry.catalog_id == 292030
    assert (await store.get_entry(entry_id)).catalog_id == 292030


@pytest.mark.asyncio
async def test_sidecar_write_runs_off_the_event_loop(store: LibraryStore, make_folder) -> None:
    folder = make_folder("Witcher 3")
    entry_id = await _add(store, folder, "Witcher 3")
    writer_threads: list[int] = []

    def recording_write(target: Path, record: SidecarRecord) -> Path:
        writer_threads.append(threading.get_ident())
        return write_sidecar(target, record)

    with patch("gamevault.core.library_store.write_sidecar", side_effect=recording_write):
        await store.commit_match(entry_id, _automated())

    assert len(writer_threads) == 1
    assert writer_threads[0] != threading.get_ident()
    assert read_sidecar(folder).catalog_id == 292030


@pytest.mark.asyncio
async def test_commit_match_for_vanished_folder_still_commits(
    store: LibraryStore, games_dir: Path
) -> None:
    entry_id = await store.upsert_scanned(str(games_dir / "Gone"), "Gone", "Gone")

    entry = await store.commit_match(entry_id, _automated())

    assert entry.catalog_id == 292030
    assert not (games_dir / "Gone").exists()


# Protection rules


@pytest.mark.asyncio
async def test_manual_result_sets_lock_and_catalog_title(store: LibraryStore, make_folder) -> None:
    folder = make_folder("Witcher 3")
    entry_id = await _add(store, folder, "Witcher 3")

    entry = await store.commit_match(
        entry_id,
        MatchResult(
            catalog_id=292030,
            confidence=1.0,
            status=MatchStatus.MANUAL,
            details=_witcher_details(),
        ),
    )

    assert entry.match_status == MatchStatus.MANUAL
    assert entry.match_locked is True
    assert entry.match_confidence == 1.0
    assert entry.title == "The Witcher 3: Wild Hunt"


@pytest.mark.asyncio
async def test_locked_entry_ignores_automated_result(store: LibraryStore, make_folder) -> None:
    folder = make_folder("Witcher 3")
    entry_id = await _add(store, folder, "Witcher 3")
    await store.commit_match(
        entry_id, MatchResult(catalog_id=292030, confidence=1.0, status=MatchStatus.MANUAL)
    )

    with patch("gamevault.core.library_store.write_sidecar") as write_mock:
        entry = await store.commit_match(entry_id, _automated(catalog_id=570, name="Dota 2"))

    write_mock.assert_not_called()
    assert entry.catalog_id == 292030
    assert entry.match_status == MatchStatus.MANUAL
    stored = await store.get_entry(entry_id)
    assert stored.catalog_id == 292030
    assert stored.match_locked is True


@pytest.mark.asyncio
async def test_manual_result_replaces_locked_linkage(store: LibraryStore, make_folder) -> None:
    folder = make_folder("Witcher 3")
    entry_id = await _add(store, folder, "Witcher 3")
    await store.commit_match(
        entry_id, MatchResult(catalog_id=570, confidence=1.0, status=MatchStatus.MANUAL)
    )

    entry = await store.commit_match(
        entry_id, MatchResult(catalog_id=292030, confidence=1.0, status=MatchStatus.MANUAL)
    )

    assert entry.catalog_id == 292030


@pytest.mark.asyncio
async def test_manually_edited_fields_survive_automated_match(
    store: LibraryStore, make_folder
) -> None:
    folder = make_folder("Witcher 3")
    entry_id = await _add(store, folder, "Witcher 3")
    await store.apply_manual_edit(
        entry_id, {"title": "My Witcher", "summary": "My notes", "genres": ["Favourite"]}
    )

    entry = await store.commit_match(entry_id, _automated())

    assert entry.title == "My Witcher"
    assert entry.summary == "My notes"
    assert entry.genres == ["Favourite"]
    assert entry.developers == ["CD PROJEKT RED"]
    assert entry.catalog_id == 292030
    assert entry.manually_edited is True


@pytest.mark.asyncio
async def test_manually_edited_title_survives_manual_match(
    store: LibraryStore, make_folder
) -> None:
    folder = make_folder("Witcher 3")
    entry_id = await _add(store, folder, "Witcher 3")
    await store.apply_manual_edit(entry_id, ManualEdit(title="My Witcher"))

    entry = await store.commit_match(
        entry_id,
        MatchResult(
            catalog_id=292030, confidence=1.0, status=MatchStatus.MANUAL, details=_witcher_details()
        ),
    )

    assert entry.title == "My Witcher"


@pytest.mark.asyncio
async def test_relink_replaces_stale_enrichment(store: LibraryStore, make_folder) -> None:
    folder = make_folder("Witcher 3")
    entry_id = await _add(store, folder, "Witcher 3")
    await store.commit_match(
        entry_id, _automated(catalog_id=570, name="Dota 2", summary="MOBA", genres=["Strategy"])
    )
    await store.update_local_images(entry_id, "/cache/cover.jpg", "/cache/background.jpg")

    entry = await store.commit_match(
        entry_id,
        MatchResult(
            catalog_id=292030,
            confidence=1.0,
            status=MatchStatus.MANUAL,
            details=_witcher_details(summary=None, genres=[], cover_url=None),
        ),
    )

    assert entry.catalog_id == 292030
    assert entry.summary is None
    assert entry.genres == []
    assert entry.cover_url is None
    assert entry.review_score is None
    assert entry.review_count is None
    assert entry.local_cover_path is None
    assert entry.local_background_path is None


# mark_failed / update_local_images


@pytest.mark.asyncio
async def test_mark_failed_keeps_catalog_linkage(store: LibraryStore, make_folder) -> None:
    folder = make_folder("Witcher 3")
    entry_id = await _add(store, folder, "Witcher 3")
    await store.commit_match(entry_id, _automated())

    entry = await store.mark_failed(entry_id)

    assert entry.match_status == MatchStatus.FAILED
    assert entry.match_confidence is None
    assert entry.catalog_id == 292030


@pytest.mark.asyncio
async def test_mark_failed_ignores_locked_entry(store: LibraryStore, make_folder) -> None:
    folder = make_folder("Witcher 3")
    entry_id = await _add(store, folder, "Witcher 3")
    await store.commit_match(
        entry_id, MatchResult(catalog_id=292030, confidence=1.0, status=MatchStatus.MANUAL)
    )

    entry = await store.mark_failed(entry_id)

    assert entry.match_status == MatchStatus.MANUAL
    assert entry.match_confidence == 1.0


@pytest.mark.asyncio
async def test_update_local_images_keeps_unspecified_path(
    store: LibraryStore, make_folder
) -> None:
    folder = make_folder("Hades")
    entry_id = await _add(store, folder)
    await store.update_local_images(entry_id, "/a/cover.jpg", "/a/background.jpg")

    entry = await store.update_local_images(entry_id, "/b/cover.jpg", None)

    assert entry.local_cover_path == "/b/cover.jpg"
    assert entry.local_background_path == "/a/background.jpg"


# Manual edits


@pytest.mark.asyncio
async def test_apply_manual_edit_is_partial(store: LibraryStore, make_folder) -> None:
    folder = make_folder("Witcher 3")
    entry_id = await _add(store, folder, "Witcher 3")
    await store.commit_match(entry_id, _automated())

    entry = await store.apply_manual_edit(entry_id, {"summary": "Rewritten", "review_score": 50})

    assert entry.summary == "Rewritten"
    assert entry.review_score == 50
    assert entry.title == "Witcher 3"
    assert entry.genres == ["RPG"]
    assert entry.manually_edited is True
    record = read_sidecar(folder)
    assert record is not None
    assert record.manually_edited is True
    assert record.summary == "Rewritten"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "fields",
    [
        {"folder_path": "/elsewhere"},
        {"title": "   "},
        {"review_score": 101},
        {"genres": "RPG"},
    ],
)
async def test_apply_manual_edit_rejects_invalid_fields(
    store: LibraryStore, make_folder, fields: dict
) -> None:
    folder = make_folder("Hades")
    entry_id = await _add(store, folder)

    with pytest.raises(ValidationError):
        await store.apply_manual_edit(entry_id, fields)

    assert (await store.get_entry(entry_id)).manually_edited is False


@pytest.mark.asyncio
async def test_apply_manual_edit_unknown_entry(store: LibraryStore) -> None:
    with pytest.raises(EntryNotFoundError):
        await store.apply_manual_edit("missing", {"title": "X"})


@pytest.mark.asyncio
async def test_reset_protection_clears_flags(store: LibraryStore, make_folder) -> None:
    folder = make_folder("Witcher 3")
    entry_id = await _add(store, folder, "Witcher 3")
    await store.apply_manual_edit(entry_id, {"title": "My Witcher"})
    await store.commit_match(
        entry_id, MatchResult(catalog_id=292030, confidence=1.0, status=MatchStatus.MANUAL)
    )

    entry = await store.reset_protection(entry_id, clear_manual_edit=False)

    assert entry.match_locked is False
    assert entry.manually_edited is True

    entry = await store.reset_protection(entry_id)

    assert entry.manually_edited is False
    assert entry.title == "My Witcher"


# Queries


@pytest.mark.asyncio
async def test_search_entries_is_case_insensitive_substring(
    store: LibraryStore, make_folder
) -> None:
    await _add(store, make_folder("a"), "The Witcher 3")
    await _add(store, make_folder("b"), "Witcher 2")
    await _add(store, make_folder("c"), "Hades")

    results = await store.search_entries("  wItChEr ")

    assert [entry.title for entry in results] == ["The Witcher 3", "Witcher 2"]


@pytest.mark.asyncio
async def test_search_entries_escapes_wildcards(store: LibraryStore, make_folder) -> None:
    await _add(store, make_folder("a"), "100% Orange Juice")
    await _add(store, make_folder("b"), "1000 Miles")

    results = await store.search_entries("100%")

    assert [entry.title for entry in results] == ["100% Orange Juice"]


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["", "   ", "x" * 201])
async def test_search_entries_rejects_bad_queries(store: LibraryStore, query: str) -> None:
    with pytest.raises(ValueError):
        await store.search_entries(query)


@pytest.mark.asyncio
async def test_needing_enrichment_excludes_locked_and_resolved(
    store: LibraryStore, make_folder
) -> None:
    pending_b = await _add(store, make_folder("b"), "Beta")
    pending_a = await _add(store, make_folder("a"), "Alpha")
    matched = await _add(store, make_folder("c"), "Gamma")
    locked = await _add(store, make_folder("d"), "Delta")
    await store.commit_match(matched, _automated())
    await store.commit_match(
        locked, MatchResult(catalog_id=570, confidence=1.0, status=MatchStatus.MANUAL)
    )

    entries = await store.list_needing_enrichment()

    assert [entry.id for entry in entries] == [pending_a, pending_b]
    assert await store.count_needing_enrichment() == 2
    assert [entry.id for entry in await store.list_needing_enrichment(limit=1)] == [pending_a]


@pytest.mark.asyncio
async def test_get_stats_counts_by_status(store: LibraryStore, make_folder) -> None:
    await _add(store, make_folder("a"), "Alpha")
    matched = await _add(store, make_folder("b"), "Beta")
    failed = await _add(store, make_folder("c"), "Gamma")
    manual = await _add(store, make_folder("d"), "Delta")
    await store.commit_match(matched, _automated())
    await store.mark_failed(failed)
    await store.commit_match(
        manual, MatchResult(catalog_id=570, confidence=1.0, status=MatchStatus.MANUAL)
    )

    stats = await store.get_stats()

    assert stats.total == 4
    assert stats.pending == 1
    assert stats.matched == 1
    assert stats.failed == 1
    assert stats.manual == 1
    assert stats.enriched == 2


@pytest.mark.asyncio
async def test_recent_entries_respects_limit(store: LibraryStore, make_folder) -> None:
    for name in ("a", "b", "c"):
        await _add(store, make_folder(name))

    assert len(await store.recent_entries(limit=2)) == 2


# Sidecar import / export


@pytest.mark.asyncio
async def test_import_sidecar_restores_lost_enrichment(store: LibraryStore, make_folder) -> None:
    folder = make_folder("Witcher 3")
    write_sidecar(
        folder,
        SidecarRecord(
            title="Witcher 3",
            catalog_id=292030,
            match_confidence=0.93,
            summary="Restored",
            genres=["RPG"],
            review_score=96,
        ),
    )
    entry_id = await _add(store, folder, "Witcher 3")

    result = await store.import_sidecar(entry_id)

    assert result.outcome == ImportOutcome.IMPORTED
    assert result.entry is not None
    assert result.entry.catalog_id == 292030
    assert result.entry.match_status == MatchStatus.MATCHED
    assert result.entry.match_confidence == pytest.approx(0.93)
    assert result.entry.summary == "Restored"
    assert result.entry.genres == ["RPG"]
    assert result.entry.manually_edited is False


@pytest.mark.asyncio
async def test_import_sidecar_without_confidence_defaults_to_full(
    store: LibraryStore, make_folder
) -> None:
    folder = make_folder("Portal 2")
    sidecar_path(folder).parent.mkdir()
    sidecar_path(folder).write_text(json.dumps({"title": "Portal 2", "steam_app_id": 620}))
    entry_id = await _add(store, folder, "Portal 2")

    result = await store.import_sidecar(entry_id)

    assert result.outcome == ImportOutcome.IMPORTED
    assert result.entry is not None
    assert result.entry.catalog_id == 620
    assert result.entry.match_confidence == 1.0


@pytest.mark.asyncio
async def test_import_sidecar_skips_matched_entry(store: LibraryStore, make_folder) -> None:
    folder = make_folder("Witcher 3")
    entry_id = await _add(store, folder, "Witcher 3")
    await store.commit_match(entry_id, _automated())
    write_sidecar(folder, SidecarRecord(title="Stale", catalog_id=570, summary="Stale"))

    result = await store.import_sidecar(entry_id)

    assert result.outcome == ImportOutcome.SKIPPED
    entry = await store.get_entry(entry_id)
    assert entry.catalog_id == 292030
    assert entry.summary == "Geralt of Rivia hunts monsters"


@pytest.mark.asyncio
async def test_import_manually_edited_sidecar_overrides_matched_entry(
    store: LibraryStore, make_folder
) -> None:
    folder = make_folder("Witcher 3")
    entry_id = await _add(store, folder, "Witcher 3")
    await store.commit_match(entry_id, _automated())
    write_sidecar(
        folder,
        SidecarRecord(title="My Witcher", catalog_id=292030, summary="Mine", manually_edited=True),
    )

    result = await store.import_sidecar(entry_id)

    assert result.outcome == ImportOutcome.IMPORTED
    assert result.entry is not None
    assert result.entry.title == "My Witcher"
    assert result.entry.summary == "Mine"
    assert result.entry.manually_edited is True
    assert result.entry.genres == ["RPG"]


@pytest.mark.asyncio
async def test_import_sidecar_does_not_move_locked_linkage(
    store: LibraryStore, make_folder
) -> None:
    folder = make_folder("Witcher 3")
    entry_id = await _add(store, folder, "Witcher 3")
    await store.commit_match(
        entry_id, MatchResult(catalog_id=292030, confidence=1.0, status=MatchStatus.MANUAL)
    )
    write_sidecar(
        folder, SidecarRecord(title="Dota", catalog_id=570, manually_edited=True, summary="x")
    )

    result = await store.import_sidecar(entry_id)

    assert result.entry is not None
    assert result.entry.catalog_id == 292030
    assert result.entry.match_status == MatchStatus.MANUAL


@pytest.mark.asyncio
async def test_import_sidecar_missing_and_invalid(store: LibraryStore, make_folder) -> None:
    missing_id = await _add(store, make_folder("Missing"))
    broken_folder = make_folder("Broken")
    sidecar_path(broken_folder).parent.mkdir()
    sidecar_path(broken_folder).write_text('{"schema_version": 7, "title": "Future"}')
    broken_id = await _add(store, broken_folder)

    assert (await store.import_sidecar(missing_id)).outcome == ImportOutcome.NOT_FOUND
    broken = await store.import_sidecar(broken_id)
    assert broken.outcome == ImportOutcome.FAILED
    assert broken.reason is not None
    assert (await store.get_entry(broken_id)).match_status == MatchStatus.PENDING


@pytest.mark.asyncio
async def test_import_all_sidecars_summarizes(store: LibraryStore, make_folder) -> None:
    restored = make_folder("Restored")
    write_sidecar(restored, SidecarRecord(title="Restored", catalog_id=620))
    await _add(store, restored)
    await _add(store, make_folder("Nothing"))

    summary = await store.import_all_sidecars()

    assert summary.total == 2
    assert summary.imported == 1
    assert summary.not_found == 1
    assert summary.failed == 0


@pytest.mark.asyncio
async def test_export_all_sidecars_counts(
    store: LibraryStore, make_folder, games_dir: Path
) -> None:
    matched_folder = make_folder("Matched")
    matched = await _add(store, matched_folder)
    gone = await store.upsert_scanned(str(games_dir / "Gone"), "Gone", "Gone")
    await _add(store, make_folder("Pending"))

    store.write_sidecars = False
    await store.commit_match(matched, _automated())
    await store.commit_match(gone, _automated(catalog_id=570))
    assert not sidecar_path(matched_folder).exists()
    store.write_sidecars = True

    summary = await store.export_all_sidecars()

    assert summary.total == 3
    assert summary.exported == 1
    assert summary.failed == 1
    assert summary.skipped == 1
    assert read_sidecar(matched_folder) is not None
