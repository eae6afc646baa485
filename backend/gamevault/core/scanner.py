"""Library scanning: one directory level below the games path, one entry per folder."""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from pathlib import Path

import structlog

from gamevault.core.exceptions import StorageError
from gamevault.core.library_store import LibraryStore
from gamevault.core.matching.exclusion import is_excluded
from gamevault.core.matching.normalizer import normalize

logger = structlog.get_logger("gamevault.scanner")


@dataclass
class ScanSummary:
    total_found: int = 0  # Game folders found (excluded folders not counted)
    added_or_updated: int = 0
    excluded: int = 0
    failed: int = 0


@dataclass(frozen=True)
class ScannedFolder:
    folder_path: str
    folder_name: str
    title: str
    size_bytes: int | None


def estimate_folder_size(path: Path) -> int | None:
    """Sum the sizes of the files directly inside path.

    Subdirectories are not walked to keep scans fast. Returns None when
    nothing could be measured.
    """
    total = 0
    try:
        with os.scandir(path) as entries:
            for entry in entries:
                try:
                    if entry.is_file(follow_symlinks=False):
                        total += entry.stat(follow_symlinks=False).st_size
                except OSError:
                    continue
    except OSError as e:
        logger.debug("Could not read folder for size estimate", folder=path.name, error=str(e))
        return None

    return total or None


def discover_game_folders(games_path: Path) -> tuple[list[ScannedFolder], int]:
    """List candidate game folders directly under games_path.

    Returns:
        (folders in name order, number of excluded folders)
    """
    if not games_path.is_dir():
        logger.error("Games path does not exist or is not a directory", path=str(games_path))
        return [], 0

    folders: list[ScannedFolder] = []
    excluded = 0

    with os.scandir(games_path) as entries:
        candidates = sorted(entries, key=lambda e: e.name)

    for entry in candidates:
        try:
            if not entry.is_dir():
                continue
        except OSError:
            continue

        if is_excluded(entry.name):
            logger.info("Excluding non-game folder", folder=entry.name)
            excluded += 1
            continue

        folders.append(
            ScannedFolder(
                folder_path=str(Path(entry.path).resolve()),
                folder_name=entry.name,
                title=normalize(entry.name),
                size_bytes=estimate_folder_size(Path(entry.path)),
            )
        )

    return folders, excluded


async def scan_library(games_path: Path, store: LibraryStore) -> ScanSummary:
    """Scan games_path and upsert one library entry per game folder."""
    folders, excluded = await asyncio.to_thread(discover_game_folders, games_path)
    summary = ScanSummary(total_found=len(folders), excluded=excluded)

    for folder in folders:
        try:
            await store.upsert_scanned(
                folder.folder_path,
                folder.folder_name,
                folder.title,
                folder.size_bytes,
            )
        except StorageError as e:
            logger.warning("Failed to store scanned folder", folder=folder.folder_name, error=str(e))
            summary.failed += 1
            continue
        summary.added_or_updated += 1

    logger.info(
        "Library scan complete",
        found=summary.total_found,
        stored=summary.added_or_updated,
        excluded=summary.excluded,
        failed=summary.failed,
    )
    return summary
