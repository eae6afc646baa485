"""Per-folder sidecar files under ``<game folder>/.gamevault/``.

The sidecar (metadata.json) is a portable backup of an entry's enrichment
fields. The database stays authoritative; sidecars are written best-effort
after each commit and can repopulate the database after it is lost.
Cached cover and background images live in the same directory.
"""

from __future__ import annotations

import json
import os
import tempfile
import time
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, Field, ValidationError

from gamevault.core.exceptions import SidecarFormatError

if TYPE_CHECKING:
    from gamevault.core.catalog.client import CatalogClient
    from gamevault.core.catalog.pacer import RequestPacer
    from gamevault.db.models import LibraryEntry

logger = structlog.get_logger("gamevault.sidecar")

SIDECAR_DIR = ".gamevault"
SIDECAR_FILE = "metadata.json"
COVER_FILE = "cover.jpg"
BACKGROUND_FILE = "background.jpg"

CURRENT_SCHEMA_VERSION = 1


class SidecarRecord(BaseModel):
    """Schema version 1 of metadata.json."""

    schema_version: int = Field(default=CURRENT_SCHEMA_VERSION)
    title: str
    catalog_id: int | None = None
    alt_catalog_id: int | None = None
    match_confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    summary: str | None = None
    release_date: str | None = None
    genres: list[str] = Field(default_factory=list)
    developers: list[str] = Field(default_factory=list)
    publishers: list[str] = Field(default_factory=list)
    review_score: int | None = Field(default=None, ge=0, le=100)
    review_count: int | None = None
    review_summary: str | None = None
    cover_url: str | None = None
    background_url: str | None = None
    manually_edited: bool = False
    exported_at: int | None = None  # Epoch seconds

    @classmethod
    def from_entry(cls, entry: LibraryEntry) -> SidecarRecord:
        return cls(
            title=entry.title,
            catalog_id=entry.catalog_id,
            alt_catalog_id=entry.alt_catalog_id,
            match_confidence=entry.match_confidence,
            summary=entry.summary,
            release_date=entry.release_date,
            genres=list(entry.genres or []),
            developers=list(entry.developers or []),
            publishers=list(entry.publishers or []),
            review_score=entry.review_score,
            review_count=entry.review_count,
            review_summary=entry.review_summary,
            cover_url=entry.cover_url,
            background_url=entry.background_url,
            manually_edited=entry.manually_edited,
            exported_at=int(time.time()),
        )


class _LegacyExport(BaseModel):
    """Unversioned export written by releases before schema_version existed."""

    title: str
    steam_app_id: int | None = None
    summary: str | None = None
    genres: list[str] | None = None
    developers: list[str] | None = None
    publishers: list[str] | None = None
    release_date: str | None = None
    review_score: int | None = None
    review_summary: str | None = None


def _decode_legacy(data: dict[str, Any]) -> SidecarRecord:
    legacy = _LegacyExport.model_validate(data)
    return SidecarRecord(
        title=legacy.title,
        catalog_id=legacy.steam_app_id or None,
        summary=legacy.summary,
        genres=legacy.genres or [],
        developers=legacy.developers or [],
        publishers=legacy.publishers or [],
        release_date=legacy.release_date,
        review_score=legacy.review_score,
        review_summary=legacy.review_summary,
    )


def _decode_v1(data: dict[str, Any]) -> SidecarRecord:
    return SidecarRecord.model_validate(data)


_DECODERS: dict[int, Callable[[dict[str, Any]], SidecarRecord]] = {
    0: _decode_legacy,
    1: _decode_v1,
}


def decode_sidecar(data: Any) -> SidecarRecord:
    """Decode a parsed sidecar document, dispatching on schema_version.

    Raises:
        SidecarFormatError: Not an object, unknown version, or invalid fields
    """
    if not isinstance(data, dict):
        raise SidecarFormatError("Sidecar document is not a JSON object")

    version = data.get("schema_version", 0)
    if isinstance(version, bool) or not isinstance(version, int):
        raise SidecarFormatError(f"Invalid schema_version: {version!r}")

    decoder = _DECODERS.get(version)
    if decoder is None:
        raise SidecarFormatError(f"Unsupported sidecar schema_version: {version}")

    try:
        return decoder(data)
    except ValidationError as e:
        raise SidecarFormatError(
            f"Invalid sidecar fields ({e.error_count()} errors, schema_version {version})"
        ) from e


def sidecar_dir(folder: Path) -> Path:
    return folder / SIDECAR_DIR


def sidecar_path(folder: Path) -> Path:
    return folder / SIDECAR_DIR / SIDECAR_FILE


def write_sidecar(folder: Path, record: SidecarRecord) -> Path:
    """Atomically write metadata.json for a folder.

    The document is written to a temporary file in the same directory and
    renamed over the target, so readers never see a partial file.

    Raises:
        OSError: The folder is missing or the sidecar directory is not writable
    """
    target_dir = sidecar_dir(folder)
    # Only the sidecar directory is created; a vanished game folder is an error
    target_dir.mkdir(exist_ok=True)
    target = target_dir / SIDECAR_FILE

    payload = json.dumps(record.model_dump(mode="json"), indent=2, ensure_ascii=False)

    fd, tmp_name = tempfile.mkstemp(dir=target_dir, prefix=f".{SIDECAR_FILE}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    return target


def read_sidecar(folder: Path) -> SidecarRecord | None:
    """Read metadata.json for a folder.

    Returns:
        The decoded record, or None when no sidecar exists

    Raises:
        SidecarFormatError: The file exists but cannot be read or decoded
    """
    path = sidecar_path(folder)
    if not path.is_file():
        return None

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise SidecarFormatError(f"Unreadable sidecar: {e.__class__.__name__}") from e

    return decode_sidecar(data)


def is_folder_writable(folder: Path) -> bool:
    """Check that the sidecar directory exists (or can be created) and accepts files."""
    if not folder.is_dir():
        return False

    target_dir = sidecar_dir(folder)
    try:
        target_dir.mkdir(exist_ok=True)
        with tempfile.TemporaryFile(dir=target_dir):
            pass
    except OSError:
        return False
    return True


async def cache_images(
    client: CatalogClient,
    folder: Path,
    cover_url: str | None,
    background_url: str | None,
    pacer: RequestPacer | None = None,
    replace: bool = False,
) -> tuple[str | None, str | None]:
    """Download cover and background images into the sidecar directory.

    Images already on disk are reused without downloading unless replace is
    set (the entry was re-linked to another catalog id). Returns the local
    paths of the images that are available (None for the others).
    """
    if not cover_url and not background_url:
        return None, None

    if not is_folder_writable(folder):
        logger.warning("Game folder not writable, skipping image cache", folder=folder.name)
        return None, None

    local_paths: list[str | None] = []
    for url, file_name in ((cover_url, COVER_FILE), (background_url, BACKGROUND_FILE)):
        dest = sidecar_dir(folder) / file_name
        if not url:
            local_paths.append(None)
        elif dest.exists() and not replace:
            logger.debug("Image already cached", folder=folder.name, file=file_name)
            local_paths.append(str(dest))
        elif await client.download_image(url, dest, pacer=pacer):
            local_paths.append(str(dest))
        else:
            local_paths.append(None)

    return local_paths[0], local_paths[1]
