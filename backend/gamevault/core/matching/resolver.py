"""Match resolution: ties the normalizer, catalog client and library store together.

Automated path: pending entry -> search -> details + reviews -> commit_match
(matched) or mark_failed. Manual path: operator supplied app id or store URL
-> details + reviews -> commit_match (manual, locked).
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable
from pathlib import Path

import structlog

from gamevault.core.catalog.client import CatalogClient
from gamevault.core.catalog.models import CatalogDetails
from gamevault.core.catalog.pacer import RequestPacer
from gamevault.core.exceptions import (
    CatalogEntryNotFoundError,
    GameVaultError,
    InvalidCatalogInputError,
    StorageError,
)
from gamevault.core.library_store import LibraryStore
from gamevault.core.matching.config import MatchingConfig, get_matching_config
from gamevault.core.matching.normalizer import normalize
from gamevault.core.matching.results import (
    EnrichSummary,
    ManualMatchPreview,
    MatchDecision,
    MatchResult,
)
from gamevault.core.sidecar import cache_images
from gamevault.db.models import LibraryEntry, MatchStatus

logger = structlog.get_logger("gamevault.matching.resolver")

_BARE_ID = re.compile(r"^\d{1,12}$", re.ASCII)
# https://store.steampowered.com/app/292030/The_Witcher_3_Wild_Hunt/
_STORE_URL_ID = re.compile(r"/app/(\d{1,12})(?!\d)", re.ASCII)


def parse_catalog_input(value: str) -> int:
    """Extract a store app id from a bare id or a store URL.

    Raises:
        InvalidCatalogInputError: Neither form matched, or the id is zero
    """
    text = value.strip()

    if _BARE_ID.match(text):
        catalog_id = int(text)
    else:
        match = _STORE_URL_ID.search(text)
        if match is None:
            raise InvalidCatalogInputError(value)
        catalog_id = int(match.group(1))

    if catalog_id <= 0:
        raise InvalidCatalogInputError(value)
    return catalog_id


class MatchResolver:
    """Resolves library entries against the catalog and commits the outcome."""

    def __init__(
        self,
        store: LibraryStore,
        client: CatalogClient,
        config: MatchingConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.store = store
        self.client = client
        self.config = config or get_matching_config()
        self._sleep = sleep

    def _new_pacer(self) -> RequestPacer:
        return RequestPacer(self.config.rate_limit_delay_ms, sleep=self._sleep)

    async def _cache_entry_images(
        self,
        entry: LibraryEntry,
        details: CatalogDetails | None,
        pacer: RequestPacer | None,
        replace: bool,
    ) -> LibraryEntry:
        """Best-effort image cache; failures leave the committed match untouched."""
        if not self.config.cache_images or details is None:
            return entry

        cover, background = await cache_images(
            self.client,
            Path(entry.folder_path),
            details.cover_url,
            details.background_url,
            pacer=pacer,
            replace=replace,
        )
        if cover is None and background is None:
            return entry

        try:
            return await self.store.update_local_images(entry.id, cover, background)
        except StorageError as e:
            logger.warning("Could not record cached images", entry_id=entry.id, error=str(e))
            return entry

    async def _resolve(self, entry: LibraryEntry, pacer: RequestPacer | None) -> MatchDecision:
        # User titles are searched verbatim
        title = entry.title if entry.manually_edited else normalize(entry.title)

        hit = await self.client.search(title, pacer=pacer)
        if hit is None:
            failed = await self.store.mark_failed(entry.id)
            logger.info("Entry unmatched", entry_id=entry.id, title=title)
            return MatchDecision(entry_id=entry.id, status=MatchStatus.FAILED, entry=failed)

        catalog_id, confidence = hit
        details = await self.client.fetch_details(catalog_id, pacer=pacer)
        reviews = await self.client.fetch_reviews(catalog_id, pacer=pacer)

        relinked = entry.catalog_id is not None and entry.catalog_id != catalog_id
        updated = await self.store.commit_match(
            entry.id,
            MatchResult(
                catalog_id=catalog_id,
                confidence=confidence,
                status=MatchStatus.MATCHED,
                details=details,
                reviews=reviews,
            ),
        )
        if updated.match_locked:
            # Locked by a manual match while this lookup was in flight
            return MatchDecision(
                entry_id=entry.id,
                status=MatchStatus(updated.match_status),
                catalog_id=updated.catalog_id,
                confidence=updated.match_confidence,
                skipped=True,
                entry=updated,
            )

        updated = await self._cache_entry_images(updated, details, pacer, replace=relinked)

        needs_review = confidence < self.config.auto_match_threshold
        if needs_review:
            logger.info(
                "Low confidence match needs review",
                entry_id=entry.id,
                title=title,
                catalog_id=catalog_id,
                confidence=round(confidence, 3),
            )
        return MatchDecision(
            entry_id=entry.id,
            status=MatchStatus.MATCHED,
            catalog_id=catalog_id,
            confidence=confidence,
            needs_review=needs_review,
            entry=updated,
        )

    async def resolve_entry(self, entry_id: str, force: bool = False) -> MatchDecision:
        """Resolve a single entry.

        Only pending entries are resolved unless force is set. Locked entries
        are never re-resolved; reset_protection on the store unlocks them.
        Single lookups are not paced.
        """
        entry = await self.store.get_entry(entry_id)

        if entry.match_locked or (not force and entry.match_status != MatchStatus.PENDING):
            logger.debug(
                "Skipping resolution",
                entry_id=entry_id,
                status=entry.match_status,
                locked=entry.match_locked,
            )
            return MatchDecision(
                entry_id=entry_id,
                status=MatchStatus(entry.match_status),
                catalog_id=entry.catalog_id,
                confidence=entry.match_confidence,
                skipped=True,
                entry=entry,
            )

        return await self._resolve(entry, pacer=None)

    async def enrich_batch(self) -> EnrichSummary:
        """Resolve up to one batch of pending, unlocked entries in title order.

        Every outbound catalog request in the batch is paced. A failure on one
        entry is counted and the batch moves on.
        """
        total = await self.store.count_needing_enrichment()
        entries = await self.store.list_needing_enrichment(limit=self.config.enrichment_batch_size)
        summary = EnrichSummary(total=total, remaining=max(0, total - len(entries)))

        logger.info("Starting enrichment batch", batch=len(entries), total=total)

        pacer = self._new_pacer()
        for entry in entries:
            try:
                decision = await self._resolve(entry, pacer)
            except GameVaultError as e:
                logger.warning(
                    "Entry enrichment failed",
                    entry_id=entry.id,
                    error_type=e.__class__.__name__,
                    error=str(e),
                )
                summary.failed += 1
                continue

            summary.decisions.append(decision)
            if decision.status == MatchStatus.MATCHED and not decision.skipped:
                summary.enriched += 1
            elif not decision.skipped:
                summary.failed += 1

        logger.info(
            "Enrichment batch complete",
            enriched=summary.enriched,
            failed=summary.failed,
            remaining=summary.remaining,
            total=summary.total,
        )
        return summary

    async def _fetch_manual_result(self, catalog_id: int) -> MatchResult:
        details = await self.client.fetch_details(catalog_id)
        if details is None:
            raise CatalogEntryNotFoundError(catalog_id)
        reviews = await self.client.fetch_reviews(catalog_id)
        return MatchResult(
            catalog_id=catalog_id,
            confidence=1.0,
            status=MatchStatus.MANUAL,
            details=details,
            reviews=reviews,
        )

    async def preview_manual_match(self, entry_id: str, value: str) -> ManualMatchPreview:
        """Fetch what a manual match would write without changing anything.

        Raises:
            InvalidCatalogInputError: value is not an app id or store URL
            EntryNotFoundError: No entry with this id
            CatalogEntryNotFoundError: The catalog has no details for the id
        """
        catalog_id = parse_catalog_input(value)
        entry = await self.store.get_entry(entry_id)
        result = await self._fetch_manual_result(catalog_id)

        details = result.details
        return ManualMatchPreview(
            entry_id=entry_id,
            current_catalog_id=entry.catalog_id,
            result=result,
            title=entry.title if entry.manually_edited or details is None else details.name,
        )

    async def confirm_manual_match(self, entry_id: str, value: str) -> MatchDecision:
        """Link an entry to an operator chosen app id and lock the linkage.

        Raises:
            InvalidCatalogInputError: value is not an app id or store URL
            EntryNotFoundError: No entry with this id
            CatalogEntryNotFoundError: The catalog has no details for the id
            StorageError: The commit failed
        """
        catalog_id = parse_catalog_input(value)
        entry = await self.store.get_entry(entry_id)
        result = await self._fetch_manual_result(catalog_id)

        relinked = entry.catalog_id is not None and entry.catalog_id != catalog_id
        updated = await self.store.commit_match(entry_id, result)
        updated = await self._cache_entry_images(updated, result.details, None, replace=relinked)

        logger.info(
            "Manual match confirmed",
            entry_id=entry_id,
            catalog_id=catalog_id,
            previous_catalog_id=entry.catalog_id,
        )
        return MatchDecision(
            entry_id=entry_id,
            status=MatchStatus.MANUAL,
            catalog_id=catalog_id,
            confidence=1.0,
            entry=updated,
        )
