"""Match results and decisions exchanged between the resolver and the store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from gamevault.core.catalog.models import CatalogDetails, ReviewSummary
from gamevault.db.models import MatchStatus

if TYPE_CHECKING:
    from gamevault.db.models import LibraryEntry


@dataclass(frozen=True)
class MatchResult:
    """Catalog linkage plus enrichment, ready to be committed to an entry.

    status is MATCHED for automated results and MANUAL for operator
    overrides; a manual result also locks the entry's catalog linkage.
    """

    catalog_id: int
    confidence: float
    status: MatchStatus = MatchStatus.MATCHED
    details: CatalogDetails | None = None
    reviews: ReviewSummary | None = None

    def __post_init__(self) -> None:
        if self.status not in (MatchStatus.MATCHED, MatchStatus.MANUAL):
            raise ValueError(f"MatchResult status must be matched or manual, got {self.status}")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be within [0, 1], got {self.confidence}")

    @property
    def is_manual(self) -> bool:
        return self.status == MatchStatus.MANUAL


@dataclass(frozen=True)
class MatchDecision:
    """Outcome of one resolution attempt."""

    entry_id: str
    status: MatchStatus
    catalog_id: int | None = None
    confidence: float | None = None
    needs_review: bool = False  # Matched, but below the auto-match threshold
    skipped: bool = False  # Entry was locked; nothing was changed
    entry: LibraryEntry | None = None


@dataclass(frozen=True)
class ManualMatchPreview:
    """What a manual match would write, without writing it."""

    entry_id: str
    current_catalog_id: int | None
    result: MatchResult
    title: str  # Title the entry would carry after confirmation


@dataclass
class EnrichSummary:
    """Counts returned by one enrichment batch."""

    enriched: int = 0
    failed: int = 0
    remaining: int = 0
    total: int = 0
    decisions: list[MatchDecision] = field(default_factory=list, repr=False)
