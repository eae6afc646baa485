"""Steam store catalog client: search, details, reviews and image downloads."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any
from urllib.parse import quote

import httpx
import structlog
from pydantic import ValidationError

from gamevault import __version__
from gamevault.core.catalog.models import (
    AppDetailsEnvelope,
    CatalogDetails,
    ReviewsPayload,
    ReviewSummary,
    SearchCandidate,
)
from gamevault.core.catalog.overrides import lookup_override
from gamevault.core.catalog.pacer import RequestPacer
from gamevault.core.config import Settings
from gamevault.core.matching.config import MatchingConfig, get_matching_config
from gamevault.core.matching.similarity import score
from gamevault.core.metrics import catalog_requests_total

logger = structlog.get_logger("gamevault.catalog.client")

USER_AGENT = f"GameVault/{__version__}"


class CatalogClient:
    """Async client for the Steam store.

    Features:
    - Static override table consulted before any search request
    - Candidate scoring with the title similarity scorer
    - Optional request pacing supplied by the caller (batch loops)
    - Transport, status and payload errors are logged and returned as None
    """

    def __init__(
        self,
        search_url: str = "https://steamcommunity.com/actions/SearchApps",
        store_api_url: str = "https://store.steampowered.com/api",
        reviews_url: str = "https://store.steampowered.com/appreviews",
        timeout: float = 10.0,
        image_timeout: float = 30.0,
        config: MatchingConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize catalog client.

        Args:
            search_url: Text search endpoint; the title is appended as a path segment
            store_api_url: Store API base URL (appdetails lives below it)
            reviews_url: Review summary base URL; the app id is appended
            timeout: Timeout in seconds for API requests
            image_timeout: Timeout in seconds for image downloads
            config: Matching configuration (if None, loads from settings file)
            http_client: Client to use instead of an owned one (tests pass a mock transport)
        """
        self.search_url = search_url.rstrip("/")
        self.store_api_url = store_api_url.rstrip("/")
        self.reviews_url = reviews_url.rstrip("/")
        self.timeout = timeout
        self.image_timeout = image_timeout
        self.config = config or get_matching_config()

        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        config: MatchingConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> CatalogClient:
        return cls(
            search_url=settings.catalog_search_url,
            store_api_url=settings.catalog_store_api_url,
            reviews_url=settings.catalog_reviews_url,
            timeout=settings.catalog_request_timeout,
            image_timeout=settings.image_request_timeout,
            config=config,
            http_client=http_client,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> CatalogClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _get_json(
        self,
        url: str,
        operation: str,
        params: dict[str, Any] | None = None,
        pacer: RequestPacer | None = None,
    ) -> Any | None:
        """GET a JSON document, returning None on any transport or decode failure."""
        if pacer is not None:
            await pacer.wait()

        try:
            response = await self._client.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Catalog request rejected",
                operation=operation,
                status_code=e.response.status_code,
            )
        except httpx.HTTPError as e:
            logger.warning("Catalog request failed", operation=operation, error=str(e))
        except ValueError as e:
            logger.warning("Catalog response is not valid JSON", operation=operation, error=str(e))

        catalog_requests_total.labels(operation=operation, outcome="error").inc()
        return None

    async def search(
        self,
        title: str,
        pacer: RequestPacer | None = None,
    ) -> tuple[int, float] | None:
        """Find the best store app id for a title.

        Args:
            title: Normalized title to look up
            pacer: Optional pacer awaited before the network request

        Returns:
            (app_id, confidence) of the best candidate scoring at least the
            search threshold, or None
        """
        title = title.strip()
        if not title:
            return None

        found, override_id = lookup_override(title)
        if found:
            if override_id is None:
                logger.info("Title is listed as not in catalog", title=title)
                catalog_requests_total.labels(operation="search", outcome="not_in_catalog").inc()
                return None
            logger.info("Using catalog override", title=title, catalog_id=override_id)
            catalog_requests_total.labels(operation="search", outcome="override").inc()
            return override_id, 1.0

        data = await self._get_json(
            f"{self.search_url}/{quote(title, safe='')}", operation="search", pacer=pacer
        )
        if data is None:
            return None
        if not isinstance(data, list):
            logger.warning("Unexpected search payload", title=title, type=type(data).__name__)
            catalog_requests_total.labels(operation="search", outcome="error").inc()
            return None

        best: tuple[int, float] | None = None
        for raw in data[: self.config.search_candidate_limit]:
            try:
                candidate = SearchCandidate.model_validate(raw)
            except ValidationError:
                continue
            similarity = score(title, candidate.name)
            # Strictly greater keeps the earlier (higher ranked) candidate on ties
            if best is None or similarity > best[1]:
                best = (candidate.appid, similarity)

        if best is not None and best[1] >= self.config.search_threshold:
            logger.info(
                "Found catalog match",
                title=title,
                catalog_id=best[0],
                confidence=round(best[1], 3),
            )
            catalog_requests_total.labels(operation="search", outcome="ok").inc()
            return best

        logger.info(
            "No catalog match found",
            title=title,
            best_confidence=round(best[1], 3) if best else None,
        )
        catalog_requests_total.labels(operation="search", outcome="no_match").inc()
        return None

    async def fetch_details(
        self,
        catalog_id: int,
        pacer: RequestPacer | None = None,
    ) -> CatalogDetails | None:
        """Fetch descriptive metadata for an app id, or None if unavailable."""
        data = await self._get_json(
            f"{self.store_api_url}/appdetails",
            operation="details",
            params={"appids": catalog_id},
            pacer=pacer,
        )
        if data is None:
            return None

        raw = data.get(str(catalog_id)) if isinstance(data, dict) else None
        if raw is None:
            logger.warning("Details payload missing app", catalog_id=catalog_id)
            catalog_requests_total.labels(operation="details", outcome="error").inc()
            return None

        try:
            envelope = AppDetailsEnvelope.model_validate(raw)
        except ValidationError as e:
            logger.warning(
                "Malformed details payload", catalog_id=catalog_id, errors=e.error_count()
            )
            catalog_requests_total.labels(operation="details", outcome="error").inc()
            return None

        if not envelope.success or envelope.data is None:
            logger.info("Catalog has no details for app", catalog_id=catalog_id)
            catalog_requests_total.labels(operation="details", outcome="not_found").inc()
            return None

        app = envelope.data
        catalog_requests_total.labels(operation="details", outcome="ok").inc()
        return CatalogDetails(
            catalog_id=catalog_id,
            name=app.name,
            summary=app.short_description or None,
            genres=[genre.description for genre in app.genres],
            developers=app.developers,
            publishers=app.publishers,
            release_date=app.release_date.date if app.release_date else None,
            cover_url=app.header_image or None,
            background_url=app.background or None,
        )

    async def fetch_reviews(
        self,
        catalog_id: int,
        pacer: RequestPacer | None = None,
    ) -> ReviewSummary | None:
        """Fetch the aggregate review score; None when there are no reviews."""
        data = await self._get_json(
            f"{self.reviews_url}/{catalog_id}",
            operation="reviews",
            params={"json": 1, "language": "all", "purchase_type": "all", "num_per_page": 0},
            pacer=pacer,
        )
        if data is None:
            return None

        try:
            payload = ReviewsPayload.model_validate(data)
        except ValidationError as e:
            logger.warning(
                "Malformed reviews payload", catalog_id=catalog_id, errors=e.error_count()
            )
            catalog_requests_total.labels(operation="reviews", outcome="error").inc()
            return None

        summary = payload.query_summary
        if payload.success != 1 or summary is None:
            catalog_requests_total.labels(operation="reviews", outcome="not_found").inc()
            return None

        total = summary.total_positive + summary.total_negative
        if total <= 0:
            catalog_requests_total.labels(operation="reviews", outcome="not_found").inc()
            return None

        catalog_requests_total.labels(operation="reviews", outcome="ok").inc()
        return ReviewSummary(
            score=summary.total_positive * 100 // total,
            count=summary.total_reviews or total,
            label=summary.review_score_desc or None,
        )

    async def download_image(
        self,
        url: str,
        dest: Path,
        pacer: RequestPacer | None = None,
    ) -> bool:
        """Download an image to dest, replacing it atomically. Returns success."""
        if pacer is not None:
            await pacer.wait()

        partial = dest.with_name(f"{dest.name}.part")
        try:
            response = await self._client.get(url, timeout=self.image_timeout)
            response.raise_for_status()
            dest.parent.mkdir(parents=True, exist_ok=True)
            partial.write_bytes(response.content)
            os.replace(partial, dest)
        except httpx.HTTPError as e:
            logger.warning("Image download failed", url=url, error=str(e))
            catalog_requests_total.labels(operation="image", outcome="error").inc()
            return False
        except OSError as e:
            partial.unlink(missing_ok=True)
            logger.warning("Could not save image", file=dest.name, error=str(e))
            catalog_requests_total.labels(operation="image", outcome="error").inc()
            return False

        catalog_requests_total.labels(operation="image", outcome="ok").inc()
        return True
