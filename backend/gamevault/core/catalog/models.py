"""Pydantic models for Steam store payloads and the normalized catalog records."""

from __future__ import annotations

from pydantic import BaseModel, Field

# Raw payloads. Unknown keys are ignored; only what we read is declared.


class SearchCandidate(BaseModel):
    """One entry of the community SearchApps response."""

    appid: int = Field(..., description="Store app id (sent as a string, coerced)")
    name: str = Field(..., description="Store display name")


class GenrePayload(BaseModel):
    id: str | None = None
    description: str


class ReleaseDatePayload(BaseModel):
    coming_soon: bool = False
    date: str | None = None


class AppDetailsData(BaseModel):
    name: str
    short_description: str | None = None
    header_image: str | None = None
    background: str | None = None
    developers: list[str] = Field(default_factory=list)
    publishers: list[str] = Field(default_factory=list)
    genres: list[GenrePayload] = Field(default_factory=list)
    release_date: ReleaseDatePayload | None = None


class AppDetailsEnvelope(BaseModel):
    """Value stored under the app id key of an appdetails response."""

    success: bool
    data: AppDetailsData | None = None


class ReviewQuerySummary(BaseModel):
    total_positive: int = 0
    total_negative: int = 0
    total_reviews: int = 0
    review_score_desc: str | None = None


class ReviewsPayload(BaseModel):
    success: int
    query_summary: ReviewQuerySummary | None = None


# Normalized records handed to the resolver


class CatalogDetails(BaseModel):
    """Descriptive metadata for one catalog entry."""

    catalog_id: int = Field(..., description="Store app id")
    name: str = Field(..., description="Canonical title")
    summary: str | None = Field(default=None, description="Short description")
    genres: list[str] = Field(default_factory=list, description="Genre names, store order")
    developers: list[str] = Field(default_factory=list)
    publishers: list[str] = Field(default_factory=list)
    release_date: str | None = Field(default=None, description="Release date as displayed")
    cover_url: str | None = Field(default=None, description="Header image URL")
    background_url: str | None = Field(default=None, description="Background image URL")


class ReviewSummary(BaseModel):
    """Aggregate review data for one catalog entry."""

    score: int = Field(..., ge=0, le=100, description="Percent positive (floor)")
    count: int = Field(default=0, ge=0, description="Total number of reviews")
    label: str | None = Field(default=None, description="Qualitative label, e.g. 'Very Positive'")
