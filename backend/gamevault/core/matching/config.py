"""Matching configuration - thresholds, limits and pacing."""

from __future__ import annotations

from dataclasses import dataclass, fields

import structlog

from gamevault.core.config import read_settings_file

logger = structlog.get_logger("gamevault.matching.config")


@dataclass
class MatchingConfig:
    """Configuration for catalog matching and enrichment.

    This class centralizes all thresholds and batch limits,
    making it easy to adjust matching behavior.
    """

    # Thresholds
    search_threshold: float = 0.60  # Minimum score for a search hit
    auto_match_threshold: float = 0.85  # Below this a hit is flagged for review

    # Search limits
    search_candidate_limit: int = 5  # Candidates scored per search

    # Enrichment batches
    enrichment_batch_size: int = 20
    rate_limit_delay_ms: int = 500  # Minimum gap between outbound catalog requests

    # Image cache
    cache_images: bool = True

    def __post_init__(self) -> None:
        if not 0.0 <= self.search_threshold <= self.auto_match_threshold <= 1.0:
            raise ValueError(
                "Thresholds must satisfy 0 <= search_threshold <= auto_match_threshold <= 1"
            )
        if self.search_candidate_limit < 1:
            raise ValueError("search_candidate_limit must be at least 1")
        if self.enrichment_batch_size < 1:
            raise ValueError("enrichment_batch_size must be at least 1")
        if self.rate_limit_delay_ms < 0:
            raise ValueError("rate_limit_delay_ms must not be negative")


# Default config instance
DEFAULT_CONFIG = MatchingConfig()

# Cached config instance (loaded from settings file)
_cached_config: MatchingConfig | None = None


def get_matching_config() -> MatchingConfig:
    """Get the current matching configuration.

    Loads the "matching" section of settings.json if available, otherwise
    returns defaults. Unknown keys are ignored; invalid values fall back to
    defaults with a warning.
    """
    global _cached_config

    if _cached_config is not None:
        return _cached_config

    matching_settings = read_settings_file().get("matching")
    if isinstance(matching_settings, dict) and matching_settings:
        known = {f.name for f in fields(MatchingConfig)}
        try:
            _cached_config = MatchingConfig(
                **{k: v for k, v in matching_settings.items() if k in known}
            )
        except (TypeError, ValueError) as exc:
            logger.warning("Invalid matching settings, using defaults", error=str(exc))
            _cached_config = DEFAULT_CONFIG
    else:
        _cached_config = DEFAULT_CONFIG

    return _cached_config


def reload_matching_config() -> MatchingConfig:
    """Reload matching configuration from settings file.

    Call this after updating settings to ensure new values are used.
    """
    global _cached_config
    _cached_config = None
    return get_matching_config()
