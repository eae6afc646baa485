"""Title matching: normalization, exclusion and similarity scoring.

The resolver that ties these to the catalog client and the library store
lives in gamevault.core.matching.resolver.
"""

from .config import DEFAULT_CONFIG, MatchingConfig, get_matching_config, reload_matching_config
from .exclusion import is_excluded
from .normalizer import normalize
from .similarity import score

__all__ = [
    "MatchingConfig",
    "DEFAULT_CONFIG",
    "get_matching_config",
    "reload_matching_config",
    "is_excluded",
    "normalize",
    "score",
]
