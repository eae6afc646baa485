"""Steam store catalog access.

Search, details and review lookups with a static override table and
caller-owned request pacing.
"""

from .client import CatalogClient
from .models import CatalogDetails, ReviewSummary
from .overrides import KNOWN_TITLES, lookup_override
from .pacer import RequestPacer

__all__ = [
    "CatalogClient",
    "CatalogDetails",
    "ReviewSummary",
    "KNOWN_TITLES",
    "lookup_override",
    "RequestPacer",
]
