# leadscout/providers/__init__.py
"""
Search providers consumed by the crawl scheduler's fan-out.

  - SearchProvider: id, is_free_tier_eligible, max_per_minute, search(query)
  - StaticProvider: canned results (free tier)
  - Brave / Bing / Google CSE adapters and providers_from_env()
"""

from .base import SearchProvider, StaticProvider, normalize_results
from .web import (
    BingSearchProvider,
    BraveSearchProvider,
    GoogleCSEProvider,
    HttpSearchProvider,
    providers_from_env,
)

__all__ = [
    "SearchProvider",
    "StaticProvider",
    "normalize_results",
    "HttpSearchProvider",
    "BraveSearchProvider",
    "BingSearchProvider",
    "GoogleCSEProvider",
    "providers_from_env",
]
