# leadscout/crawl/queries.py
"""
Discovery query construction.

Turns a UserDiscoveryInput into a deduplicated, capped list of SearchQuery
objects. Families, in order (earlier families survive the cap first):

  1) focus x intent phrase        tags {rfq, wholesale}
  2) focus x storefront platform  tags {ecom, packaging}
  3) operational surfaces         tags {ops}
  4) user extra keywords          tags {extra}
  5) competitor mining            tags {related} / {site}   (only with a website)

Each family is crossed with the region list (or a single "no region").
Deterministic: the same input always yields the same list.
"""

from __future__ import annotations

from leadscout.config import app_config
from leadscout.models import Region, SearchQuery, UserDiscoveryInput
from leadscout.utils import host_of, host_root

DEFAULT_FOCUSES: tuple[str, ...] = (
    "stretch wrap",
    "custom boxes",
    "corrugated",
    "void fill",
    "tape",
    "mailers",
)

INTENT_PHRASES: tuple[str, ...] = (
    '"request a quote"',
    '"bulk pricing"',
    '"wholesale"',
    '"minimum order"',
    '"moq"',
    '"supplier"',
    '"distributor"',
)

DEFAULT_PLATFORMS: tuple[str, ...] = ("Shopify", "WooCommerce")

OPS_QUERIES: tuple[str, ...] = (
    '("shipping supplies" OR "warehouse supplies")',
    '("fulfillment center" OR "3pl")',
)

MIN_QUERY_CHARS = 3


def geo_text(region: Region | None) -> str:
    return region.as_query_text() if region else ""


def _q(text: str, region: Region | None, *tags: str) -> SearchQuery:
    full = f"{text} {geo_text(region)}".strip()
    return SearchQuery(text=" ".join(full.split()), region=region, tags=frozenset(tags))


def build_queries(
    intent: UserDiscoveryInput,
    *,
    max_queries: int | None = None,
) -> list[SearchQuery]:
    cap = max_queries if max_queries is not None else app_config.crawl.max_queries
    regions: tuple[Region | None, ...] = intent.geo or (None,)
    focuses = tuple(f.strip() for f in intent.focuses if f.strip()) or DEFAULT_FOCUSES
    platforms = tuple(p.strip() for p in intent.preferred_channels if p.strip()) or DEFAULT_PLATFORMS
    extras = tuple(k.strip() for k in intent.extra_keywords if k.strip())

    out: list[SearchQuery] = []

    for r in regions:
        for focus in focuses:
            for phrase in INTENT_PHRASES:
                out.append(_q(f"{focus} {phrase}", r, "rfq", "wholesale"))

    # Storefront hints: rotate platforms across focuses
    for r in regions:
        for i, focus in enumerate(focuses):
            platform = platforms[i % len(platforms)]
            out.append(_q(f'{focus} "{platform}" "packaging"', r, "ecom", "packaging"))

    for r in regions:
        for text in OPS_QUERIES:
            out.append(_q(text, r, "ops"))

    for r in regions:
        for kw in extras:
            out.append(_q(kw, r, "extra"))

    website = (intent.website or "").strip()
    if website and "://" not in website:
        website = f"https://{website}"
    host = host_of(website) if website else None
    if host:
        for r in regions:
            out.append(_q(f"related:{host}", r, "related"))
            out.append(_q(f'intitle:"packaging" site:{host_root(host)}', r, "site"))

    return dedupe_queries(out)[: max(0, cap)]


def dedupe_queries(queries: list[SearchQuery]) -> list[SearchQuery]:
    """Drop too-short queries and repeats of (text, region); first occurrence wins."""
    seen: set[tuple[str, Region | None]] = set()
    out: list[SearchQuery] = []
    for q in queries:
        if len(q.text) < MIN_QUERY_CHARS or q.dedupe_key in seen:
            continue
        seen.add(q.dedupe_key)
        out.append(q)
    return out


__all__ = ["build_queries", "dedupe_queries", "geo_text", "DEFAULT_FOCUSES", "INTENT_PHRASES"]
