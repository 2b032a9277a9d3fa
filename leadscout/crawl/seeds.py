# leadscout/crawl/seeds.py
"""
Provider results -> LeadSeeds -> CrawlTasks.

Seeds are transient: they are scored, sorted, truncated to the plan's
max_seed_urls and folded into tasks in one pass. Malformed URLs are dropped
here and never reach the caller.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

import tldextract

from leadscout.config import PlanCaps, app_config
from leadscout.exceptions import MalformedUrl
from leadscout.models import CrawlTask, LeadSeed, Region, SearchResult, SeedSource
from leadscout.utils import clamp01, host_of, host_root, normalize_url

log = logging.getLogger(__name__)

# Public Suffix handling: bundled snapshot only (no network fetch)
_EXTRACT = tldextract.TLDExtract(cache_dir=None, suffix_list_urls=())

_SOCIAL_RE = re.compile(
    r"(?:^|[/.])(?:facebook|instagram|pinterest|tiktok|twitter|x|linkedin)\.com/",
    re.IGNORECASE,
)
_PDF_RE = re.compile(r"\.pdf(?:\?|#|$)", re.IGNORECASE)

RFQ_SEED_BONUS = 0.2
RFQ_PRIORITY_BONUS = 20
ECOM_PRIORITY_BONUS = 10
DEFAULT_RELEVANCE = 0.5

# ccTLD -> advisory region; never treated as geolocation
_TLD_REGIONS: dict[str, Region] = {
    "ca": Region(country="Canada"),
    "us": Region(country="United States"),
    "uk": Region(country="United Kingdom"),
    "mx": Region(country="Mexico"),
}


def bare_domain(host: str) -> str:
    """Registrable domain of a host ("shop.acme.co.uk" -> "acme.co.uk")."""
    host = host_root(host)
    ext = _EXTRACT(host)
    if ext.domain and ext.suffix:
        return f"{ext.domain}.{ext.suffix}"
    return host


class Denylist:
    """
    Case-insensitive host denylist. An entry matches a host when they are
    equal after stripping "www.", or when both share a registrable domain.
    """

    def __init__(self, entries: Iterable[str] = ()) -> None:
        self._hosts: set[str] = set()
        self._bare: set[str] = set()
        for e in entries:
            self.add(e)

    def add(self, entry: str) -> None:
        entry = (entry or "").strip().lower()
        if not entry:
            return
        if "://" in entry:
            entry = host_of(entry) or ""
        host = host_root(entry.split("/", 1)[0])
        if host:
            self._hosts.add(host)
            self._bare.add(bare_domain(host))

    def matches(self, host: str) -> bool:
        host = host_root(host)
        return host in self._hosts or bare_domain(host) in self._bare

    def __len__(self) -> int:
        return len(self._hosts)


def is_social_profile(url: str) -> bool:
    return bool(_SOCIAL_RE.search(url))


def is_pdf(url: str) -> bool:
    return bool(_PDF_RE.search(url))


def seed_source_for(tags: Iterable[str]) -> SeedSource:
    tags = set(tags)
    if "rfq" in tags:
        return SeedSource.USER_KEYWORDS
    if "ecom" in tags:
        return SeedSource.SOCIAL
    if "ops" in tags:
        return SeedSource.DIRECTORIES
    if "related" in tags:
        return SeedSource.IMPORTS
    return SeedSource.USER_KEYWORDS


def merge_seeds(
    results: Iterable[SearchResult],
    *,
    denylist: Denylist | None = None,
    max_seeds: int | None = None,
) -> list[LeadSeed]:
    """
    Dedupe results by host (first wins), drop social profiles, PDFs and
    denylisted hosts, score, sort descending and truncate.
    """
    seen_hosts: set[str] = set()
    seeds: list[LeadSeed] = []
    for r in results:
        try:
            url = normalize_url(r.url)
        except MalformedUrl:
            log.debug("dropping malformed result url %r", r.url)
            continue
        host = host_root(host_of(url) or "")
        if not host or host in seen_hosts:
            continue
        if is_social_profile(url) or is_pdf(url):
            continue
        if denylist is not None and denylist.matches(host):
            log.debug("denylisted seed host %s", host)
            continue
        seen_hosts.add(host)

        tags = tuple(r.tags)
        relevance = DEFAULT_RELEVANCE if r.relevance is None else r.relevance
        score = clamp01(relevance + (RFQ_SEED_BONUS if "rfq" in tags else 0.0))
        seeds.append(
            LeadSeed(
                source=seed_source_for(tags),
                url=url,
                seed_score=score,
                tags=tags,
                region=guess_region_from_host(host),
            )
        )

    # stable: equal scores keep provider order
    seeds.sort(key=lambda s: s.seed_score, reverse=True)
    if max_seeds is not None:
        seeds = seeds[: max(0, max_seeds)]
    return seeds


def guess_region_from_host(host: str) -> Region | None:
    tld = host.rstrip(".").rsplit(".", 1)[-1].lower() if host else ""
    return _TLD_REGIONS.get(tld)


def seed_priority(seed: LeadSeed) -> float:
    priority = seed.seed_score * 100
    if "rfq" in seed.tags:
        priority += RFQ_PRIORITY_BONUS
    if "ecom" in seed.tags:
        priority += ECOM_PRIORITY_BONUS
    return priority


def seeds_to_tasks(seeds: Iterable[LeadSeed], plan: str, caps: PlanCaps) -> list[CrawlTask]:
    tasks: list[CrawlTask] = []
    for seed in list(seeds)[: caps.max_seed_urls]:
        try:
            task = CrawlTask(
                url=seed.url,
                plan=plan,
                tags=seed.tags,
                priority=seed_priority(seed),
                timeout_ms=caps.timeout_ms,
                max_bytes=caps.max_crawl_bytes,
                subject_region=seed.region,
            )
        except MalformedUrl:
            continue
        tasks.append(task)
    return tasks


def default_denylist(banned: Iterable[str] = (), *, avoid_mega_suppliers: bool = True) -> Denylist:
    """Configured mega-supplier list (when avoiding them) plus caller bans."""
    entries = list(app_config.crawl.denylist) if avoid_mega_suppliers else []
    entries.extend(banned)
    return Denylist(entries)


__all__ = [
    "Denylist",
    "bare_domain",
    "default_denylist",
    "merge_seeds",
    "seeds_to_tasks",
    "seed_priority",
    "seed_source_for",
    "guess_region_from_host",
    "is_social_profile",
    "is_pdf",
]
