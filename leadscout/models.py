"""
Data model shared by the scheduler, worker, extractor and router.

Everything that crosses a component boundary is a dataclass defined here.
Values that are emitted once and never changed (SearchQuery, CrawlResult,
ExtractedSignals, LeadCandidate) are frozen; list-like fields are tuples so
that two extractions of the same page compare (and serialise) identically.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from .utils import clamp, clamp01, normalize_url


class CrawlStatus(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"
    ERROR = "error"


class SeedSource(str, Enum):
    USER_WEBSITE = "user-website"
    USER_KEYWORDS = "user-keywords"
    MAP_LOCAL = "map-local"
    DIRECTORIES = "directories"
    SOCIAL = "social"
    ADS = "ads"
    IMPORTS = "imports"


class TaskType(str, Enum):
    DISCOVER = "discover"
    CRAWL = "crawl"
    ENRICH = "enrich"
    REFRESH = "refresh"


class LeadTier(str, Enum):
    SKIP = "skip"
    WARM = "warm"
    HOT = "hot"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]


_TIER_RANK = {LeadTier.SKIP: 0, LeadTier.WARM: 1, LeadTier.HOT: 2}


# ---------------- Geography ----------------


@dataclass(frozen=True, slots=True)
class Region:
    country: str | None = None
    state: str | None = None
    city: str | None = None

    def as_query_text(self) -> str:
        return " ".join(p for p in (self.city, self.state, self.country) if p)


# ---------------- Discovery ----------------


@dataclass(frozen=True, slots=True)
class SearchQuery:
    text: str
    region: Region | None = None
    tags: frozenset[str] = frozenset()

    @property
    def dedupe_key(self) -> tuple[str, Region | None]:
        return (self.text, self.region)


@dataclass(frozen=True, slots=True)
class SearchResult:
    url: str
    provider_id: str = ""
    title: str | None = None
    snippet: str | None = None
    relevance: float | None = None  # 0..1; None means "provider gave no score"
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.relevance is not None:
            object.__setattr__(self, "relevance", clamp01(float(self.relevance)))


@dataclass(frozen=True, slots=True)
class LeadSeed:
    source: SeedSource
    url: str  # normalized, fragment stripped
    seed_score: float
    tags: tuple[str, ...] = ()
    region: Region | None = None


@dataclass(frozen=True)
class UserDiscoveryInput:
    """What the user told us about the buyers they want."""

    website: str | None = None
    geo: tuple[Region, ...] = ()
    focuses: tuple[str, ...] = ()
    banned_competitors: tuple[str, ...] = ()
    avoid_mega_suppliers: bool = True
    extra_keywords: tuple[str, ...] = ()
    preferred_channels: tuple[str, ...] = ()
    playbook: str | None = None
    weights: ScoringWeights | None = None


# ---------------- Crawl ----------------


@dataclass(slots=True)
class CrawlTask:
    url: str
    plan: str
    tags: tuple[str, ...] = ()
    priority: float = 0.0  # higher = sooner
    not_before: float | None = None  # epoch seconds
    timeout_ms: int | None = None
    max_bytes: int | None = None
    dedupe_key: str = ""
    subject_region: Region | None = None
    robots_allowed: bool | None = None
    terms_allow: bool | None = None
    referrer: str | None = None

    def __post_init__(self) -> None:
        if not self.dedupe_key:
            # Raises MalformedUrl; callers building tasks from untrusted input catch it.
            self.dedupe_key = normalize_url(self.url)


@dataclass(frozen=True, slots=True)
class HttpMeta:
    status: int
    bytes: int
    content_type: str | None = None


@dataclass(frozen=True, slots=True)
class BlogDate:
    year: int
    month: int | None = None


@dataclass(frozen=True)
class ExtractedSignals:
    title: str | None = None
    description: str | None = None
    emails: tuple[str, ...] = ()
    phones: tuple[str, ...] = ()
    has_cart: bool = False
    ecommerce_hint: str | None = None
    packaging_keywords: tuple[str, ...] = ()
    rfq_phrases: tuple[str, ...] = ()
    review_hints: tuple[str, ...] = ()
    platform_hints: tuple[str, ...] = ()
    analytics_hints: tuple[str, ...] = ()
    careers_links: tuple[str, ...] = ()
    supplier_mentions: tuple[str, ...] = ()
    ops_terms: tuple[str, ...] = ()
    urgency_terms: tuple[str, ...] = ()
    blog_recentness: BlogDate | None = None
    demand: float = 0.0
    procurement: float = 0.0
    ops: float = 0.0
    reputation: float = 0.0
    urgency: float = 0.0

    def __post_init__(self) -> None:
        for name in SUBSCORES:
            object.__setattr__(self, name, clamp01(float(getattr(self, name))))

    @property
    def strong_intent(self) -> bool:
        return bool(self.rfq_phrases) or self.has_cart

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


SUBSCORES: tuple[str, ...] = ("demand", "procurement", "ops", "reputation", "urgency")


@dataclass(frozen=True)
class LeadCandidate:
    website: str
    signals: ExtractedSignals
    company_guess: str | None = None
    region: Region | None = None
    tagset: tuple[str, ...] = ()


@dataclass(frozen=True)
class CrawlResult:
    url: str
    status: CrawlStatus
    plan: str
    started_at: float
    finished_at: float
    reason: str | None = None
    http: HttpMeta | None = None
    lead: LeadCandidate | None = None
    raw_excerpt: str | None = None

    def __post_init__(self) -> None:
        if (self.status is CrawlStatus.OK) != (self.lead is not None):
            raise ValueError("CrawlResult: status 'ok' requires a lead and only 'ok' may carry one")

    @property
    def ok(self) -> bool:
        return self.status is CrawlStatus.OK


# ---------------- Scoring ----------------


@dataclass(frozen=True, slots=True)
class ScoringWeights:
    demand: float = 0.25
    procurement: float = 0.2
    ops: float = 0.2
    reputation: float = 0.2
    urgency: float = 0.15

    def __post_init__(self) -> None:
        for name in SUBSCORES:
            v = float(getattr(self, name))
            if v < 0:
                raise ValueError(f"ScoringWeights.{name} must be non-negative; got {v}")
            object.__setattr__(self, name, v)

    def normalized(self) -> dict[str, float]:
        """Weights rescaled to sum to 1 (all zero stays all zero)."""
        total = sum(getattr(self, n) for n in SUBSCORES)
        if total <= 0:
            return {n: 0.0 for n in SUBSCORES}
        return {n: getattr(self, n) / total for n in SUBSCORES}


@dataclass(frozen=True)
class LeadRouteDecision:
    tier: LeadTier
    score: int  # 0..100
    match: float  # 0..1
    reasons: tuple[str, ...]
    preferred_channels: tuple[str, ...]
    next_actions: tuple[str, ...]


# ---------------- Sweep layer ----------------


@dataclass(slots=True)
class TaskEnvelope:
    type: TaskType
    org_id: str
    plan: str
    priority: int  # 1 (highest) .. 10 (lowest)
    payload: dict[str, Any] = field(default_factory=dict)
    dedupe_key: str | None = None
    not_before: float | None = None  # epoch seconds
    created_at: float = 0.0
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self) -> None:
        self.type = TaskType(self.type)
        self.priority = int(clamp(int(self.priority), 1, 10))

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["type"] = self.type.value
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> TaskEnvelope:
        return cls(**d)


@dataclass(frozen=True, slots=True)
class QuietHours:
    start: int  # local hour, 0..23
    end: int


@dataclass(frozen=True)
class LeadQuery:
    product_keywords: tuple[str, ...] = ("packaging",)
    geos: tuple[str, ...] = ()
    intent_hints: tuple[str, ...] = ()
    exclude_brands: tuple[str, ...] = ()


@dataclass(frozen=True)
class Cadence:
    daily_discovery_target: int | None = None
    daily_refresh_target: int | None = None
    quiet_hours: QuietHours | None = None


@dataclass(frozen=True)
class OrgCaps:
    max_daily_tasks: int | None = None
    max_concurrent_tasks: int | None = None


@dataclass(frozen=True)
class OrgProfile:
    org_id: str
    plan: str
    timezone: str = "UTC"
    lead_query: LeadQuery | None = None
    cadence: Cadence = field(default_factory=Cadence)
    caps: OrgCaps = field(default_factory=OrgCaps)
    tags: tuple[str, ...] = ()


__all__ = [
    "CrawlStatus",
    "SeedSource",
    "TaskType",
    "LeadTier",
    "Region",
    "SearchQuery",
    "SearchResult",
    "LeadSeed",
    "UserDiscoveryInput",
    "CrawlTask",
    "HttpMeta",
    "BlogDate",
    "ExtractedSignals",
    "SUBSCORES",
    "LeadCandidate",
    "CrawlResult",
    "ScoringWeights",
    "LeadRouteDecision",
    "TaskEnvelope",
    "QuietHours",
    "LeadQuery",
    "Cadence",
    "OrgCaps",
    "OrgProfile",
]
