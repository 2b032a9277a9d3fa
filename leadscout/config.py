from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def _getenv_int(name: str, default: int) -> int:
    v = os.getenv(name, str(default)).strip()
    try:
        return int(v)
    except ValueError as err:
        raise ValueError(f"Environment variable {name} must be an integer; got {v!r}") from err


def _getenv_float(name: str, default: float) -> float:
    v = os.getenv(name, str(default)).strip()
    try:
        return float(v)
    except ValueError as err:
        raise ValueError(f"Environment variable {name} must be a number; got {v!r}") from err


def _getenv_str(name: str, default: str) -> str:
    return os.getenv(name, default).strip()


def _getenv_list_str(name: str, default_csv: str) -> list[str]:
    raw = os.getenv(name, default_csv).strip()
    out: list[str] = []
    for tok in (t.strip() for t in raw.split(",")):
        if tok:
            out.append(tok)
    return out


# Load .env from project root if present
ROOT = Path(__file__).resolve().parents[1]
load_dotenv(ROOT / ".env", override=False)

BOT_NAME = "LeadScoutBot"
CONTACT_URL = "https://leadscout.example/bot"


def _getenv_user_agent(env_var: str, default: str) -> str:
    ua = os.getenv(env_var, default).strip()
    if BOT_NAME not in ua:
        ua = f"{BOT_NAME} {ua}"
    return ua


# -------------------------------
# Plans
# -------------------------------
PLANS: tuple[str, ...] = ("free", "pro", "scale")
PAID_PLANS: frozenset[str] = frozenset({"pro", "scale"})


@dataclass(frozen=True)
class PlanCaps:
    max_parallel_searches: int
    max_seed_urls: int
    max_crawl_bytes: int
    timeout_ms: int
    enable_pii: bool
    enable_paid_providers: bool


DEFAULT_PLAN_CAPS: dict[str, PlanCaps] = {
    "free": PlanCaps(
        max_parallel_searches=2,
        max_seed_urls=50,
        max_crawl_bytes=750_000,
        timeout_ms=10_000,
        enable_pii=False,
        enable_paid_providers=False,
    ),
    "pro": PlanCaps(
        max_parallel_searches=6,
        max_seed_urls=500,
        max_crawl_bytes=2_000_000,
        timeout_ms=15_000,
        enable_pii=True,
        enable_paid_providers=True,
    ),
    "scale": PlanCaps(
        max_parallel_searches=10,
        max_seed_urls=1000,
        max_crawl_bytes=2_000_000,
        timeout_ms=15_000,
        enable_pii=True,
        enable_paid_providers=True,
    ),
}


def plan_caps(plan: str) -> PlanCaps:
    try:
        return DEFAULT_PLAN_CAPS[plan]
    except KeyError:
        raise ValueError(f"Unknown plan {plan!r}; expected one of {', '.join(PLANS)}") from None


# -------------------------------
# Fetch config (constants, env-overridable)
# -------------------------------
FETCH_USER_AGENT: str = _getenv_user_agent(
    "FETCH_USER_AGENT",
    f"{BOT_NAME}/0.3 (+{CONTACT_URL}; polite)",
)
FETCH_DEFAULT_TIMEOUT_MS: int = _getenv_int("FETCH_DEFAULT_TIMEOUT_MS", 15_000)
FETCH_DEFAULT_MAX_BYTES: int = _getenv_int("FETCH_DEFAULT_MAX_BYTES", 1_500_000)
FETCH_PER_HOST_DELAY_MS: int = _getenv_int("FETCH_PER_HOST_DELAY_MS", 1500)
FETCH_MAX_REDIRECTS: int = _getenv_int("FETCH_MAX_REDIRECTS", 5)
FETCH_ALLOWED_CONTENT_TYPES: list[str] = _getenv_list_str(
    "FETCH_ALLOWED_CONTENT_TYPES",
    "text/html,application/xhtml+xml",
)

# -------------------------------
# Crawl / discovery config
# -------------------------------
CRAWL_MAX_QUERIES: int = _getenv_int("CRAWL_MAX_QUERIES", 50)
CRAWL_PACING_MIN_MS: int = _getenv_int("CRAWL_PACING_MIN_MS", 200)
CRAWL_PACING_MAX_MS: int = _getenv_int("CRAWL_PACING_MAX_MS", 400)
CRAWL_SEEN_MAX: int = _getenv_int("CRAWL_SEEN_MAX", 100_000)
CRAWL_IDLE_POLL_MS: int = _getenv_int("CRAWL_IDLE_POLL_MS", 150)
CRAWL_EXCERPT_PAID_CHARS: int = _getenv_int("CRAWL_EXCERPT_PAID_CHARS", 2000)
CRAWL_EXCERPT_FREE_CHARS: int = _getenv_int("CRAWL_EXCERPT_FREE_CHARS", 400)
LEADSCOUT_DENYLIST: list[str] = _getenv_list_str(
    "LEADSCOUT_DENYLIST",
    "uline.com,veritivcorp.com,staples.com,grainger.com,fastenal.com,amazon.com",
)
LEADSCOUT_LEXICON_PATH: str = _getenv_str("LEADSCOUT_LEXICON_PATH", "")

# -------------------- Search providers --------------------
# Each adapter is enabled only when its key(s) are present; see providers_from_env().
SEARCH_TIMEOUT_S: float = _getenv_float("SEARCH_TIMEOUT_S", 8.0)
SEARCH_RESULTS_PER_QUERY: int = _getenv_int("SEARCH_RESULTS_PER_QUERY", 10)
# 0 = no per-provider metering
SEARCH_MAX_PER_MINUTE: int = _getenv_int("SEARCH_MAX_PER_MINUTE", 60)
BING_DEFAULT_ENDPOINT = "https://api.bing.microsoft.com/v7.0/search"


@dataclass(frozen=True)
class FetchConfig:
    user_agent: str
    default_timeout_ms: int
    default_max_bytes: int
    per_host_delay_ms: int
    max_redirects: int
    allowed_content_types: tuple[str, ...]


@dataclass(frozen=True)
class CrawlConfig:
    max_queries: int
    pacing_min_ms: int
    pacing_max_ms: int
    seen_max: int
    idle_poll_ms: int
    excerpt_paid_chars: int
    excerpt_free_chars: int
    denylist: tuple[str, ...]
    lexicon_path: str


@dataclass(frozen=True)
class BucketLimit:
    rate: float  # tokens per second
    burst: float


@dataclass(frozen=True)
class RateLimitConfig:
    plans: dict[str, BucketLimit]


@dataclass(frozen=True)
class SweepConfig:
    sweep_interval_ms: int
    jitter_pct: float
    initial_delay_ms: int
    daily_discovery_target: int
    daily_refresh_target: int
    max_concurrent_per_org: int
    max_daily_per_org: int
    backlog_factor: float
    # Share of an org's observed backlog assumed to count toward today's target.
    queued_estimate_factor: float
    max_discover_per_tick: int
    max_refresh_per_tick: int
    stagger_ms: int


@dataclass(frozen=True)
class QueueConfig:
    redis_url: str
    key_prefix: str


@dataclass(frozen=True)
class AppConfig:
    fetch: FetchConfig
    crawl: CrawlConfig
    rate: RateLimitConfig
    sweep: SweepConfig
    queue: QueueConfig


def load_settings() -> AppConfig:
    fetch = FetchConfig(
        user_agent=FETCH_USER_AGENT,
        default_timeout_ms=FETCH_DEFAULT_TIMEOUT_MS,
        default_max_bytes=FETCH_DEFAULT_MAX_BYTES,
        per_host_delay_ms=FETCH_PER_HOST_DELAY_MS,
        max_redirects=FETCH_MAX_REDIRECTS,
        allowed_content_types=tuple(FETCH_ALLOWED_CONTENT_TYPES),
    )
    crawl = CrawlConfig(
        max_queries=CRAWL_MAX_QUERIES,
        pacing_min_ms=CRAWL_PACING_MIN_MS,
        pacing_max_ms=CRAWL_PACING_MAX_MS,
        seen_max=CRAWL_SEEN_MAX,
        idle_poll_ms=CRAWL_IDLE_POLL_MS,
        excerpt_paid_chars=CRAWL_EXCERPT_PAID_CHARS,
        excerpt_free_chars=CRAWL_EXCERPT_FREE_CHARS,
        denylist=tuple(h.lower() for h in LEADSCOUT_DENYLIST),
        lexicon_path=LEADSCOUT_LEXICON_PATH,
    )
    rate = RateLimitConfig(
        plans={
            "free": BucketLimit(
                rate=_getenv_float("RATE_FREE_PER_SEC", 0.5),
                burst=_getenv_float("RATE_FREE_BURST", 3),
            ),
            "pro": BucketLimit(
                rate=_getenv_float("RATE_PRO_PER_SEC", 2.0),
                burst=_getenv_float("RATE_PRO_BURST", 10),
            ),
            "scale": BucketLimit(
                rate=_getenv_float("RATE_SCALE_PER_SEC", 5.0),
                burst=_getenv_float("RATE_SCALE_BURST", 20),
            ),
        }
    )
    sweep = SweepConfig(
        sweep_interval_ms=_getenv_int("SWEEP_INTERVAL_MS", 20_000),
        jitter_pct=_getenv_float("SWEEP_JITTER_PCT", 0.25),
        initial_delay_ms=_getenv_int("SWEEP_INITIAL_DELAY_MS", 2000),
        daily_discovery_target=_getenv_int("SWEEP_DAILY_DISCOVERY_TARGET", 60),
        daily_refresh_target=_getenv_int("SWEEP_DAILY_REFRESH_TARGET", 40),
        max_concurrent_per_org=_getenv_int("SWEEP_MAX_CONCURRENT_PER_ORG", 8),
        max_daily_per_org=_getenv_int("SWEEP_MAX_DAILY_PER_ORG", 300),
        backlog_factor=_getenv_float("SWEEP_BACKLOG_FACTOR", 2.0),
        queued_estimate_factor=_getenv_float("SWEEP_QUEUED_ESTIMATE_FACTOR", 0.5),
        max_discover_per_tick=_getenv_int("SWEEP_MAX_DISCOVER_PER_TICK", 20),
        max_refresh_per_tick=_getenv_int("SWEEP_MAX_REFRESH_PER_TICK", 10),
        stagger_ms=_getenv_int("SWEEP_STAGGER_MS", 2000),
    )
    queue = QueueConfig(
        redis_url=_getenv_str("REDIS_URL", "redis://127.0.0.1:6379/0"),
        key_prefix=_getenv_str("TASK_QUEUE_PREFIX", "leadscout:tasks"),
    )
    return AppConfig(fetch=fetch, crawl=crawl, rate=rate, sweep=sweep, queue=queue)


app_config: AppConfig = load_settings()

__all__ = [
    "PLANS",
    "PAID_PLANS",
    "PlanCaps",
    "DEFAULT_PLAN_CAPS",
    "plan_caps",
    "FetchConfig",
    "CrawlConfig",
    "BucketLimit",
    "RateLimitConfig",
    "SweepConfig",
    "QueueConfig",
    "AppConfig",
    "load_settings",
    "app_config",
    "FETCH_USER_AGENT",
    "FETCH_DEFAULT_TIMEOUT_MS",
    "FETCH_DEFAULT_MAX_BYTES",
    "FETCH_PER_HOST_DELAY_MS",
    "FETCH_MAX_REDIRECTS",
    "FETCH_ALLOWED_CONTENT_TYPES",
    "CRAWL_MAX_QUERIES",
    "CRAWL_SEEN_MAX",
    "LEADSCOUT_DENYLIST",
    "LEADSCOUT_LEXICON_PATH",
    "SEARCH_TIMEOUT_S",
    "SEARCH_RESULTS_PER_QUERY",
    "SEARCH_MAX_PER_MINUTE",
    "BING_DEFAULT_ENDPOINT",
]
