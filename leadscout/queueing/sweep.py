# leadscout/queueing/sweep.py
"""
Per-org sweep loop.

One daemon thread wakes every sweep_interval (+/- jitter) and, for each
active org, decides how much discovery and refresh work should exist so far
today and tops the task queue up to that level:

  quiet hours  -> free orgs get no heavy (discover) work
  backlog      -> skip the org when queued > backlog_factor * concurrency cap
  daily cap    -> skip once the org's UTC-day counter reaches its cap
  rate limit   -> skip when the plan bucket has no token (deferred, not an error)
  burst size   -> floor(target * fraction_of_local_day) - queued estimate,
                  clamped to the per-tick cap, staggered via not_before

Given the same clock, org list and queue state, a sweep makes the same
decisions; dedupe keys absorb repeats across restarts.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import asdict, dataclass, replace
from datetime import UTC, datetime
from typing import Any, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from leadscout.config import PAID_PLANS, SweepConfig, app_config
from leadscout.models import LeadQuery, OrgProfile, QuietHours, TaskEnvelope, TaskType
from leadscout.utils import clamp, stable_hash

from .rate_limit import DailyCounter, TokenBucketLimiter, compute_backoff, jittered
from .task_queue import TaskQueue

log = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60
DEFAULT_INTENT_HINTS: tuple[str, ...] = ("wholesale", "distributor", "rfq", "supplier")
DEFAULT_GEOS: tuple[str, ...] = ("US",)
REFRESH_PAYLOAD: dict[str, Any] = {"pick": "oldest", "batch": 10}
DISCOVER_PRIORITY_FREE = 6
DISCOVER_PRIORITY_PAID = 4
REFRESH_PRIORITY = 7


# ---- Collaborators ----
class OrgStore(Protocol):
    def list_active_orgs(self) -> list[OrgProfile]: ...

    def get_org(self, org_id: str) -> OrgProfile | None: ...


class InMemoryOrgStore:
    """Org list held in memory; set_org_meta keeps the last meta per org."""

    def __init__(self, orgs: Iterable[OrgProfile] = ()) -> None:
        self._orgs: dict[str, OrgProfile] = {o.org_id: o for o in orgs}
        self.meta: dict[str, dict[str, Any]] = {}

    def list_active_orgs(self) -> list[OrgProfile]:
        return list(self._orgs.values())

    def get_org(self, org_id: str) -> OrgProfile | None:
        return self._orgs.get(org_id)

    def set_org_meta(self, org_id: str, meta: Mapping[str, Any]) -> None:
        self.meta.setdefault(org_id, {}).update(meta)


class RateLimiter(Protocol):
    def reserve(self, key: str, cost: float = 1.0) -> int: ...


# ---- Pure helpers ----
def is_in_quiet_hours(local_hour: int, quiet: QuietHours | None) -> bool:
    """[start, end) in local hours; start > end wraps past midnight; start == end is always quiet."""
    if quiet is None:
        return False
    start, end = quiet.start, quiet.end
    if start == end:
        return True
    if start < end:
        return start <= local_hour < end
    return local_hour >= start or local_hour < end


def local_time(ts: float, tz_name: str | None) -> datetime:
    try:
        tz = ZoneInfo(tz_name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        log.warning("unknown timezone %r; using UTC", tz_name)
        tz = UTC
    return datetime.fromtimestamp(ts, tz)


def rotate_query(base: LeadQuery, i: int) -> LeadQuery:
    """The i-th variant of an org's query: one intent hint and one geo, round-robin."""
    intents = base.intent_hints or DEFAULT_INTENT_HINTS
    geos = base.geos or DEFAULT_GEOS
    return replace(base, intent_hints=(intents[i % len(intents)],), geos=(geos[i % len(geos)],))


def query_payload(q: LeadQuery) -> dict[str, Any]:
    return {k: list(v) for k, v in asdict(q).items()}


def stagger_ms(i: int, key: str, base_ms: int) -> int:
    """i * base_ms, +/- 50% derived from the dedupe key (deterministic)."""
    center = i * base_ms
    unit = int(stable_hash([key, i]), 16) / float(16**12)  # [0, 1)
    return max(0, int(center * (1.0 + (unit * 2.0 - 1.0) * 0.5)))


@dataclass(frozen=True)
class OrgSweepOutcome:
    org_id: str
    skipped: str | None = None  # reason when nothing was considered
    discover: int = 0
    refresh: int = 0


# ---- Scheduler ----
class OrgSweepScheduler:
    def __init__(
        self,
        queue: TaskQueue,
        orgs: OrgStore,
        *,
        limiter: RateLimiter | None = None,
        counter: DailyCounter | None = None,
        config: SweepConfig | None = None,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
    ) -> None:
        self.queue = queue
        self.orgs = orgs
        self.config = config or app_config.sweep
        self.limiter: RateLimiter = limiter or TokenBucketLimiter.for_plans()
        self.counter = counter or DailyCounter(clock=clock)
        self._clock = clock
        self._rng = rng or random.Random()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    # ---- loop control ----

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="org-sweep", daemon=True)
        self._thread.start()
        log.info("org sweep scheduler started")

    def stop(self) -> None:
        self._stop.set()
        log.info("org sweep scheduler stopped")

    def join(self, timeout: float | None = None) -> None:
        t = self._thread
        if t is not None:
            t.join(timeout)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()

    def _run(self) -> None:
        cfg = self.config
        delay = cfg.initial_delay_ms / 1000.0
        failures = 0
        # the next wait starts only after the previous sweep returned
        while not self._stop.wait(delay):
            try:
                self.sweep()
                failures = 0
            except Exception:  # noqa: BLE001
                failures += 1
                log.exception("org sweep failed (consecutive failures: %d)", failures)
            delay = jittered(cfg.sweep_interval_ms / 1000.0, cfg.jitter_pct, self._rng)
            if failures:
                delay += compute_backoff(failures, base=1.0, cap=60.0, jitter="equal")

    # ---- one tick ----

    def sweep(self, now: float | None = None) -> list[OrgSweepOutcome]:
        at = self._clock() if now is None else now
        orgs = self.orgs.list_active_orgs()
        log.debug("sweep over %d orgs", len(orgs))
        outcomes: list[OrgSweepOutcome] = []
        for org in orgs:
            try:
                outcomes.append(self._sweep_org(org, at))
            except Exception:  # noqa: BLE001
                log.exception("sweep failed for org %s", org.org_id)
                outcomes.append(OrgSweepOutcome(org.org_id, skipped="error"))
        enq = sum(o.discover + o.refresh for o in outcomes)
        if enq:
            log.info("sweep enqueued %d envelopes across %d orgs", enq, len(orgs))
        return outcomes

    def _sweep_org(self, org: OrgProfile, at: float) -> OrgSweepOutcome:
        cfg = self.config
        local = local_time(at, org.timezone)
        in_quiet = is_in_quiet_hours(local.hour, org.cadence.quiet_hours)
        allow_heavy = not in_quiet or org.plan != "free"

        queued = self._queued(org.org_id)
        ccap = _first(org.caps.max_concurrent_tasks, cfg.max_concurrent_per_org)
        if queued > cfg.backlog_factor * ccap:
            log.debug("skip org %s: backlog %d > %.1f x %d", org.org_id, queued, cfg.backlog_factor, ccap)
            return OrgSweepOutcome(org.org_id, skipped="backlog")

        dcap = _first(org.caps.max_daily_tasks, cfg.max_daily_per_org)
        done_today = self.counter.get(org.org_id, now=at)
        if done_today >= dcap:
            log.debug("skip org %s: daily cap %d reached", org.org_id, dcap)
            return OrgSweepOutcome(org.org_id, skipped="daily-cap")

        wait_ms = self.limiter.reserve(org.plan, 1)
        if wait_ms > 0:
            log.debug("skip org %s: plan %s rate limited for %dms", org.org_id, org.plan, wait_ms)
            return OrgSweepOutcome(org.org_id, skipped="rate-limited")

        fraction = (local.hour * 60 + local.minute) / MINUTES_PER_DAY
        queued_estimate = int(queued * cfg.queued_estimate_factor)
        want_discover = _first(org.cadence.daily_discovery_target, cfg.daily_discovery_target)
        want_refresh = _first(org.cadence.daily_refresh_target, cfg.daily_refresh_target)
        discover_n = int(clamp(int(want_discover * fraction) - queued_estimate, 0, cfg.max_discover_per_tick))
        refresh_n = int(clamp(int(want_refresh * fraction) - queued_estimate, 0, cfg.max_refresh_per_tick))

        room = dcap - done_today
        added_discover = 0
        added_refresh = 0
        if allow_heavy and discover_n > 0:
            added_discover = self._discover_burst(org, min(discover_n, room), at)
        if org.plan in PAID_PLANS and refresh_n > 0 and room - added_discover > 0:
            added_refresh = self._refresh_burst(org, min(refresh_n, room - added_discover), at)

        if added_discover + added_refresh:
            self.counter.incr(org.org_id, added_discover + added_refresh, now=at)
        self._set_meta(org.org_id, {"last_discovery": at})
        return OrgSweepOutcome(org.org_id, discover=added_discover, refresh=added_refresh)

    def _discover_burst(self, org: OrgProfile, n: int, at: float) -> int:
        base = org.lead_query or LeadQuery()
        priority = DISCOVER_PRIORITY_FREE if org.plan == "free" else DISCOVER_PRIORITY_PAID
        added = 0
        for i in range(n):
            query = query_payload(rotate_query(base, i))
            key = f"discover:{org.org_id}:{stable_hash(query)}"
            env = TaskEnvelope(
                type=TaskType.DISCOVER,
                org_id=org.org_id,
                plan=org.plan,
                priority=priority,
                payload={"query": query},
                dedupe_key=key,
                not_before=at + stagger_ms(i, key, self.config.stagger_ms) / 1000.0,
                created_at=at,
            )
            added += self._push(env)
        return added

    def _refresh_burst(self, org: OrgProfile, n: int, at: float) -> int:
        # One envelope per org per hour; its batch covers the refresh volume.
        if n <= 0:
            return 0
        env = TaskEnvelope(
            type=TaskType.REFRESH,
            org_id=org.org_id,
            plan=org.plan,
            priority=REFRESH_PRIORITY,
            payload=dict(REFRESH_PAYLOAD),
            dedupe_key=f"refresh:{org.org_id}:{int(at // 3600)}",
            created_at=at,
        )
        return self._push(env)

    # ---- on-demand scheduling ----

    def schedule_immediate_discovery(
        self,
        org_id: str,
        override: Mapping[str, Iterable[str]] | None = None,
        priority: int = DISCOVER_PRIORITY_PAID,
    ) -> bool:
        """Queue one discovery now with the org's query, optionally overridden field by field."""
        org = self._require_org(org_id)
        base = org.lead_query or LeadQuery()
        if override:
            base = replace(base, **{k: tuple(v) for k, v in override.items()})
        query = query_payload(base)
        env = TaskEnvelope(
            type=TaskType.DISCOVER,
            org_id=org.org_id,
            plan=org.plan,
            priority=priority,
            payload={"query": query},
            dedupe_key=f"discover:{org.org_id}:{stable_hash(query)}",
            created_at=self._clock(),
        )
        return bool(self._push(env))

    def schedule_immediate_crawl(
        self,
        org_id: str,
        domain: str,
        url: str | None = None,
        priority: int = 3,
    ) -> bool:
        """Queue a crawl of a domain found out-of-band."""
        org = self._require_org(org_id)
        env = TaskEnvelope(
            type=TaskType.CRAWL,
            org_id=org.org_id,
            plan=org.plan,
            priority=priority,
            payload={"domain": domain, "url": url},
            dedupe_key=f"crawl:{org.org_id}:{domain.strip().lower()}",
            created_at=self._clock(),
        )
        return bool(self._push(env))

    # ---- internals ----

    def _require_org(self, org_id: str) -> OrgProfile:
        org = self.orgs.get_org(org_id)
        if org is None:
            raise LookupError(f"org not found: {org_id}")
        return org

    def _push(self, env: TaskEnvelope) -> int:
        accepted = self.queue.push(env)
        # sinks that return None give no dedupe signal; count the push
        return 0 if accepted is False else 1

    def _queued(self, org_id: str) -> int:
        size = getattr(self.queue, "size", None)
        if size is None:
            return 0
        try:
            return int(size(org_id))
        except Exception:  # noqa: BLE001
            log.debug("queue size unavailable for %s", org_id, exc_info=True)
            return 0

    def _set_meta(self, org_id: str, meta: dict[str, Any]) -> None:
        setter = getattr(self.orgs, "set_org_meta", None)
        if setter is None:
            return
        try:
            setter(org_id, meta)
        except Exception:  # noqa: BLE001
            log.warning("set_org_meta failed for %s", org_id, exc_info=True)


def _first(value: int | None, default: int) -> int:
    return default if value is None else value


__all__ = [
    "OrgSweepScheduler",
    "OrgSweepOutcome",
    "OrgStore",
    "InMemoryOrgStore",
    "RateLimiter",
    "is_in_quiet_hours",
    "local_time",
    "rotate_query",
    "stagger_ms",
]
