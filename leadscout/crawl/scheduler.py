# leadscout/crawl/scheduler.py
"""
Discovery front half of the crawl pipeline.

discover_and_schedule(intent, plan):

  build_queries -> provider fan-out (N threads, round-robin providers)
  -> merge_seeds (host dedupe, social/PDF/denylist filter, score, cap)
  -> seeds_to_tasks -> worker.enqueue -> worker.start

A failing provider call is logged and skipped; it never aborts the batch.
Malformed result URLs are dropped during seed construction.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from collections import deque
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor

from leadscout.config import BucketLimit, CrawlConfig, app_config, plan_caps
from leadscout.exceptions import ProviderError
from leadscout.models import CrawlTask, SearchQuery, SearchResult, UserDiscoveryInput
from leadscout.providers import SearchProvider
from leadscout.queueing.rate_limit import TokenBucketLimiter

from .queries import build_queries
from .seeds import default_denylist, merge_seeds, seeds_to_tasks
from .worker import CrawlWorker

log = logging.getLogger(__name__)


class CrawlScheduler:
    def __init__(
        self,
        worker: CrawlWorker,
        providers: Sequence[SearchProvider],
        *,
        crawl_config: CrawlConfig | None = None,
        autostart: bool = True,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self.worker = worker
        self.providers = list(providers)
        self.crawl_config = crawl_config or app_config.crawl
        self.autostart = autostart
        self._sleep = sleep
        self._rng = rng or random.Random()
        # per-provider max_per_minute buckets, created on first use
        self._meter = TokenBucketLimiter(clock=clock)

    # ---- provider selection ----

    def usable_providers(self, plan: str) -> list[SearchProvider]:
        """Every provider on paid plans; free-tier eligible ones only otherwise."""
        caps = plan_caps(plan)
        if caps.enable_paid_providers:
            return list(self.providers)
        return [p for p in self.providers if p.is_free_tier_eligible]

    # ---- fan-out ----

    def search_all(self, queries: Sequence[SearchQuery], plan: str) -> list[SearchResult]:
        """
        Run every query against one provider each.

        max_parallel_searches threads pull from a shared deque; thread k
        starts its provider rotation at index k. Results come back grouped
        in query order regardless of which thread ran the query.
        """
        providers = self.usable_providers(plan)
        if not providers or not queries:
            if not providers:
                log.warning("no search providers usable on plan %s", plan)
            return []

        pending: deque[tuple[int, SearchQuery]] = deque(enumerate(queries))
        lock = threading.Lock()
        by_index: dict[int, list[SearchResult]] = {}
        n_workers = max(1, min(plan_caps(plan).max_parallel_searches, len(queries)))

        def run(k: int) -> None:
            turn = k
            while True:
                with lock:
                    if not pending:
                        return
                    idx, query = pending.popleft()
                provider = providers[turn % len(providers)]
                turn += 1
                found = self._call(provider, query)
                with lock:
                    by_index[idx] = found

        with ThreadPoolExecutor(max_workers=n_workers, thread_name_prefix="search") as pool:
            futures = [pool.submit(run, k) for k in range(n_workers)]
            for f in futures:
                f.result()

        out: list[SearchResult] = []
        for idx in sorted(by_index):
            out.extend(by_index[idx])
        return out

    def _call(self, provider: SearchProvider, query: SearchQuery) -> list[SearchResult]:
        self._wait_for_quota(provider)
        try:
            return list(provider.search(query))
        except ProviderError as exc:
            log.warning("provider %s failed for %r: %s", provider.id, query.text, exc)
            return []
        except Exception as exc:  # noqa: BLE001
            log.warning(
                "provider %s raised for %r: %s", provider.id, query.text, exc, exc_info=True
            )
            return []
        finally:
            cfg = self.crawl_config
            self._sleep(self._rng.uniform(cfg.pacing_min_ms, cfg.pacing_max_ms) / 1000.0)

    def _wait_for_quota(self, provider: SearchProvider) -> None:
        mpm = provider.max_per_minute
        if not mpm:
            return
        key = f"provider:{provider.id}"
        if not self._meter.has_limit(key):
            self._meter.set_limit(key, BucketLimit(rate=mpm / 60.0, burst=float(mpm)))
        wait_ms = self._meter.reserve(key)
        while wait_ms > 0:
            log.debug("provider %s metered; waiting %dms", provider.id, wait_ms)
            self._sleep(wait_ms / 1000.0)
            wait_ms = self._meter.reserve(key)

    # ---- entry point ----

    def discover_and_schedule(self, intent: UserDiscoveryInput, plan: str) -> list[CrawlTask]:
        """Search, seed and enqueue; returns the tasks the worker accepted."""
        caps = plan_caps(plan)
        queries = build_queries(intent, max_queries=self.crawl_config.max_queries)
        results = self.search_all(queries, plan)

        denylist = default_denylist(
            intent.banned_competitors,
            avoid_mega_suppliers=intent.avoid_mega_suppliers,
        )
        seeds = merge_seeds(results, denylist=denylist, max_seeds=caps.max_seed_urls)
        tasks = seeds_to_tasks(seeds, plan, caps)
        accepted = [t for t in tasks if self.worker.enqueue(t)]

        log.info(
            "discovery plan=%s queries=%d results=%d seeds=%d tasks=%d",
            plan,
            len(queries),
            len(results),
            len(seeds),
            len(accepted),
        )
        if self.autostart:
            self.worker.start()
        return accepted


__all__ = ["CrawlScheduler"]
