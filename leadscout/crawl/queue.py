# leadscout/crawl/queue.py
from __future__ import annotations

import heapq
import itertools
import threading
import time
from collections import OrderedDict
from collections.abc import Callable

from leadscout.config import app_config
from leadscout.models import CrawlTask


class CrawlTaskQueue:
    """
    Worker-owned crawl queue.

    Ordering: descending priority, FIFO among equal priorities. A task whose
    not_before is in the future is held back but does not block lower-priority
    work that is already due.

    Dedupe: a push whose dedupe_key was seen before (queued, in flight or
    already crawled) is a no-op. The seen set is an LRU capped at seen_max
    entries; keys still in the queue are tracked separately so eviction can
    never let a duplicate in while the original is waiting.
    """

    def __init__(
        self,
        *,
        seen_max: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.seen_max = seen_max if seen_max is not None else app_config.crawl.seen_max
        self._clock = clock
        self._heap: list[tuple[float, int, CrawlTask]] = []
        self._seq = itertools.count()
        self._seen: OrderedDict[str, None] = OrderedDict()
        self._queued_keys: set[str] = set()
        self._lock = threading.Lock()

    def push(self, task: CrawlTask) -> bool:
        """Queue the task. Returns False when its dedupe key was already seen."""
        key = task.dedupe_key
        with self._lock:
            if key in self._queued_keys or key in self._seen:
                return False
            self._remember(key)
            self._queued_keys.add(key)
            heapq.heappush(self._heap, (-float(task.priority), next(self._seq), task))
            return True

    def pop_ready(self, now: float | None = None) -> CrawlTask | None:
        """Highest-priority task whose not_before has passed, or None."""
        now = self._clock() if now is None else now
        with self._lock:
            held: list[tuple[float, int, CrawlTask]] = []
            found: CrawlTask | None = None
            while self._heap:
                item = heapq.heappop(self._heap)
                task = item[2]
                if task.not_before is None or task.not_before <= now:
                    found = task
                    break
                held.append(item)
            for item in held:
                heapq.heappush(self._heap, item)
            if found is not None:
                self._queued_keys.discard(found.dedupe_key)
            return found

    def next_due_at(self) -> float | None:
        """Earliest not_before among waiting tasks (None if empty or something is due now)."""
        with self._lock:
            if not self._heap:
                return None
            times = [t.not_before for _, _, t in self._heap]
            if any(nb is None for nb in times):
                return None
            return min(times)  # type: ignore[type-var]

    def has_seen(self, key: str) -> bool:
        with self._lock:
            return key in self._seen or key in self._queued_keys

    def pending(self) -> list[CrawlTask]:
        """Snapshot of queued tasks in dispatch order (ignores not_before)."""
        with self._lock:
            return [t for _, _, t in sorted(self._heap)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._heap)

    def _remember(self, key: str) -> None:
        self._seen[key] = None
        self._seen.move_to_end(key)
        while len(self._seen) > self.seen_max:
            self._seen.popitem(last=False)


__all__ = ["CrawlTaskQueue"]
