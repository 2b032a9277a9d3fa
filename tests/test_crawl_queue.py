# tests/test_crawl_queue.py
from __future__ import annotations

from leadscout.crawl.queue import CrawlTaskQueue
from leadscout.models import CrawlTask


def _task(url: str, priority: float = 0.0, **kw) -> CrawlTask:
    return CrawlTask(url=url, plan="free", priority=priority, **kw)


def test_duplicate_normalized_url_is_rejected(clock):
    q = CrawlTaskQueue(seen_max=100, clock=clock)

    assert q.push(_task("https://Acme.ca/page#top")) is True
    assert q.push(_task("https://acme.ca/page")) is False
    assert len(q) == 1


def test_dedupe_survives_dispatch(clock):
    q = CrawlTaskQueue(seen_max=100, clock=clock)
    q.push(_task("https://acme.ca/"))
    assert q.pop_ready() is not None

    assert q.push(_task("https://acme.ca/")) is False
    assert q.has_seen("https://acme.ca/")


def test_priority_order_descending(clock):
    q = CrawlTaskQueue(seen_max=100, clock=clock)
    for p in (10, 50, 30):
        q.push(_task(f"https://h{p}.test/", priority=p))

    order = [q.pop_ready().priority for _ in range(3)]
    assert order == [50, 30, 10]
    assert q.pop_ready() is None


def test_fifo_among_equal_priorities(clock):
    q = CrawlTaskQueue(seen_max=100, clock=clock)
    urls = [f"https://same{i}.test/" for i in range(5)]
    for u in urls:
        q.push(_task(u, priority=7))

    assert [q.pop_ready().url for _ in urls] == urls


def test_not_before_holds_task_without_blocking_others(clock):
    q = CrawlTaskQueue(seen_max=100, clock=clock)
    q.push(_task("https://later.test/", priority=99, not_before=clock() + 60))
    q.push(_task("https://now.test/", priority=1))

    assert q.pop_ready().url == "https://now.test/"
    assert q.pop_ready() is None
    assert q.next_due_at() == clock() + 60

    clock.advance(60)
    assert q.pop_ready().url == "https://later.test/"


def test_seen_set_is_bounded_lru(clock):
    q = CrawlTaskQueue(seen_max=2, clock=clock)
    for u in ("https://a.test/", "https://b.test/", "https://c.test/"):
        q.push(_task(u))
        q.pop_ready()

    # oldest key evicted; the two most recent are still remembered
    assert q.push(_task("https://a.test/")) is True
    assert q.push(_task("https://c.test/")) is False


def test_queued_key_never_evicted_while_waiting(clock):
    q = CrawlTaskQueue(seen_max=1, clock=clock)
    q.push(_task("https://waiting.test/"))
    q.push(_task("https://other.test/"))

    # "waiting" fell out of the LRU but is still queued
    assert q.push(_task("https://waiting.test/")) is False
    assert len(q) == 2
