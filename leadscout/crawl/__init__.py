# leadscout/crawl/__init__.py
"""
Crawl orchestration: query construction, provider fan-out, seeding and the
polite fetch worker.
"""

from .queries import build_queries
from .queue import CrawlTaskQueue
from .scheduler import CrawlScheduler
from .seeds import Denylist, default_denylist, merge_seeds, seeds_to_tasks
from .worker import CrawlWorker, WorkerState

__all__ = [
    "build_queries",
    "CrawlTaskQueue",
    "CrawlScheduler",
    "CrawlWorker",
    "WorkerState",
    "Denylist",
    "default_denylist",
    "merge_seeds",
    "seeds_to_tasks",
]
