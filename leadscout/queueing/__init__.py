# leadscout/queueing/__init__.py
"""
Quota layer and periodic org sweep.

  - TokenBucketLimiter / DailyCounter / RedisDailyCounter
  - InMemoryTaskQueue / RedisTaskQueue (TaskEnvelope sinks)
  - OrgSweepScheduler (single recurring timer over active orgs)
"""

from .rate_limit import (
    DailyCounter,
    RedisDailyCounter,
    TokenBucketLimiter,
    compute_backoff,
    jittered,
)
from .sweep import InMemoryOrgStore, OrgStore, OrgSweepOutcome, OrgSweepScheduler, is_in_quiet_hours
from .task_queue import InMemoryTaskQueue, RedisTaskQueue, TaskQueue

__all__ = [
    "TokenBucketLimiter",
    "DailyCounter",
    "RedisDailyCounter",
    "compute_backoff",
    "jittered",
    "TaskQueue",
    "InMemoryTaskQueue",
    "RedisTaskQueue",
    "OrgSweepScheduler",
    "OrgSweepOutcome",
    "OrgStore",
    "InMemoryOrgStore",
    "is_in_quiet_hours",
]
