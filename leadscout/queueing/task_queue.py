# leadscout/queueing/task_queue.py
"""
Envelope queues used by the sweep layer.

Contract shared by both implementations:
  push(envelope) -> bool   False when an envelope with the same dedupe key
                           is still queued (the push is a no-op)
  pop_ready(now) -> envelope | None
                           best priority (1 = highest) among envelopes whose
                           not_before has passed; FIFO among equals
  size(org_id=None) -> int queued envelopes, overall or for one org
"""

from __future__ import annotations

import heapq
import itertools
import json
import threading
import time
from collections.abc import Callable
from typing import Protocol

from redis import Redis

from leadscout.config import app_config
from leadscout.models import TaskEnvelope


class TaskQueue(Protocol):
    def push(self, envelope: TaskEnvelope) -> bool | None: ...

    def size(self, org_id: str | None = None) -> int: ...


class InMemoryTaskQueue:
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._heap: list[tuple[int, int, TaskEnvelope]] = []
        self._seq = itertools.count()
        self._keys: set[str] = set()
        self._per_org: dict[str, int] = {}
        self._lock = threading.Lock()

    def push(self, envelope: TaskEnvelope) -> bool:
        with self._lock:
            key = envelope.dedupe_key
            if key and key in self._keys:
                return False
            if key:
                self._keys.add(key)
            if not envelope.created_at:
                envelope.created_at = self._clock()
            heapq.heappush(self._heap, (envelope.priority, next(self._seq), envelope))
            self._per_org[envelope.org_id] = self._per_org.get(envelope.org_id, 0) + 1
            return True

    def pop_ready(self, now: float | None = None) -> TaskEnvelope | None:
        now = self._clock() if now is None else now
        with self._lock:
            held = []
            found: TaskEnvelope | None = None
            while self._heap:
                item = heapq.heappop(self._heap)
                env = item[2]
                if env.not_before is None or env.not_before <= now:
                    found = env
                    break
                held.append(item)
            for item in held:
                heapq.heappush(self._heap, item)
            if found is not None:
                if found.dedupe_key:
                    self._keys.discard(found.dedupe_key)
                self._per_org[found.org_id] -= 1
            return found

    def size(self, org_id: str | None = None) -> int:
        with self._lock:
            if org_id is None:
                return len(self._heap)
            return self._per_org.get(org_id, 0)

    def pending(self) -> list[TaskEnvelope]:
        with self._lock:
            return [e for _, _, e in sorted(self._heap, key=lambda i: (i[0], i[1]))]


# ---- Redis-backed queue ----
KEY_DUE = "{prefix}:due"  # zset: envelope id -> due epoch seconds
KEY_BODY = "{prefix}:body"  # hash: envelope id -> JSON
KEY_ORGS = "{prefix}:orgs"  # hash: org id -> queued count
KEY_DEDUPE = "{prefix}:dedupe:{key}"  # string: envelope id, SET NX
DEDUPE_TTL = 7 * 86400  # seconds; stale keys cannot block an org forever
POP_SCAN = 50


class RedisTaskQueue:
    """
    Shared envelope queue in Redis.

    Envelopes live in a hash keyed by id; a sorted set orders ids by due
    time. pop_ready() scans the due window, picks the best priority and
    claims it with ZREM, so two consumers never get the same envelope.
    """

    def __init__(
        self,
        redis: Redis,
        *,
        prefix: str | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.redis = redis
        self.prefix = prefix or app_config.queue.key_prefix
        self._clock = clock

    def _k(self, tmpl: str, **kw: str) -> str:
        return tmpl.format(prefix=self.prefix, **kw)

    def push(self, envelope: TaskEnvelope) -> bool:
        if not envelope.created_at:
            envelope.created_at = self._clock()
        if envelope.dedupe_key:
            dkey = self._k(KEY_DEDUPE, key=envelope.dedupe_key)
            if not self.redis.set(dkey, envelope.id, nx=True, ex=DEDUPE_TTL):
                return False
        due = envelope.not_before if envelope.not_before is not None else envelope.created_at
        with self.redis.pipeline() as p:
            p.hset(self._k(KEY_BODY), envelope.id, json.dumps(envelope.to_dict()))
            p.zadd(self._k(KEY_DUE), {envelope.id: float(due)})
            p.hincrby(self._k(KEY_ORGS), envelope.org_id, 1)
            p.execute()
        return True

    def pop_ready(self, now: float | None = None) -> TaskEnvelope | None:
        now = self._clock() if now is None else now
        ids = self.redis.zrangebyscore(self._k(KEY_DUE), "-inf", now, start=0, num=POP_SCAN)
        if not ids:
            return None
        bodies = self.redis.hmget(self._k(KEY_BODY), ids)
        candidates: list[tuple[int, float, TaskEnvelope]] = []
        for raw in bodies:
            if raw is None:
                continue
            env = TaskEnvelope.from_dict(json.loads(raw))
            candidates.append((env.priority, env.created_at, env))
        candidates.sort(key=lambda c: (c[0], c[1]))
        for _, _, env in candidates:
            # ZREM is the claim: only one consumer sees 1
            if self.redis.zrem(self._k(KEY_DUE), env.id) == 1:
                with self.redis.pipeline() as p:
                    p.hdel(self._k(KEY_BODY), env.id)
                    p.hincrby(self._k(KEY_ORGS), env.org_id, -1)
                    if env.dedupe_key:
                        p.delete(self._k(KEY_DEDUPE, key=env.dedupe_key))
                    p.execute()
                return env
        return None

    def size(self, org_id: str | None = None) -> int:
        if org_id is None:
            return int(self.redis.zcard(self._k(KEY_DUE)))
        return max(0, int(self.redis.hget(self._k(KEY_ORGS), org_id) or 0))


__all__ = ["TaskQueue", "InMemoryTaskQueue", "RedisTaskQueue"]
