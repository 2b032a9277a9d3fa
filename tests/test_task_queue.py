# tests/test_task_queue.py
import fakeredis
import pytest

from leadscout.models import TaskEnvelope, TaskType
from leadscout.queueing import InMemoryTaskQueue, RedisTaskQueue

T0 = 1_700_000_000.0


def _env(org="org-1", priority=5, key=None, not_before=None, created_at=0.0, type=TaskType.DISCOVER):
    return TaskEnvelope(
        type=type,
        org_id=org,
        plan="pro",
        priority=priority,
        dedupe_key=key,
        not_before=not_before,
        created_at=created_at,
    )


@pytest.fixture(params=["memory", "redis"])
def queue(request, clock):
    if request.param == "memory":
        return InMemoryTaskQueue(clock=clock)
    return RedisTaskQueue(fakeredis.FakeRedis(decode_responses=True), prefix="test", clock=clock)


def test_envelope_priority_is_clamped():
    assert _env(priority=0).priority == 1
    assert _env(priority=42).priority == 10


def test_envelope_dict_roundtrip_keeps_type():
    e = _env(key="k", not_before=T0)
    d = e.to_dict()
    assert d["type"] == "discover"
    assert TaskEnvelope.from_dict(d) == e


def test_duplicate_key_is_rejected_while_queued(queue, clock):
    assert queue.push(_env(key="discover:org-1:abc", created_at=clock())) is True
    assert queue.push(_env(key="discover:org-1:abc", created_at=clock() + 1)) is False
    assert queue.size() == 1


def test_key_is_released_after_pop(queue, clock):
    queue.push(_env(key="refresh:org-1:1", created_at=clock()))
    assert queue.pop_ready() is not None
    assert queue.push(_env(key="refresh:org-1:1", created_at=clock() + 1)) is True


def test_envelopes_without_key_are_never_deduped(queue, clock):
    assert queue.push(_env(created_at=clock()))
    assert queue.push(_env(created_at=clock() + 1))
    assert queue.size() == 2


def test_lowest_priority_number_pops_first(queue, clock):
    for i, p in enumerate((7, 4, 6)):
        queue.push(_env(priority=p, key=f"k{p}", created_at=clock() + i))

    clock.advance(10)
    assert [queue.pop_ready().priority for _ in range(3)] == [4, 6, 7]
    assert queue.pop_ready() is None


def test_fifo_among_equal_priorities(queue, clock):
    for i in range(4):
        queue.push(_env(priority=5, key=f"k{i}", created_at=clock() + i))

    clock.advance(10)
    assert [queue.pop_ready().dedupe_key for _ in range(4)] == ["k0", "k1", "k2", "k3"]


def test_not_before_holds_envelope(queue, clock):
    queue.push(_env(priority=1, key="later", not_before=clock() + 30, created_at=clock()))
    queue.push(_env(priority=9, key="now", created_at=clock()))

    assert queue.pop_ready().dedupe_key == "now"
    assert queue.pop_ready() is None

    clock.advance(30)
    assert queue.pop_ready().dedupe_key == "later"


def test_size_per_org(queue, clock):
    queue.push(_env(org="a", key="a1", created_at=clock()))
    queue.push(_env(org="a", key="a2", created_at=clock() + 1))
    queue.push(_env(org="b", key="b1", created_at=clock() + 2))

    assert queue.size("a") == 2
    assert queue.size("b") == 1
    assert queue.size("c") == 0

    queue.pop_ready(now=clock() + 10)
    assert queue.size("a") == 1


def test_created_at_is_stamped_when_missing(clock):
    q = InMemoryTaskQueue(clock=clock)
    e = _env()
    q.push(e)
    assert e.created_at == clock()


def test_pending_lists_in_dispatch_order(clock):
    q = InMemoryTaskQueue(clock=clock)
    q.push(_env(priority=6, key="b", created_at=clock()))
    q.push(_env(priority=3, key="a", created_at=clock()))
    assert [e.dedupe_key for e in q.pending()] == ["a", "b"]
