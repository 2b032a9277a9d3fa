# tests/test_feedback.py
import threading
import time

from leadscout.feedback import IngestionFeedback, IngestionRecord, log_writer


def _rec(i: int, ok: bool = True) -> IngestionRecord:
    return IngestionRecord(url=f"https://s{i}.test/", ok=ok, timestamp=float(i), status=200 if ok else None)


def test_records_are_delivered_in_order_before_close():
    got: list[IngestionRecord] = []
    fb = IngestionFeedback(got.append)

    for i in range(5):
        fb.log_ingestion(_rec(i))
    fb.close()

    assert [r.url for r in got] == [f"https://s{i}.test/" for i in range(5)]
    assert fb.dropped == 0


def test_failing_writer_is_logged_and_ignored(caplog):
    got: list[IngestionRecord] = []

    def flaky(record):
        if record.timestamp == 1.0:
            raise RuntimeError("db unavailable")
        got.append(record)

    fb = IngestionFeedback(flaky)
    for i in range(3):
        fb.log_ingestion(_rec(i))
    fb.close()

    assert [r.timestamp for r in got] == [0.0, 2.0]
    assert "feedback writer failed" in caplog.text


def test_full_queue_drops_instead_of_blocking():
    release = threading.Event()
    got: list[IngestionRecord] = []

    def slow(record):
        release.wait(5.0)
        got.append(record)

    fb = IngestionFeedback(slow, maxsize=1)
    start = time.monotonic()
    for i in range(5):
        fb.log_ingestion(_rec(i))
    elapsed = time.monotonic() - start

    release.set()
    fb.close()

    assert elapsed < 1.0
    assert fb.dropped >= 3
    assert len(got) + fb.dropped == 5


def test_close_without_records_is_a_noop():
    IngestionFeedback(lambda r: None).close()


def test_log_writer_emits_one_line(caplog):
    caplog.set_level("INFO", logger="leadscout.feedback")
    log_writer(_rec(7, ok=False))
    assert "url=https://s7.test/ ok=False" in caplog.text


def test_record_to_dict():
    assert _rec(1).to_dict() == {
        "url": "https://s1.test/",
        "ok": True,
        "timestamp": 1.0,
        "status": 200,
        "bytes": None,
        "reason": None,
    }
