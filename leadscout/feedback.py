"""
Ingestion feedback sink.

The worker reports every terminal outcome here. Delivery is at-most-once
and never blocks the caller: records go onto a bounded in-process queue and
a daemon thread hands them to the writer. A full queue drops the record; a
failing writer is logged and ignored.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable
from dataclasses import asdict, dataclass
from typing import Any, Protocol

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestionRecord:
    url: str
    ok: bool
    timestamp: float
    status: int | None = None
    bytes: int | None = None
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class FeedbackSink(Protocol):
    def log_ingestion(self, record: IngestionRecord) -> None: ...


class InMemoryFeedback:
    """Synchronous sink that keeps every record (tests, CLI runs)."""

    def __init__(self) -> None:
        self.records: list[IngestionRecord] = []
        self._lock = threading.Lock()

    def log_ingestion(self, record: IngestionRecord) -> None:
        with self._lock:
            self.records.append(record)


class IngestionFeedback:
    """Fire-and-forget sink backed by a single sender thread."""

    _STOP = object()

    def __init__(
        self,
        writer: Callable[[IngestionRecord], None],
        *,
        maxsize: int = 1000,
    ) -> None:
        self._writer = writer
        self._q: queue.Queue[Any] = queue.Queue(maxsize=maxsize)
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self.dropped = 0

    def log_ingestion(self, record: IngestionRecord) -> None:
        self._ensure_thread()
        try:
            self._q.put_nowait(record)
        except queue.Full:
            self.dropped += 1
            log.debug("feedback queue full; dropped record for %s", record.url)

    def close(self, timeout: float | None = 5.0) -> None:
        """Flush what is queued and stop the sender thread."""
        with self._lock:
            t = self._thread
        if t is None:
            return
        self._q.put(self._STOP)
        t.join(timeout)
        with self._lock:
            self._thread = None

    # ---- internals ----

    def _ensure_thread(self) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._thread = threading.Thread(
                target=self._run, name="ingestion-feedback", daemon=True
            )
            self._thread.start()

    def _run(self) -> None:
        while True:
            item = self._q.get()
            if item is self._STOP:
                return
            try:
                self._writer(item)
            except Exception:  # noqa: BLE001
                log.exception("feedback writer failed for %s", getattr(item, "url", "<?>"))


def log_writer(record: IngestionRecord) -> None:
    """Default writer: one INFO line per outcome."""
    log.info(
        "ingestion url=%s ok=%s status=%s bytes=%s reason=%s",
        record.url,
        record.ok,
        record.status,
        record.bytes,
        record.reason,
    )


__all__ = [
    "IngestionRecord",
    "FeedbackSink",
    "InMemoryFeedback",
    "IngestionFeedback",
    "log_writer",
]
