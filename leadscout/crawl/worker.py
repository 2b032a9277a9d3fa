# leadscout/crawl/worker.py
"""
Polite crawl worker.

Pulls CrawlTasks from its own queue and turns each one into exactly one
CrawlResult:

  gate (robots/terms) -> per-host politeness wait -> budgeted fetch
  -> content checks -> extract signals -> LeadCandidate -> emit

Every outcome (ok, skipped, error) goes to the on_result callback and to
the ingestion feedback sink. Nothing raised while handling one task can
stop the loop.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from enum import Enum

from leadscout.compliance import DataGuard
from leadscout.config import CrawlConfig, FetchConfig, app_config, plan_caps
from leadscout.exceptions import ContentRejected, PolicyDenied
from leadscout.extract import Lexicon, extract, guess_company_name, load_lexicon
from leadscout.feedback import FeedbackSink, IngestionFeedback, IngestionRecord, log_writer
from leadscout.fetch import FetchResponse, FetchTransport, HostThrottle, is_allowed_content_type
from leadscout.models import CrawlResult, CrawlStatus, CrawlTask, HttpMeta, LeadCandidate
from leadscout.utils import origin_of, parse_http_url

from .queue import CrawlTaskQueue

log = logging.getLogger(__name__)


class WorkerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    EMITTING = "emitting"
    STOPPED = "stopped"


ResultCallback = Callable[[CrawlResult], None]


class CrawlWorker:
    def __init__(
        self,
        on_result: ResultCallback,
        *,
        guard: DataGuard | None = None,
        feedback: FeedbackSink | None = None,
        transport: FetchTransport | None = None,
        throttle: HostThrottle | None = None,
        queue: CrawlTaskQueue | None = None,
        lexicon: Lexicon | None = None,
        fetch_config: FetchConfig | None = None,
        crawl_config: CrawlConfig | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.on_result = on_result
        self.fetch_config = fetch_config or app_config.fetch
        self.crawl_config = crawl_config or app_config.crawl
        self.guard = guard or DataGuard()
        self.feedback: FeedbackSink = feedback or IngestionFeedback(log_writer)
        self.transport = transport or FetchTransport(config=self.fetch_config)
        self.throttle = throttle or HostThrottle(
            self.fetch_config.per_host_delay_ms / 1000.0, clock=clock, sleep=sleep
        )
        self.queue = queue or CrawlTaskQueue(seen_max=self.crawl_config.seen_max, clock=clock)
        self.lexicon = lexicon or load_lexicon(self.crawl_config.lexicon_path)
        self._clock = clock
        self._state = WorkerState.IDLE
        self._state_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._run_lock = threading.Lock()
        self._exiting = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> WorkerState:
        with self._state_lock:
            return self._state

    def enqueue(self, task: CrawlTask) -> bool:
        """Queue a task; False when its dedupe key was already seen by this worker."""
        accepted = self.queue.push(task)
        if not accepted:
            log.debug("crawl task deduped: %s", task.dedupe_key)
        return accepted

    def start(self) -> None:
        """Start the background loop, or cancel a pending stop() if it is still running."""
        with self._run_lock:
            self._stop.clear()
            if self._thread is not None and self._thread.is_alive() and not self._exiting:
                return
            self._exiting = False
            self._set_state(WorkerState.RUNNING)
            self._thread = threading.Thread(target=self._run, name="crawl-worker", daemon=True)
            self._thread.start()

    def stop(self) -> None:
        """Stop picking up new tasks. A task already in flight finishes normally."""
        self._stop.set()

    def join(self, timeout: float | None = None) -> None:
        t = self._thread
        if t is not None:
            t.join(timeout)

    def run_pending(self, max_tasks: int | None = None) -> list[CrawlResult]:
        """
        Process every task that is due right now on the calling thread.

        Used by the CLI and tests; the background loop does the same thing
        one task at a time.
        """
        results: list[CrawlResult] = []
        while max_tasks is None or len(results) < max_tasks:
            task = self.queue.pop_ready()
            if task is None:
                break
            results.append(self._handle(task))
        return results

    def process(self, task: CrawlTask) -> CrawlResult:
        """Resolve one task into a CrawlResult. Never raises."""
        started = self._clock()
        try:
            return self._process(task, started)
        except PolicyDenied as exc:
            return self._terminal(task, CrawlStatus.SKIPPED, started, reason=str(exc))
        except ContentRejected as exc:
            http = exc.http if isinstance(exc.http, HttpMeta) else None
            return self._terminal(task, CrawlStatus.SKIPPED, started, reason=str(exc), http=http)
        except Exception as exc:  # noqa: BLE001
            log.warning("crawl failed for %s: %s", task.url, exc)
            return self._terminal(task, CrawlStatus.ERROR, started, reason=str(exc) or type(exc).__name__)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run(self) -> None:
        idle_s = self.crawl_config.idle_poll_ms / 1000.0
        log.info("crawl worker started")
        while True:
            # Exit is decided under the lock so a concurrent start() either
            # revives this loop or spawns a fresh one, never neither.
            with self._run_lock:
                if self._stop.is_set():
                    self._exiting = True
                    self._set_state(WorkerState.STOPPED)
                    break
            try:
                task = self.queue.pop_ready()
                if task is None:
                    self._stop.wait(idle_s)
                    continue
                self._handle(task)
            except Exception:  # noqa: BLE001
                log.exception("crawl worker loop error; continuing")
        log.info("crawl worker stopped")

    def _handle(self, task: CrawlTask) -> CrawlResult:
        try:
            result = self.process(task)
            self._emit(result)
            return result
        finally:
            looping = self._thread is not None and self._thread.is_alive() and not self._stop.is_set()
            self._set_state(WorkerState.RUNNING if looping else WorkerState.IDLE)

    def _process(self, task: CrawlTask, started: float) -> CrawlResult:
        if not self.guard.is_crawl_allowed(
            robots_allowed=task.robots_allowed,
            terms_allow=task.terms_allow,
        ):
            raise PolicyDenied("robots/terms disallow")

        host = (parse_http_url(task.url).hostname or "").lower()
        caps = plan_caps(task.plan)

        self._set_state(WorkerState.FETCHING)
        self.throttle.wait_for_turn(host)
        status: int | None = None
        try:
            resp = self.transport.fetch(
                task.url,
                timeout_ms=task.timeout_ms or self.fetch_config.default_timeout_ms,
                max_bytes=task.max_bytes or self.fetch_config.default_max_bytes,
            )
            status = resp.status
        finally:
            self.throttle.after_fetch(host, status)

        self._check_response(resp)

        self._set_state(WorkerState.EXTRACTING)
        html = resp.body.decode("utf-8", errors="replace")
        signals = extract(html, task.url, lexicon=self.lexicon)
        lead = LeadCandidate(
            website=origin_of(task.url),
            signals=signals,
            company_guess=guess_company_name(signals.title, task.url),
            region=task.subject_region,
            tagset=tuple(task.tags),
        )

        if caps.enable_pii:
            excerpt = html[: self.crawl_config.excerpt_paid_chars]
        else:
            excerpt = self.guard.redact_pii(html[: self.crawl_config.excerpt_free_chars])

        return CrawlResult(
            url=task.url,
            status=CrawlStatus.OK,
            plan=task.plan,
            started_at=started,
            finished_at=self._clock(),
            http=HttpMeta(status=resp.status, bytes=len(resp.body), content_type=resp.content_type),
            lead=lead,
            raw_excerpt=excerpt,
        )

    def _check_response(self, resp: FetchResponse) -> None:
        if not is_allowed_content_type(resp.content_type, self.fetch_config.allowed_content_types):
            raise ContentRejected(
                f"non-html content ({resp.content_type or 'unknown'})",
                http=HttpMeta(status=resp.status, bytes=0, content_type=resp.content_type),
            )
        meta = HttpMeta(status=resp.status, bytes=len(resp.body), content_type=resp.content_type)
        if resp.status >= 400:
            raise ContentRejected(f"http {resp.status}", http=meta)
        if not resp.body:
            raise ContentRejected("empty body", http=meta)
        if resp.truncated:
            log.debug("byte budget reached for %s; extracting partial content", resp.url)

    def _terminal(
        self,
        task: CrawlTask,
        status: CrawlStatus,
        started: float,
        *,
        reason: str,
        http: HttpMeta | None = None,
    ) -> CrawlResult:
        return CrawlResult(
            url=task.url,
            status=status,
            plan=task.plan,
            started_at=started,
            finished_at=self._clock(),
            reason=reason,
            http=http,
        )

    def _emit(self, result: CrawlResult) -> None:
        self._set_state(WorkerState.EMITTING)
        try:
            self.on_result(result)
        except Exception:  # noqa: BLE001
            log.exception("on_result callback failed for %s", result.url)
        try:
            self.feedback.log_ingestion(
                IngestionRecord(
                    url=result.url,
                    ok=result.ok,
                    timestamp=result.finished_at,
                    status=result.http.status if result.http else None,
                    bytes=result.http.bytes if result.http else None,
                    reason=result.reason,
                )
            )
        except Exception:  # noqa: BLE001
            log.warning("ingestion feedback failed for %s", result.url, exc_info=True)

    def _set_state(self, state: WorkerState) -> None:
        with self._state_lock:
            self._state = state


__all__ = ["CrawlWorker", "WorkerState", "ResultCallback"]
