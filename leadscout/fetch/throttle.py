# leadscout/fetch/throttle.py
from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

# --------------------------------------------------------------------------------------
# Defaults
# --------------------------------------------------------------------------------------

# First WAF cool-off is 2 * base (e.g., 2 * 3s = 6s)
BASE_BACKOFF_S = 3.0
MAX_BACKOFF_S = 60.0

# Statuses that count as a WAF or overload push-back
WAF_STATUSES = (403, 429, 503)


@dataclass
class _HostState:
    next_allowed_at: float = 0.0  # clock seconds when host can be hit again
    last_fetch_at: float | None = None
    waf_strikes: int = 0  # consecutive WAF_STATUSES responses


class HostThrottle:
    """
    Per-host politeness gate owned by one worker.

    wait = max(0, last_fetch + delay - now). The gap is measured from the end
    of the previous attempt, success or failure, so a slow or erroring host
    is not hammered. 403/429/503 responses push the next slot out exponentially.
    """

    def __init__(
        self,
        delay_s: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        base_backoff_s: float = BASE_BACKOFF_S,
        max_backoff_s: float = MAX_BACKOFF_S,
    ) -> None:
        self.delay_s = max(0.0, float(delay_s))
        self.base_backoff_s = base_backoff_s
        self.max_backoff_s = max_backoff_s
        self._clock = clock
        self._sleep = sleep
        self._hosts: dict[str, _HostState] = {}
        self._lock = threading.Lock()

    def _state(self, host: str) -> _HostState:
        st = self._hosts.get(host)
        if st is None:
            st = _HostState()
            self._hosts[host] = st
        return st

    def wait_time(self, host: str) -> float:
        host = host.strip().lower()
        with self._lock:
            st = self._state(host)
            return max(0.0, st.next_allowed_at - self._clock())

    def wait_for_turn(self, host: str) -> float:
        """
        Sleep until this host is eligible to be hit.
        Returns the number of seconds slept (0 if no wait).
        """
        dt = self.wait_time(host)
        if dt > 0:
            self._sleep(dt)
        return dt

    def after_fetch(self, host: str, status: int | None = None) -> float:
        """
        Record a finished fetch attempt (status None = transport failure) and
        schedule the next allowed time. Returns the gap that was scheduled.
        """
        host = host.strip().lower()
        with self._lock:
            st = self._state(host)
            now = self._clock()
            st.last_fetch_at = now
            if status in WAF_STATUSES:
                st.waf_strikes += 1
                gap = min(self.max_backoff_s, self.base_backoff_s * (2**st.waf_strikes))
                gap = max(gap, self.delay_s)
            else:
                if status is not None and (200 <= status < 300 or status == 304):
                    st.waf_strikes = 0
                gap = self.delay_s
            # Never move next_allowed backwards
            st.next_allowed_at = max(st.next_allowed_at, now + gap)
            return gap

    # ---- introspection / test helpers ----

    def last_fetch_at(self, host: str) -> float | None:
        with self._lock:
            st = self._hosts.get(host.strip().lower())
            return st.last_fetch_at if st else None

    def waf_strikes(self, host: str) -> int:
        with self._lock:
            st = self._hosts.get(host.strip().lower())
            return st.waf_strikes if st else 0

    def clear(self, host: str | None = None) -> None:
        with self._lock:
            if host is None:
                self._hosts.clear()
            else:
                self._hosts.pop(host.strip().lower(), None)


__all__ = ["HostThrottle", "BASE_BACKOFF_S", "MAX_BACKOFF_S", "WAF_STATUSES"]
