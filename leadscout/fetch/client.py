# leadscout/fetch/client.py
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass

import httpx

from leadscout.config import FetchConfig, app_config
from leadscout.exceptions import FetchAborted, FetchTimeout

log = logging.getLogger(__name__)

# Connect phase gets its own, shorter cap; the rest of the budget is shared.
CONNECT_TIMEOUT_S = 5.0


@dataclass
class FetchResponse:
    status: int
    url: str
    effective_url: str
    content_type: str | None
    body: bytes
    truncated: bool  # True when the byte budget stopped the read early


def is_allowed_content_type(content_type: str | None, allowed: tuple[str, ...]) -> bool:
    ctype = (content_type or "").split(";", 1)[0].strip().lower()
    return bool(ctype) and any(ctype == a.strip().lower() for a in allowed)


class FetchTransport:
    """
    Budgeted GET over httpx.

    Flow:
      1) open a streamed GET (redirects followed up to max_redirects)
      2) if the content type is not allowed: return headers only, body b""
      3) read chunks until EOF or until max_bytes, whichever comes first
      4) the whole call (connect + headers + body) must fit in timeout_ms,
         otherwise FetchTimeout; any transport failure is FetchAborted
    """

    def __init__(
        self,
        *,
        config: FetchConfig | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.config = config or app_config.fetch
        self._owns_client = client is None
        self._client = client or httpx.Client(
            headers={"User-Agent": self.config.user_agent, "Accept": "text/html, */*"},
            follow_redirects=True,
            max_redirects=self.config.max_redirects,
        )

    def fetch(
        self,
        url: str,
        *,
        timeout_ms: int | None = None,
        max_bytes: int | None = None,
    ) -> FetchResponse:
        timeout_s = (timeout_ms or self.config.default_timeout_ms) / 1000.0
        cap = max_bytes if max_bytes is not None else self.config.default_max_bytes
        deadline = time.monotonic() + timeout_s
        timeout = httpx.Timeout(timeout_s, connect=min(CONNECT_TIMEOUT_S, timeout_s))

        expired = threading.Event()
        try:
            with self._client.stream("GET", url, timeout=timeout) as resp:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise FetchTimeout(f"timeout after {timeout_s:.1f}s fetching {url}")
                # Per-read timeouts alone let a trickling body run past the budget.
                watchdog = threading.Timer(remaining, _expire, args=(resp, expired))
                watchdog.daemon = True
                watchdog.start()
                try:
                    return self._read(resp, url, cap, deadline, timeout_s, expired)
                finally:
                    watchdog.cancel()
        except FetchTimeout:
            raise
        except httpx.TimeoutException as exc:
            raise FetchTimeout(f"timeout after {timeout_s:.1f}s fetching {url}") from exc
        except (httpx.RequestError, httpx.StreamError) as exc:
            if expired.is_set():
                raise FetchTimeout(f"timeout after {timeout_s:.1f}s fetching {url}") from exc
            if isinstance(exc, httpx.TooManyRedirects):
                raise FetchAborted(f"too many redirects for {url}") from exc
            raise FetchAborted(f"{type(exc).__name__}: {exc}") from exc

    def _read(
        self,
        resp: httpx.Response,
        url: str,
        cap: int,
        deadline: float,
        timeout_s: float,
        expired: threading.Event,
    ) -> FetchResponse:
        ctype = resp.headers.get("Content-Type")
        if not is_allowed_content_type(ctype, self.config.allowed_content_types):
            return FetchResponse(
                status=resp.status_code,
                url=url,
                effective_url=str(resp.url),
                content_type=ctype,
                body=b"",
                truncated=False,
            )
        body, truncated = self._read_capped(resp, cap, deadline, timeout_s)
        # A stream closed by the watchdog can end quietly; never hand back a partial body.
        if expired.is_set() and not truncated:
            raise FetchTimeout(f"timeout after {timeout_s:.1f}s reading {resp.url}")
        return FetchResponse(
            status=resp.status_code,
            url=url,
            effective_url=str(resp.url),
            content_type=ctype,
            body=body,
            truncated=truncated,
        )

    def _read_capped(
        self,
        resp: httpx.Response,
        cap: int,
        deadline: float,
        timeout_s: float,
    ) -> tuple[bytes, bool]:
        buf = bytearray()
        truncated = False
        for chunk in resp.iter_bytes():
            if time.monotonic() > deadline:
                raise FetchTimeout(f"timeout after {timeout_s:.1f}s reading {resp.url}")
            if not chunk:
                continue
            room = cap - len(buf)
            if len(chunk) > room:
                buf += chunk[: max(0, room)]
                # Stop reading; the rest of the body is never pulled off the socket.
                truncated = True
                break
            buf += chunk
        return bytes(buf), truncated

    # ----------------------------------------------------------------------------------
    # Context manager
    # ----------------------------------------------------------------------------------

    def close(self) -> None:
        if not self._owns_client:
            return
        try:
            self._client.close()
        except Exception:  # noqa: BLE001
            log.debug("error closing fetch client", exc_info=True)

    def __enter__(self) -> FetchTransport:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _expire(resp: httpx.Response, expired: threading.Event) -> None:
    expired.set()
    try:
        resp.close()
    except Exception:  # noqa: BLE001
        log.debug("error closing expired response", exc_info=True)


__all__ = ["FetchTransport", "FetchResponse", "is_allowed_content_type", "CONNECT_TIMEOUT_S"]
