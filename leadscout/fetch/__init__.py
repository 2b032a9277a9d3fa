# leadscout/fetch/__init__.py
"""
Fetch package: per-host politeness throttling and a budgeted httpx transport.

Worker-facing API:
  - FetchTransport.fetch(url, timeout_ms=..., max_bytes=...) -> FetchResponse
  - HostThrottle.wait_for_turn(host) / HostThrottle.after_fetch(host, status)
"""

from .client import FetchResponse, FetchTransport, is_allowed_content_type
from .throttle import HostThrottle

__all__ = [
    "FetchTransport",
    "FetchResponse",
    "is_allowed_content_type",
    "HostThrottle",
]
