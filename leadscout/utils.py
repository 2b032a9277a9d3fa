"""
Shared utility functions used across the codebase.

URL normalisation lives here so the scheduler, the task queue and the
worker agree on what "the same URL" means.
"""

from __future__ import annotations

import hashlib
import json
from datetime import UTC, datetime
from typing import Any
from urllib.parse import SplitResult, urlsplit, urlunsplit

from .exceptions import MalformedUrl


def utc_day_key(ts: float) -> str:
    """UTC calendar day ("YYYY-MM-DD") for an epoch timestamp in seconds."""
    return datetime.fromtimestamp(ts, UTC).strftime("%Y-%m-%d")


def clamp(n: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, n))


def clamp01(n: float) -> float:
    return clamp(n, 0.0, 1.0)


def parse_http_url(url: str) -> SplitResult:
    """
    Split an absolute http(s) URL, raising MalformedUrl for anything else.
    """
    raw = (url or "").strip()
    try:
        parts = urlsplit(raw)
        # Accessing .port validates the netloc
        _ = parts.port
    except ValueError as err:
        raise MalformedUrl(f"unparseable url {url!r}") from err
    if parts.scheme.lower() not in ("http", "https"):
        raise MalformedUrl(f"not an http(s) url: {url!r}")
    if not parts.hostname:
        raise MalformedUrl(f"url has no host: {url!r}")
    return parts


def normalize_url(url: str) -> str:
    """
    Canonical form used for dedupe keys: lowercase scheme and host, default
    path "/", fragment stripped. Query strings are kept as-is.
    """
    parts = parse_http_url(url)
    netloc = parts.netloc.lower()
    scheme = parts.scheme.lower()
    if scheme == "http" and netloc.endswith(":80"):
        netloc = netloc[:-3]
    elif scheme == "https" and netloc.endswith(":443"):
        netloc = netloc[:-4]
    return urlunsplit((scheme, netloc, parts.path or "/", parts.query, ""))


def host_of(url: str) -> str | None:
    """Lowercased hostname, or None when the URL is malformed."""
    try:
        return (parse_http_url(url).hostname or "").lower() or None
    except MalformedUrl:
        return None


def host_root(host: str) -> str:
    host = (host or "").strip().lower().rstrip(".")
    return host[4:] if host.startswith("www.") else host


def origin_of(url: str) -> str:
    parts = parse_http_url(url)
    return f"{parts.scheme.lower()}://{parts.netloc.lower()}"


def stable_hash(obj: Any) -> str:
    """Short, order-independent digest of a JSON-able value (for dedupe keys)."""
    s = json.dumps(obj, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha1(s.encode("utf-8")).hexdigest()[:12]


__all__ = [
    "utc_day_key",
    "clamp",
    "clamp01",
    "parse_http_url",
    "normalize_url",
    "host_of",
    "host_root",
    "origin_of",
    "stable_hash",
]
