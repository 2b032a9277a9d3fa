# leadscout/providers/web.py
"""
Paid web-search adapters (Brave, Bing, Google Custom Search) over httpx.

All three are paid-tier only. Each call is one GET; any transport failure,
non-2xx status or unreadable JSON raises ProviderError so the fan-out can
log it and continue with the next query.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from typing import Any

import httpx

from leadscout.config import (
    BING_DEFAULT_ENDPOINT,
    FETCH_USER_AGENT,
    SEARCH_MAX_PER_MINUTE,
    SEARCH_RESULTS_PER_QUERY,
    SEARCH_TIMEOUT_S,
)
from leadscout.exceptions import ProviderError
from leadscout.models import SearchQuery, SearchResult

from .base import SearchProvider, normalize_results

log = logging.getLogger(__name__)


class HttpSearchProvider(SearchProvider):
    endpoint: str = ""

    def __init__(
        self,
        *,
        client: httpx.Client | None = None,
        count: int = SEARCH_RESULTS_PER_QUERY,
        timeout_s: float = SEARCH_TIMEOUT_S,
        max_per_minute: int | None = SEARCH_MAX_PER_MINUTE or None,
    ) -> None:
        self.count = count
        self.timeout_s = timeout_s
        self.max_per_minute = max_per_minute
        self._client = client or httpx.Client(headers={"User-Agent": FETCH_USER_AGENT})

    # ---- adapter hooks ----

    def _params(self, query: SearchQuery) -> dict[str, Any]:
        raise NotImplementedError

    def _headers(self) -> dict[str, str]:
        return {}

    def _items(self, data: Any) -> list[SearchResult]:
        raise NotImplementedError

    # ---- shared call path ----

    def search(self, query: SearchQuery) -> list[SearchResult]:
        try:
            resp = self._client.get(
                self.endpoint,
                params=self._params(query),
                headers=self._headers(),
                timeout=self.timeout_s,
            )
        except httpx.HTTPError as exc:
            raise ProviderError(self.id, f"{type(exc).__name__}: {exc}") from exc
        if resp.status_code >= 400:
            raise ProviderError(self.id, f"HTTP {resp.status_code} for {query.text!r}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise ProviderError(self.id, "response was not JSON") from exc
        return normalize_results(self._items(data), self.id, query)

    def close(self) -> None:
        self._client.close()


class BraveSearchProvider(HttpSearchProvider):
    id = "brave"
    endpoint = "https://api.search.brave.com/res/v1/web/search"

    def __init__(self, api_key: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key

    def _params(self, query: SearchQuery) -> dict[str, Any]:
        return {"q": query.text, "count": self.count}

    def _headers(self) -> dict[str, str]:
        return {"X-Subscription-Token": self.api_key, "Accept": "application/json"}

    def _items(self, data: Any) -> list[SearchResult]:
        items = ((data or {}).get("web") or {}).get("results") or []
        return [
            SearchResult(
                url=i["url"],
                title=i.get("title"),
                snippet=i.get("description") or i.get("snippet"),
            )
            for i in items
            if isinstance(i, dict) and i.get("url")
        ]


class BingSearchProvider(HttpSearchProvider):
    id = "bing"

    def __init__(self, api_key: str, endpoint: str = BING_DEFAULT_ENDPOINT, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key
        self.endpoint = endpoint

    def _params(self, query: SearchQuery) -> dict[str, Any]:
        return {"q": query.text, "count": self.count}

    def _headers(self) -> dict[str, str]:
        return {"Ocp-Apim-Subscription-Key": self.api_key}

    def _items(self, data: Any) -> list[SearchResult]:
        items = ((data or {}).get("webPages") or {}).get("value") or []
        return [
            SearchResult(url=i["url"], title=i.get("name"), snippet=i.get("snippet"))
            for i in items
            if isinstance(i, dict) and i.get("url")
        ]


class GoogleCSEProvider(HttpSearchProvider):
    id = "google_cse"
    endpoint = "https://www.googleapis.com/customsearch/v1"

    def __init__(self, api_key: str, cx: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key
        self.cx = cx

    def _params(self, query: SearchQuery) -> dict[str, Any]:
        # CSE caps num at 10
        return {"key": self.api_key, "cx": self.cx, "q": query.text, "num": min(10, self.count)}

    def _items(self, data: Any) -> list[SearchResult]:
        items = (data or {}).get("items") or []
        return [
            SearchResult(url=i["link"], title=i.get("title"), snippet=i.get("snippet"))
            for i in items
            if isinstance(i, dict) and i.get("link")
        ]


def providers_from_env(env: Mapping[str, str] | None = None) -> list[SearchProvider]:
    """
    Build every adapter whose credentials are present.

      BRAVE_API_KEY                     -> brave
      BING_KEY (+ optional BING_ENDPOINT) -> bing
      GOOGLE_CSE_KEY + GOOGLE_CSE_ID    -> google_cse
    """
    env = os.environ if env is None else env

    def get(name: str) -> str:
        return (env.get(name) or "").strip()

    out: list[SearchProvider] = []
    if get("BRAVE_API_KEY"):
        out.append(BraveSearchProvider(get("BRAVE_API_KEY")))
    if get("BING_KEY"):
        out.append(BingSearchProvider(get("BING_KEY"), endpoint=get("BING_ENDPOINT") or BING_DEFAULT_ENDPOINT))
    if get("GOOGLE_CSE_KEY") and get("GOOGLE_CSE_ID"):
        out.append(GoogleCSEProvider(get("GOOGLE_CSE_KEY"), get("GOOGLE_CSE_ID")))
    log.debug("search providers configured: %s", [p.id for p in out])
    return out


__all__ = [
    "HttpSearchProvider",
    "BraveSearchProvider",
    "BingSearchProvider",
    "GoogleCSEProvider",
    "providers_from_env",
]
