# leadscout/providers/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import replace

from leadscout.exceptions import MalformedUrl
from leadscout.models import SearchQuery, SearchResult
from leadscout.utils import normalize_url


class SearchProvider(ABC):
    """
    One search backend.

    search() may raise anything; the scheduler's fan-out treats every
    exception as a failed call for that query and moves on.
    """

    id: str = "provider"
    is_free_tier_eligible: bool = False
    # None = unmetered
    max_per_minute: int | None = None

    @abstractmethod
    def search(self, query: SearchQuery) -> list[SearchResult]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id!r}>"


def normalize_results(
    items: Iterable[SearchResult],
    provider_id: str,
    query: SearchQuery | None = None,
) -> list[SearchResult]:
    """
    Unify adapter output:
      - URL normalised (fragment stripped); unparseable URLs dropped
      - first occurrence of each URL kept
      - provider id stamped
      - results without tags take the tags of the query that found them
    """
    out: list[SearchResult] = []
    seen: set[str] = set()
    query_tags = tuple(sorted(query.tags)) if query is not None else ()
    for r in items:
        try:
            url = normalize_url(r.url)
        except MalformedUrl:
            continue
        if url in seen:
            continue
        seen.add(url)
        out.append(replace(r, url=url, provider_id=provider_id, tags=r.tags or query_tags))
    return out


class StaticProvider(SearchProvider):
    """
    Canned results, for development and tests.

    `results` is either a fixed list returned for every query, or a callable
    query -> list. Results are returned as given apart from the provider id.
    """

    def __init__(
        self,
        results: Iterable[SearchResult] | Callable[[SearchQuery], Iterable[SearchResult]] = (),
        *,
        provider_id: str = "static",
        free_tier: bool = True,
        max_per_minute: int | None = None,
    ) -> None:
        self.id = provider_id
        self.is_free_tier_eligible = free_tier
        self.max_per_minute = max_per_minute
        self._results = results if callable(results) else tuple(results)
        self.calls: list[SearchQuery] = []

    def search(self, query: SearchQuery) -> list[SearchResult]:
        self.calls.append(query)
        items = self._results(query) if callable(self._results) else self._results
        return [replace(r, provider_id=self.id) for r in items]


__all__ = ["SearchProvider", "StaticProvider", "normalize_results"]
