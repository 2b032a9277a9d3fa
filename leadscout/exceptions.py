"""
Shared exception classes for the crawl and scoring pipeline.

Nothing here is fatal to the process: each error is caught at the boundary
that owns it (provider call, task processing, seed construction) and turned
into a recorded outcome.
"""

from __future__ import annotations


class LeadScoutError(Exception):
    """Base class for all pipeline errors."""


class ProviderError(LeadScoutError):
    """
    Raised when a single search-provider call fails.

    The fan-out logs it and moves on to the next query; it never aborts
    a discovery batch.
    """

    def __init__(self, provider_id: str, message: str) -> None:
        super().__init__(f"{provider_id}: {message}")
        self.provider_id = provider_id


class FetchError(LeadScoutError):
    """A network fetch did not complete. Maps to status="error"."""


class FetchTimeout(FetchError):
    """The fetch exceeded its timeout budget and was cancelled."""


class FetchAborted(FetchError):
    """The transport aborted the request (connection reset, DNS failure, too many redirects)."""


class ContentRejected(LeadScoutError):
    """
    The response was not something we extract from.

    Examples:
        - non-HTML content type
        - empty body
    Maps to status="skipped".
    """

    def __init__(self, message: str, *, http: object | None = None) -> None:
        super().__init__(message)
        # HttpMeta of the rejected response, when one was received
        self.http = http


class PolicyDenied(LeadScoutError):
    """robots/terms disallow crawling this URL. Maps to status="skipped"."""


class MalformedUrl(LeadScoutError, ValueError):
    """A URL could not be parsed into an http(s) URL with a host."""


__all__ = [
    "LeadScoutError",
    "ProviderError",
    "FetchError",
    "FetchTimeout",
    "FetchAborted",
    "ContentRejected",
    "PolicyDenied",
    "MalformedUrl",
]
