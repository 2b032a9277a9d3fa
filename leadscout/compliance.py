"""
Compliance gate consumed by the crawl worker.

Policy decisions live elsewhere; the worker only needs a yes/no crawl
switch and a redaction function for excerpts kept on free plans.
"""

from __future__ import annotations

import re

EMAIL_RE = re.compile(r"\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b", re.IGNORECASE)
PHONE_RE = re.compile(r"\b(?:\+?\d{1,3}[\s.-]?)?(?:\(?\d{3}\)?[\s.-]?){1,2}\d{4}\b")


def redact_pii(text: str) -> str:
    """Mask email addresses and phone numbers in free-form text."""
    if not text:
        return text
    return PHONE_RE.sub("**********", EMAIL_RE.sub("***@***", text))


class DataGuard:
    """
    Crawl switch fed by robots/terms checks done upstream.

    Unknown (None) means allowed; only an explicit False denies.
    """

    def is_crawl_allowed(
        self,
        *,
        robots_allowed: bool | None = True,
        terms_allow: bool | None = True,
    ) -> bool:
        if robots_allowed is False:
            return False
        if terms_allow is False:
            return False
        return True

    def redact_pii(self, text: str) -> str:
        return redact_pii(text)


__all__ = ["DataGuard", "redact_pii", "EMAIL_RE", "PHONE_RE"]
