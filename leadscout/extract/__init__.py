# leadscout/extract/__init__.py
"""
Signal extraction: fetched HTML -> ExtractedSignals (pure, no I/O).

  - extract(html, url, lexicon=None, policy=None) -> ExtractedSignals
  - guess_company_name(title, url) -> str | None
  - load_lexicon(path) -> Lexicon (YAML term-list overrides)
"""

from .lexicon import DEFAULT_LEXICON, DEFAULT_POLICY, Lexicon, SubscorePolicy, load_lexicon
from .signals import detect_blog_date, extract, guess_company_name

__all__ = [
    "extract",
    "guess_company_name",
    "detect_blog_date",
    "Lexicon",
    "SubscorePolicy",
    "DEFAULT_LEXICON",
    "DEFAULT_POLICY",
    "load_lexicon",
]
