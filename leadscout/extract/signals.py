# leadscout/extract/signals.py
"""
HTML -> ExtractedSignals.

Pure function of the fetched document: no network, no queue state, no
clocks. Given the same HTML and URL it always returns an equal
ExtractedSignals, which makes it the main unit-test surface of the crawl
path.

Two views of the document are used:
  - the raw HTML, for fingerprints that live inside <script> tags or
    attributes (platforms, analytics tags, cart widgets, review markup);
  - the flattened visible text (scripts, styles and comments stripped),
    for lexicon matching, so a term inside a JS bundle does not count.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache
from html import unescape
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Comment

from leadscout.models import BlogDate, ExtractedSignals
from leadscout.utils import clamp01, host_root, parse_http_url

from .lexicon import DEFAULT_LEXICON, DEFAULT_POLICY, Lexicon, SubscorePolicy

MAX_TERMS = 50
MAX_CONTACTS = 20
MAX_TITLE_CHARS = 200
MAX_DESCRIPTION_CHARS = 240

_NOISE_TAGS = ["script", "style", "noscript", "template"]

_EMAIL_RE = re.compile(r"([a-z0-9._%+-]+)@([a-z0-9.-]+\.[a-z]{2,})", re.IGNORECASE)
_ASSET_SUFFIX_RE = re.compile(r"\.(?:png|jpe?g|gif|webp|svg)$")
_PHONE_RE = re.compile(r"(?:\+?1[-.\s]?)?(?:\(?\d{3}\)?[-.\s]?)\d{3}[-.\s]?\d{4}")

_MONTHS = ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec")
_NUMERIC_DATE_RE = re.compile(r"\b(20[12]\d)[-/.](\d{1,2})\b")
_MONTH_NAME_DATE_RE = re.compile(
    r"\b(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\.?\s+(?:\d{1,2},?\s+)?(20[12]\d)\b",
    re.IGNORECASE,
)

_TITLE_SPLIT_RE = re.compile(r"\s[-|•·–—:]\s|[|•·]")
_TITLE_FILLER_RE = re.compile(r"\b(home|homepage|official site|welcome)\b", re.IGNORECASE)


# --- Term matching -----------------------------------------------------------


@lru_cache(maxsize=2048)
def _word_re(term: str) -> re.Pattern[str]:
    return re.compile(rf"(?<!\w){re.escape(term)}(?!\w)", re.IGNORECASE)


def _uniq(items: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out


def find_terms(text_lower: str, terms: Iterable[str], *, limit: int = MAX_TERMS) -> tuple[str, ...]:
    """Terms that occur in text as whole words (case-insensitive), in lexicon order."""
    hits = [t for t in _uniq(terms) if _word_re(t).search(text_lower)]
    return tuple(hits[:limit])


def find_phrases(text_lower: str, phrases: Iterable[str], *, limit: int = MAX_TERMS) -> tuple[str, ...]:
    """Plain substring matches; used for phrases where word boundaries are too strict."""
    hits = [p for p in _uniq(phrases) if p.lower() in text_lower]
    return tuple(hits[:limit])


# --- Document views ----------------------------------------------------------


def _visible_text(soup: BeautifulSoup) -> str:
    for tag in soup.find_all(_NOISE_TAGS):
        tag.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    text = soup.get_text(" ", strip=True)
    return re.sub(r"\s+", " ", text)


def _grab_title(soup: BeautifulSoup) -> str | None:
    if soup.title is None:
        return None
    title = soup.title.get_text(" ", strip=True)
    return title[:MAX_TITLE_CHARS] or None


def _grab_description(soup: BeautifulSoup) -> str | None:
    meta = soup.find("meta", attrs={"name": re.compile(r"^description$", re.IGNORECASE)})
    if meta is None:
        meta = soup.find("meta", attrs={"property": "og:description"})
    if meta is None:
        return None
    content = (meta.get("content") or "").strip()
    return unescape(content)[:MAX_DESCRIPTION_CHARS] or None


def _grab_careers_links(soup: BeautifulSoup, base_url: str, pattern: str) -> tuple[str, ...]:
    rx = re.compile(pattern, re.IGNORECASE)
    out: list[str] = []
    for a in soup.find_all("a", href=True):
        text = a.get_text(" ", strip=True)
        href = a["href"].strip()
        if not href or href.startswith(("mailto:", "tel:", "javascript:")):
            continue
        if rx.search(text) or rx.search(href):
            out.append(urljoin(base_url, href))
    return tuple(_uniq(out)[:MAX_CONTACTS])


def _grab_emails(text: str, soup: BeautifulSoup) -> tuple[str, ...]:
    mailtos = [a["href"][len("mailto:") :].split("?", 1)[0] for a in soup.select('a[href^="mailto:"]')]
    out: list[str] = []
    for m in _EMAIL_RE.finditer(" ".join([text, *mailtos])):
        email = f"{m.group(1)}@{m.group(2)}".lower()
        # image@2x.png and friends
        if _ASSET_SUFFIX_RE.search(email):
            continue
        out.append(email)
    return tuple(_uniq(out)[:MAX_CONTACTS])


def _grab_phones(text: str) -> tuple[str, ...]:
    out = [re.sub(r"\s+", " ", m.group(0)).strip() for m in _PHONE_RE.finditer(text)]
    return tuple(_uniq(out)[:MAX_CONTACTS])


def _detect_platforms(raw: str, lexicon: Lexicon) -> tuple[str, ...]:
    hits = []
    for name, patterns in lexicon.platform_signatures:
        if any(re.search(p, raw, re.IGNORECASE) for p in patterns):
            hits.append(name)
    return tuple(hits)


def _detect_analytics(raw: str, lexicon: Lexicon) -> tuple[str, ...]:
    return tuple(name for name, pattern in lexicon.analytics_signatures if re.search(pattern, raw, re.IGNORECASE))


def detect_blog_date(text: str) -> BlogDate | None:
    """
    Most recent year/month mentioned in the text.

    Accepts "2024-03", "2024/3", "2024.03", "March 2024", "Mar 5, 2024".
    Month values outside 1..12 are ignored.
    """
    found: list[BlogDate] = []
    for m in _NUMERIC_DATE_RE.finditer(text):
        month = int(m.group(2))
        if 1 <= month <= 12:
            found.append(BlogDate(year=int(m.group(1)), month=month))
    for m in _MONTH_NAME_DATE_RE.finditer(text):
        month = _MONTHS.index(m.group(1).lower()[:3]) + 1
        found.append(BlogDate(year=int(m.group(2)), month=month))
    if not found:
        return None
    return max(found, key=lambda d: (d.year, d.month or 0))


# --- Subscores ---------------------------------------------------------------


def score_demand(
    *,
    has_cart: bool,
    rfq_phrases: tuple[str, ...],
    packaging_keywords: tuple[str, ...],
    text_lower: str,
    policy: SubscorePolicy = DEFAULT_POLICY,
) -> float:
    s = policy.demand_cart if has_cart else 0.0
    s += min(policy.demand_rfq_cap, len(rfq_phrases) * policy.demand_per_rfq)
    s += min(policy.demand_keyword_cap, len(packaging_keywords) * policy.demand_per_keyword)
    if re.search(policy.demand_commerce_pattern, text_lower):
        s += policy.demand_commerce_bonus
    return clamp01(s)


def score_procurement(
    *,
    rfq_phrases: tuple[str, ...],
    text_lower: str,
    policy: SubscorePolicy = DEFAULT_POLICY,
) -> float:
    s = min(policy.procurement_rfq_cap, len(rfq_phrases) * policy.procurement_per_rfq)
    if re.search(policy.procurement_terms_pattern, text_lower):
        s += policy.procurement_terms_bonus
    if re.search(r"\b(?:distributor|supplier)s?\b", text_lower):
        s += policy.procurement_supplier_bonus
    return clamp01(s)


def score_ops(
    *,
    ops_terms: tuple[str, ...],
    text_lower: str,
    policy: SubscorePolicy = DEFAULT_POLICY,
) -> float:
    s = min(policy.ops_term_cap, len(ops_terms) * policy.ops_per_term)
    if re.search(policy.ops_speed_pattern, text_lower):
        s += policy.ops_speed_bonus
    return clamp01(s)


def score_reputation(
    *,
    review_hints: tuple[str, ...],
    raw_html: str,
    policy: SubscorePolicy = DEFAULT_POLICY,
) -> float:
    s = min(policy.reputation_review_cap, len(review_hints) * policy.reputation_per_review)
    if re.search(policy.reputation_markup_pattern, raw_html, re.IGNORECASE):
        s += policy.reputation_markup_bonus
    if re.search(policy.reputation_stars_pattern, raw_html, re.IGNORECASE):
        s += policy.reputation_stars_bonus
    return clamp01(s)


def score_urgency(*, urgency_terms: tuple[str, ...], policy: SubscorePolicy = DEFAULT_POLICY) -> float:
    return clamp01(min(policy.urgency_term_cap, len(urgency_terms) * policy.urgency_per_term))


# --- Public API --------------------------------------------------------------


def extract(
    html: str | bytes,
    url: str,
    *,
    lexicon: Lexicon | None = None,
    policy: SubscorePolicy | None = None,
) -> ExtractedSignals:
    """
    Turn one fetched HTML document into an ExtractedSignals bundle.

    `url` is only used to resolve relative careers links; it is never
    fetched. Bytes are decoded as UTF-8 with replacement, which is what a
    byte-capped read that stopped mid-character needs.
    """
    lexicon = lexicon or DEFAULT_LEXICON
    policy = policy or DEFAULT_POLICY

    raw = html.decode("utf-8", errors="replace") if isinstance(html, bytes) else (html or "")
    soup = BeautifulSoup(raw, "html.parser")

    title = _grab_title(soup)
    description = _grab_description(soup)
    careers_links = _grab_careers_links(soup, url, lexicon.careers_link_text)
    text = _visible_text(soup)
    lower = text.lower()

    platform_hints = _detect_platforms(raw, lexicon)
    analytics_hints = _detect_analytics(raw, lexicon)
    has_cart = bool(re.search(lexicon.cart_signature, raw, re.IGNORECASE))

    packaging_keywords = find_terms(lower, lexicon.packaging_terms)
    rfq_phrases = find_phrases(lower, lexicon.rfq_phrases)
    review_hints = find_phrases(lower, lexicon.review_terms)
    ops_terms = find_terms(lower, lexicon.ops_terms)
    urgency_terms = find_terms(lower, lexicon.urgency_terms)
    supplier_mentions = find_terms(lower, lexicon.supplier_brands, limit=MAX_CONTACTS)

    return ExtractedSignals(
        title=title,
        description=description,
        emails=_grab_emails(text, soup),
        phones=_grab_phones(text),
        has_cart=has_cart,
        ecommerce_hint=platform_hints[0] if has_cart and platform_hints else None,
        packaging_keywords=packaging_keywords,
        rfq_phrases=rfq_phrases,
        review_hints=review_hints,
        platform_hints=platform_hints,
        analytics_hints=analytics_hints,
        careers_links=careers_links,
        supplier_mentions=supplier_mentions,
        ops_terms=ops_terms,
        urgency_terms=urgency_terms,
        blog_recentness=detect_blog_date(text),
        demand=score_demand(
            has_cart=has_cart,
            rfq_phrases=rfq_phrases,
            packaging_keywords=packaging_keywords,
            text_lower=lower,
            policy=policy,
        ),
        procurement=score_procurement(rfq_phrases=rfq_phrases, text_lower=lower, policy=policy),
        ops=score_ops(ops_terms=ops_terms, text_lower=lower, policy=policy),
        reputation=score_reputation(review_hints=review_hints, raw_html=raw, policy=policy),
        urgency=score_urgency(urgency_terms=urgency_terms, policy=policy),
    )


def guess_company_name(title: str | None, url: str) -> str | None:
    """
    Best-effort display name: the first segment of the page title with
    filler words removed, else the registrable part of the hostname.

        "Acme Packaging | Home" -> "Acme Packaging"
        (no title, https://www.acme-pack.com/) -> "Acme-pack"
    """
    if title:
        head = _TITLE_SPLIT_RE.split(title, maxsplit=1)[0]
        cleaned = re.sub(r"\s+", " ", _TITLE_FILLER_RE.sub("", head)).strip(" -|,")
        if len(cleaned) > 2:
            return cleaned
    try:
        host = host_root(parse_http_url(url).hostname or "")
    except ValueError:
        return None
    labels = host.split(".")
    root = " ".join(labels[:-1]) if len(labels) > 1 else host
    return root[:1].upper() + root[1:] if root else None


__all__ = [
    "extract",
    "guess_company_name",
    "detect_blog_date",
    "find_terms",
    "find_phrases",
    "score_demand",
    "score_procurement",
    "score_ops",
    "score_reputation",
    "score_urgency",
]
