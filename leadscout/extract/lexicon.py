# leadscout/extract/lexicon.py
"""
Static term lists, regex signatures and subscore weights for the extractor.

A Lexicon answers "what do we look for"; a SubscorePolicy answers "how much
does each finding count". Both are immutable and passed into the extractor,
so tests (or a YAML override) can swap either without touching extraction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

log = logging.getLogger(__name__)


PACKAGING_TERMS: tuple[str, ...] = (
    "stretch wrap",
    "stretch film",
    "pallet wrap",
    "pallet film",
    "shrink wrap",
    "shrink film",
    "bundling film",
    "corrugated",
    "corrugated boxes",
    "custom boxes",
    "printed boxes",
    "mailers",
    "poly mailers",
    "bubble mailers",
    "void fill",
    "packing peanuts",
    "air pillows",
    "inflatable void fill",
    "kraft paper",
    "packing paper",
    "tape",
    "water-activated tape",
    "filament tape",
    "strapping",
    "poly strapping",
    "steel strapping",
    "labels",
    "shipping labels",
    "thermal labels",
    "bubble wrap",
    "foam wrap",
    "edge protectors",
    "corner guards",
    "stretch hood",
    "pallet covers",
    "gaylord",
    "poly bags",
    "zipper bags",
    "pouches",
    "sustainable packaging",
    "recycled packaging",
    "compostable mailers",
    "eco mailers",
)

RFQ_PHRASES: tuple[str, ...] = (
    "request a quote",
    "request quote",
    "get a quote",
    "get quote",
    "rfq",
    "wholesale",
    "distributor",
    "supplier",
    "bulk pricing",
    "volume pricing",
    "moq",
    "minimum order",
    "purchase order",
    "net 30",
    "quote form",
)

REVIEW_TERMS: tuple[str, ...] = (
    "reviews",
    "ratings",
    "testimonials",
    "trustpilot",
    "google reviews",
    "yotpo",
    "judge.me",
    "reviews.io",
    "sitejabber",
    "bbb rating",
)

OPS_TERMS: tuple[str, ...] = (
    "warehouse",
    "fulfillment",
    "3pl",
    "pick and pack",
    "same-day",
    "same day",
    "kitting",
    "carrier",
    "dispatch",
    "dock",
    "pallet",
    "forklift",
    "inventory",
    "erp",
    "wms",
    "logistics",
    "shipstation",
    "shippo",
    "easyship",
    "fedex",
    "ups",
    "usps",
    "dhl",
)

URGENCY_TERMS: tuple[str, ...] = (
    "rush",
    "expedite",
    "ships today",
    "ship today",
    "lead time",
    "backorder",
    "limited time",
    "sale ends",
    "flash sale",
    "low stock",
    "restock",
    "while supplies last",
    "last chance",
)

SUPPLIER_BRANDS: tuple[str, ...] = (
    "uline",
    "veritiv",
    "sealed air",
    "pregis",
    "westrock",
    "intertape",
    "berry global",
    "avery dennison",
    "ds smith",
    "stora enso",
    "amcor",
    "smurfit kappa",
    "packlane",
    "packhelp",
)

# name -> regex alternatives, evaluated on raw HTML (scripts included)
PLATFORM_SIGNATURES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Shopify", (r"cdn\.shopify\.com", r"x-shopify", r"shopify-buy", r"Shopify\.theme")),
    ("WooCommerce", (r"woocommerce", r"wp-content/plugins/woocommerce")),
    ("BigCommerce", (r"cdn\d*\.bigcommerce", r"bigcommerce\.com/s-")),
    ("Magento", (r"mage/cookies", r"Magento_")),
    ("Wix", (r"static\.wixstatic\.com", r"wix-code")),
    ("Squarespace", (r"static1\.squarespace\.com", r"sqs-block")),
    ("Etsy", (r"etsy\.com/(?:shop|listing)",)),
    ("Amazon", (r"amazon\.(?:com|ca)/(?:dp|gp|stores)",)),
)

ANALYTICS_SIGNATURES: tuple[tuple[str, str], ...] = (
    ("gtm", r"googletagmanager\.com/gtm\.js"),
    ("gtag", r"gtag\(\s*['\"]config['\"]"),
    ("ga", r"ga\(\s*['\"]create['\"]"),
    ("fbq", r"connect\.facebook\.net/[^\"']*fbevents\.js|fbq\("),
    ("hotjar", r"static\.hotjar\.com|hotjar\.com/c/hotjar"),
    ("clarity", r"clarity\.ms/tag|clarity\.ms/clarity"),
    ("hubspot", r"js\.hs-scripts\.com|tag\.hs-scripts\.com"),
    ("pardot", r"pi\.pardot\.com|js\.pardot\.com"),
)

CART_SIGNATURE = r"add to cart|add-to-cart|cart-count|cart__count|data-cart-token|/checkout\b"

CAREERS_LINK_TEXT = r"career|jobs|join our team|we'?re hiring|openings"


@dataclass(frozen=True)
class Lexicon:
    packaging_terms: tuple[str, ...] = PACKAGING_TERMS
    rfq_phrases: tuple[str, ...] = RFQ_PHRASES
    review_terms: tuple[str, ...] = REVIEW_TERMS
    ops_terms: tuple[str, ...] = OPS_TERMS
    urgency_terms: tuple[str, ...] = URGENCY_TERMS
    supplier_brands: tuple[str, ...] = SUPPLIER_BRANDS
    platform_signatures: tuple[tuple[str, tuple[str, ...]], ...] = PLATFORM_SIGNATURES
    analytics_signatures: tuple[tuple[str, str], ...] = ANALYTICS_SIGNATURES
    cart_signature: str = CART_SIGNATURE
    careers_link_text: str = CAREERS_LINK_TEXT


@dataclass(frozen=True)
class SubscorePolicy:
    """
    Saturating weights for the five subscores. Each subscore is a sum of
    capped contributions, clamped to [0, 1] by the extractor.
    """

    # demand
    demand_cart: float = 0.35
    demand_per_rfq: float = 0.12
    demand_rfq_cap: float = 0.35
    demand_per_keyword: float = 0.04
    demand_keyword_cap: float = 0.25
    demand_commerce_bonus: float = 0.1
    demand_commerce_pattern: str = r"in stock|free shipping|volume discount|wholesale"
    # procurement
    procurement_per_rfq: float = 0.15
    procurement_rfq_cap: float = 0.6
    procurement_terms_bonus: float = 0.2
    procurement_terms_pattern: str = r"purchase order|net 30|payment terms"
    procurement_supplier_bonus: float = 0.2
    # ops
    ops_per_term: float = 0.12
    ops_term_cap: float = 0.6
    ops_speed_bonus: float = 0.2
    ops_speed_pattern: str = r"same[- ]day|next[- ]day"
    # reputation
    reputation_per_review: float = 0.12
    reputation_review_cap: float = 0.5
    reputation_markup_bonus: float = 0.25
    reputation_markup_pattern: str = r"itemprop=[\"']reviewRating[\"']|itemprop=[\"']aggregateRating[\"']"
    reputation_stars_bonus: float = 0.1
    reputation_stars_pattern: str = r"(?:class|aria-label)=[\"'][^\"']*\bstars?\b"
    # urgency
    urgency_per_term: float = 0.15
    urgency_term_cap: float = 0.7


DEFAULT_LEXICON = Lexicon()
DEFAULT_POLICY = SubscorePolicy()


def _as_terms(value: Any, name: str) -> tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"lexicon key {name!r} must be a list of strings")
    return tuple(v.strip().lower() for v in value if v.strip())


def load_lexicon(path: str | Path | None = None) -> Lexicon:
    """
    Build a Lexicon, overriding term lists from a YAML file when given.

    Recognised top-level keys are the list-valued Lexicon fields
    (packaging_terms, rfq_phrases, review_terms, ops_terms, urgency_terms,
    supplier_brands). Unknown keys are ignored with a warning. A missing
    path, or an empty one, returns the built-in lexicon.
    """
    if not path:
        return DEFAULT_LEXICON
    p = Path(path)
    if not p.exists():
        log.warning("lexicon file %s not found; using built-in lexicon", p)
        return DEFAULT_LEXICON

    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"lexicon file {p} must contain a mapping")

    term_fields = {
        f.name
        for f in fields(Lexicon)
        if f.name
        in {
            "packaging_terms",
            "rfq_phrases",
            "review_terms",
            "ops_terms",
            "urgency_terms",
            "supplier_brands",
        }
    }
    overrides: dict[str, tuple[str, ...]] = {}
    for key, value in data.items():
        if key not in term_fields:
            log.warning("ignoring unknown lexicon key %r in %s", key, p)
            continue
        overrides[key] = _as_terms(value, key)
    return replace(DEFAULT_LEXICON, **overrides)


__all__ = [
    "Lexicon",
    "SubscorePolicy",
    "DEFAULT_LEXICON",
    "DEFAULT_POLICY",
    "load_lexicon",
    "PACKAGING_TERMS",
    "RFQ_PHRASES",
]
