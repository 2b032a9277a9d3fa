# leadscout/scoring/router.py
"""
LeadRouter: LeadCandidate + UserDiscoveryInput -> LeadRouteDecision.

  match  Jaccard(focuses, packaging keywords), both sides synonym-expanded;
         0.5 when the user named no focuses
  score  round(100 * clamp01(core * (0.7 + 0.45 * match) + bump))
         core = subscores . normalized weights
         bump = 0.07 if RFQ phrases + 0.05 if cart
  tier   first matching rule in TIER_RULES, else skip
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from leadscout.models import (
    ExtractedSignals,
    LeadCandidate,
    LeadRouteDecision,
    LeadTier,
    ScoringWeights,
    UserDiscoveryInput,
)
from leadscout.utils import clamp01

from .channels import ChannelHints, ChannelRanker, INBOX_PLATFORMS_RE

log = logging.getLogger(__name__)

PRESETS: dict[str, ScoringWeights] = {
    "balanced": ScoringWeights(demand=0.25, procurement=0.2, ops=0.2, reputation=0.2, urgency=0.15),
    "fast-close": ScoringWeights(demand=0.35, procurement=0.25, ops=0.15, reputation=0.1, urgency=0.15),
    "lifetime": ScoringWeights(demand=0.2, procurement=0.2, ops=0.2, reputation=0.3, urgency=0.1),
    "goodwill": ScoringWeights(demand=0.15, procurement=0.15, ops=0.15, reputation=0.45, urgency=0.1),
    "custom": ScoringWeights(demand=0.25, procurement=0.2, ops=0.2, reputation=0.2, urgency=0.15),
}
DEFAULT_PRESET = "balanced"

SYNONYMS: dict[str, tuple[str, ...]] = {
    "stretch wrap": ("pallet wrap", "pallet film", "stretch film"),
    "pallet wrap": ("stretch wrap", "stretch film"),
    "shrink wrap": ("shrink film",),
    "custom boxes": ("printed boxes", "branded boxes", "corrugated boxes"),
    "corrugated": ("corrugated boxes", "boxes"),
    "void fill": ("packing peanuts", "air pillows", "inflatable void fill", "kraft paper", "packing paper"),
    "tape": ("water-activated tape", "filament tape", "strapping tape"),
    "poly mailers": ("mailers",),
    "labels": ("shipping labels", "thermal labels"),
}

NEUTRAL_MATCH = 0.5
PMF_FLOOR = 0.7
PMF_SPAN = 0.45
RFQ_BUMP = 0.07
CART_BUMP = 0.05
HIGH_OPS = 0.55

# (min score, min match, requires strong intent, requires high ops, tier)
TIER_RULES: tuple[tuple[int, float, bool, bool, LeadTier], ...] = (
    (80, 0.75, True, False, LeadTier.HOT),
    (65, 0.55, False, False, LeadTier.HOT),
    (55, 0.40, False, False, LeadTier.WARM),
    (50, 0.0, False, True, LeadTier.WARM),
)

DEFAULT_CHANNELS: tuple[str, ...] = ("contact_form", "email", "linkedin")
MAX_CHANNELS = 3


# ---- Matching ----
def normalize_terms(terms: Iterable[str]) -> set[str]:
    return {" ".join(t.lower().split()) for t in terms if t and t.strip()}


def expand_synonyms(terms: set[str]) -> set[str]:
    out = set(terms)
    for t in terms:
        out.update(SYNONYMS.get(t, ()))
    return out


def compute_match(focuses: Iterable[str], keywords: Iterable[str]) -> float:
    wanted = normalize_terms(focuses)
    if not wanted:
        return NEUTRAL_MATCH
    a = expand_synonyms(wanted)
    b = expand_synonyms(normalize_terms(keywords))
    union = a | b
    return len(a & b) / len(union) if union else 0.0


# ---- Scoring ----
def resolve_weights(intent: UserDiscoveryInput) -> ScoringWeights:
    """Explicit weights win; otherwise the named playbook preset (balanced by default)."""
    if intent.weights is not None:
        return intent.weights
    name = (intent.playbook or DEFAULT_PRESET).strip().lower()
    preset = PRESETS.get(name)
    if preset is None:
        log.warning("unknown playbook %r; using %s", intent.playbook, DEFAULT_PRESET)
        preset = PRESETS[DEFAULT_PRESET]
    return preset


def compute_score(signals: ExtractedSignals, weights: ScoringWeights, match: float) -> int:
    w = weights.normalized()
    core = sum(getattr(signals, name) * share for name, share in w.items())
    pmf = PMF_FLOOR + PMF_SPAN * clamp01(match)
    bump = (RFQ_BUMP if signals.rfq_phrases else 0.0) + (CART_BUMP if signals.has_cart else 0.0)
    return round(clamp01(core * pmf + bump) * 100)


def classify(score: int, match: float, signals: ExtractedSignals) -> LeadTier:
    high_ops = signals.ops >= HIGH_OPS
    for min_score, min_match, needs_intent, needs_ops, tier in TIER_RULES:
        if score < min_score or match < min_match:
            continue
        if needs_intent and not signals.strong_intent:
            continue
        if needs_ops and not high_ops:
            continue
        return tier
    return LeadTier.SKIP


# ---- Router ----
class LeadRouter:
    """
    Scores and tiers one lead. `ranker` is an optional channel-ranking
    strategy (e.g. ChannelBandit); without one, channels come from the
    contact surfaces found on the page.
    """

    def __init__(self, ranker: ChannelRanker | None = None) -> None:
        self.ranker = ranker

    def route(
        self,
        candidate: LeadCandidate,
        intent: UserDiscoveryInput,
        plan: str,
    ) -> LeadRouteDecision:
        s = candidate.signals
        weights = resolve_weights(intent)
        match = compute_match(intent.focuses, s.packaging_keywords)
        score = compute_score(s, weights, match)
        tier = classify(score, match, s)
        channels = self.rank_channels(candidate)
        log.debug(
            "routed %s plan=%s score=%d match=%.2f tier=%s",
            candidate.website,
            plan,
            score,
            match,
            tier.value,
        )
        return LeadRouteDecision(
            tier=tier,
            score=score,
            match=match,
            reasons=tuple(reasons_for(s)),
            preferred_channels=tuple(channels),
            next_actions=tuple(next_actions(candidate, tier, channels)),
        )

    def rank_channels(self, candidate: LeadCandidate) -> list[str]:
        s = candidate.signals
        if self.ranker is not None:
            hints = ChannelHints(
                has_cart=s.has_cart,
                platform=s.platform_hints[0] if s.platform_hints else None,
                has_phones=bool(s.phones),
                has_emails=bool(s.emails),
                rfq=bool(s.rfq_phrases),
            )
            try:
                ranked = _unique(self.ranker.rank(hints))
            except Exception:  # noqa: BLE001
                log.warning("channel ranker failed; using heuristic order", exc_info=True)
                ranked = []
            if ranked:
                return ranked[:MAX_CHANNELS]
        return heuristic_channels(s)[:MAX_CHANNELS]


def heuristic_channels(s: ExtractedSignals) -> list[str]:
    out: list[str] = []
    if s.emails:
        out.append("email")
    if s.phones:
        out.append("phone")
    if s.has_cart:
        out.append("storefront")
    if s.rfq_phrases:
        out.append("contact_form")
    if any(INBOX_PLATFORMS_RE.search(p) for p in s.platform_hints):
        out.append("app_inbox")
    return _unique(out) or list(DEFAULT_CHANNELS)


def reasons_for(s: ExtractedSignals) -> list[str]:
    reasons: list[str] = []
    if s.rfq_phrases:
        reasons.append("RFQ/wholesale intent detected")
    if s.has_cart:
        reasons.append("Active e-commerce (cart/checkout present)")
    if s.review_hints:
        reasons.append("Public reviews or ratings found")
    if s.platform_hints:
        reasons.append(f"Platform: {', '.join(s.platform_hints)}")
    if s.supplier_mentions:
        reasons.append("Mentions of supplier brands")
    return reasons


def next_actions(candidate: LeadCandidate, tier: LeadTier, channels: list[str]) -> list[str]:
    s = candidate.signals
    name = candidate.company_guess or candidate.website
    actions: list[str] = []
    if tier is LeadTier.HOT:
        actions.append(f"Prioritize outreach to {name} via {channels[0]}.")
        if s.has_cart:
            actions.append("Add a product-fit bundle to the pitch based on detected catalog keywords.")
        if s.review_hints:
            actions.append("Reference recent reviews or social proof in the opener.")
        if s.supplier_mentions:
            actions.append("Position as an alternative to their mentioned supplier.")
    elif tier is LeadTier.WARM:
        actions.append(f"Queue a nurturing sequence to {name} across {' + '.join(channels[:2])}.")
        if s.careers_links:
            actions.append("Mention hiring and scale signals to align on ops timing.")
        actions.append("Offer a sample pack or pilot MOQ to accelerate intent.")
    else:
        actions.append("Defer; monitor for new intent triggers (RFQ, blog updates, ops changes).")
    return actions


def _unique(items: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for i in items:
        if i and i not in seen:
            seen.add(i)
            out.append(i)
    return out


__all__ = [
    "LeadRouter",
    "PRESETS",
    "SYNONYMS",
    "compute_match",
    "compute_score",
    "classify",
    "resolve_weights",
    "heuristic_channels",
    "next_actions",
]
