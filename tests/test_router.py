# tests/test_router.py
from __future__ import annotations

import itertools

import pytest

from conftest import make_candidate
from leadscout.models import ExtractedSignals, LeadTier, ScoringWeights, UserDiscoveryInput
from leadscout.scoring import LeadRouter
from leadscout.scoring.router import (
    DEFAULT_CHANNELS,
    PRESETS,
    classify,
    compute_match,
    compute_score,
    heuristic_channels,
    resolve_weights,
)


def test_hot_lead_with_rfq_cart_and_exact_focus():
    cand = make_candidate(
        demand=1.0,
        rfq_phrases=("rfq",),
        has_cart=True,
        packaging_keywords=("stretch wrap",),
        emails=("sales@acme.ca",),
    )
    intent = UserDiscoveryInput(
        focuses=("stretch wrap",),
        weights=ScoringWeights(demand=1, procurement=0, ops=0, reputation=0, urgency=0),
    )

    d = LeadRouter().route(cand, intent, "pro")

    assert d.tier is LeadTier.HOT
    assert d.score == 100
    assert d.match == pytest.approx(1.0)
    assert "RFQ/wholesale intent detected" in d.reasons
    assert "Active e-commerce (cart/checkout present)" in d.reasons
    assert d.preferred_channels[0] == "email"
    assert d.next_actions[0] == "Prioritize outreach to https://acme.ca via email."


def test_empty_signals_are_skipped_with_defer_action():
    d = LeadRouter().route(make_candidate(), UserDiscoveryInput(), "free")

    assert d.tier is LeadTier.SKIP
    assert d.score == 0
    assert d.reasons == ()
    assert d.preferred_channels == DEFAULT_CHANNELS
    assert d.next_actions[0].startswith("Defer")


def test_high_ops_lead_is_warm():
    cand = make_candidate(ops=0.6, careers_links=("https://acme.ca/careers",))
    intent = UserDiscoveryInput(weights=ScoringWeights(0, 0, 1, 0, 0))

    d = LeadRouter().route(cand, intent, "free")

    assert d.tier is LeadTier.WARM
    assert d.next_actions[0].startswith("Queue a nurturing sequence")
    assert "Mention hiring and scale signals to align on ops timing." in d.next_actions


@pytest.mark.parametrize("weights", list(itertools.product((0.0, 0.5, 3.0), repeat=5))[::7])
@pytest.mark.parametrize("level", [0.0, 1.0])
def test_score_is_always_within_bounds(weights, level):
    signals = ExtractedSignals(
        demand=level,
        procurement=level,
        ops=level,
        reputation=level,
        urgency=level,
        rfq_phrases=("rfq",),
        has_cart=True,
    )
    for match in (0.0, 0.5, 1.0):
        score = compute_score(signals, ScoringWeights(*weights), match)
        assert 0 <= score <= 100


def test_weights_are_normalized_before_use():
    signals = ExtractedSignals(demand=0.8, ops=0.4)
    a = compute_score(signals, ScoringWeights(1, 0, 1, 0, 0), 0.5)
    b = compute_score(signals, ScoringWeights(10, 0, 10, 0, 0), 0.5)
    assert a == b


def test_negative_weight_rejected():
    with pytest.raises(ValueError):
        ScoringWeights(demand=-0.1)


@pytest.mark.parametrize("score", range(0, 101, 5))
@pytest.mark.parametrize("strong", [False, True])
def test_tier_never_drops_as_match_rises(score, strong):
    signals = ExtractedSignals(rfq_phrases=("rfq",) if strong else (), ops=0.6)
    ranks = [classify(score, m / 20, signals).rank for m in range(21)]
    assert ranks == sorted(ranks)


def test_no_focuses_gives_neutral_match():
    assert compute_match((), ("stretch wrap", "tape")) == 0.5


def test_match_is_jaccard_over_expanded_terms():
    assert compute_match(("Stretch  Wrap",), ("stretch wrap",)) == pytest.approx(1.0)
    assert compute_match(("labels",), ("tape",)) == 0.0
    # synonyms bridge different vocabularies
    assert compute_match(("pallet wrap",), ("stretch film",)) > 0.0


def test_playbook_presets_and_overrides(caplog):
    assert resolve_weights(UserDiscoveryInput()) == PRESETS["balanced"]
    assert resolve_weights(UserDiscoveryInput(playbook="Goodwill")) == PRESETS["goodwill"]

    custom = ScoringWeights(1, 1, 1, 1, 1)
    assert resolve_weights(UserDiscoveryInput(playbook="goodwill", weights=custom)) is custom

    assert resolve_weights(UserDiscoveryInput(playbook="yolo")) == PRESETS["balanced"]
    assert "unknown playbook" in caplog.text


def test_heuristic_channels_follow_contact_surfaces():
    s = ExtractedSignals(
        emails=("a@b.test",),
        phones=("555",),
        has_cart=True,
        rfq_phrases=("rfq",),
        platform_hints=("Shopify",),
    )
    assert heuristic_channels(s) == ["email", "phone", "storefront", "contact_form", "app_inbox"]
    assert heuristic_channels(ExtractedSignals()) == list(DEFAULT_CHANNELS)


def test_router_caps_channels_at_three():
    cand = make_candidate(emails=("a@b.test",), phones=("555",), has_cart=True, rfq_phrases=("rfq",))
    d = LeadRouter().route(cand, UserDiscoveryInput(), "pro")
    assert d.preferred_channels == ("email", "phone", "storefront")


class ListRanker:
    def __init__(self, order):
        self.order = order
        self.hints = []

    def rank(self, hints):
        self.hints.append(hints)
        return list(self.order)


class BrokenRanker:
    def rank(self, hints):
        raise RuntimeError("model unavailable")


def test_injected_ranker_orders_channels():
    ranker = ListRanker(["linkedin", "linkedin", "phone", "email", "storefront"])
    cand = make_candidate(phones=("555",), platform_hints=("WooCommerce",))

    d = LeadRouter(ranker=ranker).route(cand, UserDiscoveryInput(), "pro")

    assert d.preferred_channels == ("linkedin", "phone", "email")
    (hints,) = ranker.hints
    assert hints.has_phones is True
    assert hints.has_emails is False
    assert hints.platform == "WooCommerce"


def test_failing_or_empty_ranker_falls_back_to_heuristic(caplog):
    cand = make_candidate(emails=("a@b.test",))

    broken = LeadRouter(ranker=BrokenRanker()).route(cand, UserDiscoveryInput(), "pro")
    empty = LeadRouter(ranker=ListRanker([])).route(cand, UserDiscoveryInput(), "pro")

    assert broken.preferred_channels == ("email",)
    assert empty.preferred_channels == ("email",)
    assert "channel ranker failed" in caplog.text


def test_routing_is_deterministic():
    cand = make_candidate(demand=0.7, procurement=0.4, review_hints=("reviews",), supplier_mentions=("uline",))
    intent = UserDiscoveryInput(focuses=("custom boxes",), playbook="fast-close")
    router = LeadRouter()
    assert router.route(cand, intent, "pro") == router.route(cand, intent, "pro")
