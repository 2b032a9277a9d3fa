# tests/test_seeds_queries.py
from __future__ import annotations

import pytest

from leadscout.config import plan_caps
from leadscout.crawl.queries import DEFAULT_FOCUSES, INTENT_PHRASES, build_queries
from leadscout.crawl.seeds import (
    Denylist,
    bare_domain,
    guess_region_from_host,
    is_pdf,
    is_social_profile,
    merge_seeds,
    seed_priority,
    seeds_to_tasks,
)
from leadscout.models import LeadSeed, Region, SearchResult, SeedSource, UserDiscoveryInput


# ---- queries ----
def test_queries_are_capped_and_unique():
    qs = build_queries(UserDiscoveryInput(), max_queries=50)
    assert len(qs) == 50
    assert len({q.dedupe_key for q in qs}) == 50


def test_focus_intent_family_comes_first_with_tags():
    qs = build_queries(UserDiscoveryInput(focuses=("stretch wrap",)), max_queries=100)
    first = qs[: len(INTENT_PHRASES)]
    assert all(q.text.startswith("stretch wrap ") for q in first)
    assert all(q.tags == frozenset({"rfq", "wholesale"}) for q in first)


def test_regions_are_crossed_into_query_text():
    intent = UserDiscoveryInput(
        focuses=("tape",),
        geo=(Region(country="Canada"), Region(city="Austin", state="TX", country="US")),
    )
    qs = build_queries(intent, max_queries=200)
    assert any(q.text.endswith("Canada") and q.region == Region(country="Canada") for q in qs)
    assert any(q.text.endswith("Austin TX US") for q in qs)


def test_competitor_mining_only_with_website():
    without = build_queries(UserDiscoveryInput(focuses=("tape",)), max_queries=200)
    with_site = build_queries(UserDiscoveryInput(focuses=("tape",), website="www.mybrand.com"), max_queries=200)

    assert not any("related" in q.tags for q in without)
    texts = [q.text for q in with_site]
    assert "related:www.mybrand.com" in texts
    assert 'intitle:"packaging" site:mybrand.com' in texts


def test_default_focuses_used_when_none_given():
    qs = build_queries(UserDiscoveryInput(), max_queries=500)
    for focus in DEFAULT_FOCUSES:
        assert any(q.text.startswith(focus) for q in qs)


def test_build_queries_is_deterministic():
    intent = UserDiscoveryInput(focuses=("void fill", "tape"), extra_keywords=("eco mailers",))
    assert build_queries(intent) == build_queries(intent)


# ---- seeds ----
def test_merge_dedupes_by_host_first_wins():
    seeds = merge_seeds(
        [
            SearchResult(url="https://acme.ca/a", relevance=0.3),
            SearchResult(url="https://www.acme.ca/b", relevance=0.9),
        ]
    )
    assert [s.url for s in seeds] == ["https://acme.ca/a"]


def test_merge_drops_social_pdf_and_malformed():
    seeds = merge_seeds(
        [
            SearchResult(url="https://www.facebook.com/acme"),
            SearchResult(url="https://x.com/acme"),
            SearchResult(url="https://acme.test/catalog.pdf"),
            SearchResult(url="ftp://acme.test/"),
            SearchResult(url="not a url"),
            SearchResult(url="https://real.test/"),
        ]
    )
    assert [s.url for s in seeds] == ["https://real.test/"]


def test_seed_score_and_sort():
    seeds = merge_seeds(
        [
            SearchResult(url="https://low.test/", relevance=0.2),
            SearchResult(url="https://rfq.test/", relevance=0.7, tags=("rfq",)),
            SearchResult(url="https://none.test/"),
        ]
    )
    assert [(s.url, s.seed_score) for s in seeds] == [
        ("https://rfq.test/", pytest.approx(0.9)),
        ("https://none.test/", pytest.approx(0.5)),
        ("https://low.test/", pytest.approx(0.2)),
    ]
    assert seeds[0].source is SeedSource.USER_KEYWORDS


def test_seed_score_is_clamped():
    (s,) = merge_seeds([SearchResult(url="https://hot.test/", relevance=0.95, tags=("rfq",))])
    assert s.seed_score == 1.0


def test_denylist_exact_and_bare_domain_match():
    d = Denylist(["Uline.com", "https://www.grainger.com/x"])
    assert d.matches("www.uline.com")
    assert d.matches("shop.uline.com")
    assert d.matches("grainger.com")
    assert not d.matches("myuline.com")


def test_bare_domain_handles_multi_part_suffix():
    assert bare_domain("shop.acme.co.uk") == "acme.co.uk"
    assert bare_domain("www.acme.com") == "acme.com"


@pytest.mark.parametrize(
    "host, region",
    [
        ("acme.ca", Region(country="Canada")),
        ("acme.us", Region(country="United States")),
        ("acme.com", None),
        ("", None),
    ],
)
def test_region_guess_from_tld(host, region):
    assert guess_region_from_host(host) == region


def test_social_and_pdf_detectors():
    assert is_social_profile("https://www.linkedin.com/company/acme")
    assert not is_social_profile("https://boxes.com/linkedin")
    assert is_pdf("https://a.test/spec.PDF?dl=1")
    assert not is_pdf("https://a.test/pdf-guide")


def test_seed_priority_adds_tag_bonuses():
    seed = LeadSeed(source=SeedSource.USER_KEYWORDS, url="https://a.test/", seed_score=0.5, tags=("rfq", "ecom"))
    assert seed_priority(seed) == pytest.approx(80)


def test_seeds_to_tasks_uses_plan_budgets():
    caps = plan_caps("pro")
    seeds = [
        LeadSeed(source=SeedSource.USER_KEYWORDS, url=f"https://s{i}.test/", seed_score=0.5, region=None)
        for i in range(3)
    ]
    tasks = seeds_to_tasks(seeds, "pro", caps)
    assert [t.timeout_ms for t in tasks] == [15_000] * 3
    assert [t.max_bytes for t in tasks] == [2_000_000] * 3
    assert all(t.plan == "pro" for t in tasks)
