# tests/test_providers.py
from __future__ import annotations

import httpx
import pytest
import respx

from leadscout.exceptions import ProviderError
from leadscout.models import SearchQuery, SearchResult
from leadscout.providers import (
    BingSearchProvider,
    BraveSearchProvider,
    GoogleCSEProvider,
    StaticProvider,
    normalize_results,
    providers_from_env,
)

BRAVE = "https://api.search.brave.com/res/v1/web/search"
CSE = "https://www.googleapis.com/customsearch/v1"
Q = SearchQuery(text='stretch wrap "wholesale" Canada', tags=frozenset({"rfq", "wholesale"}))


@respx.mock
def test_brave_parses_results_and_stamps_query_tags():
    route = respx.get(url__startswith=BRAVE).mock(
        return_value=httpx.Response(
            200,
            json={
                "web": {
                    "results": [
                        {"url": "https://Acme.ca/#top", "title": "Acme", "description": "wrap"},
                        {"url": "https://acme.ca/", "title": "dup"},
                        {"title": "no url"},
                        {"url": "mailto:x@y.z"},
                    ]
                }
            },
        )
    )

    results = BraveSearchProvider("key-123", count=5).search(Q)

    assert results == [
        SearchResult(
            url="https://acme.ca/",
            provider_id="brave",
            title="Acme",
            snippet="wrap",
            tags=("rfq", "wholesale"),
        )
    ]
    req = route.calls.last.request
    assert req.headers["X-Subscription-Token"] == "key-123"
    assert req.url.params["q"] == Q.text
    assert req.url.params["count"] == "5"


@respx.mock
def test_bing_reads_web_pages_value():
    endpoint = "https://bing.test/v7.0/search"
    route = respx.get(url__startswith=endpoint).mock(
        return_value=httpx.Response(
            200,
            json={"webPages": {"value": [{"url": "https://boxly.com/shop", "name": "Boxly", "snippet": "s"}]}},
        )
    )

    (r,) = BingSearchProvider("bing-key", endpoint=endpoint).search(Q)

    assert (r.url, r.title, r.provider_id) == ("https://boxly.com/shop", "Boxly", "bing")
    assert route.calls.last.request.headers["Ocp-Apim-Subscription-Key"] == "bing-key"


@respx.mock
def test_cse_caps_num_and_reads_links():
    route = respx.get(url__startswith=CSE).mock(
        return_value=httpx.Response(200, json={"items": [{"link": "https://pack.co/", "title": "Pack"}]})
    )

    (r,) = GoogleCSEProvider("k", "cx-1", count=25).search(Q)

    assert r.url == "https://pack.co/"
    params = route.calls.last.request.url.params
    assert params["num"] == "10"
    assert params["cx"] == "cx-1"


@respx.mock
def test_empty_payload_is_no_results():
    respx.get(url__startswith=BRAVE).mock(return_value=httpx.Response(200, json={}))
    assert BraveSearchProvider("k").search(Q) == []


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="oops"),
        httpx.Response(429, json={"error": "slow down"}),
        httpx.Response(200, text="<html>not json</html>"),
    ],
)
@respx.mock
def test_bad_responses_raise_provider_error(response):
    respx.get(url__startswith=BRAVE).mock(return_value=response)
    with pytest.raises(ProviderError) as ei:
        BraveSearchProvider("k").search(Q)
    assert ei.value.provider_id == "brave"


@respx.mock
def test_transport_failure_raises_provider_error():
    respx.get(url__startswith=BRAVE).mock(side_effect=httpx.ConnectError("refused"))
    with pytest.raises(ProviderError):
        BraveSearchProvider("k").search(Q)


def test_paid_adapters_are_not_free_tier():
    assert BraveSearchProvider("k").is_free_tier_eligible is False
    assert StaticProvider().is_free_tier_eligible is True


def test_normalize_results_keeps_explicit_tags_and_drops_bad_urls():
    items = [
        SearchResult(url="https://a.test/x#frag", tags=("ecom",)),
        SearchResult(url="https://a.test/x"),
        SearchResult(url="javascript:void(0)"),
        SearchResult(url="https://b.test"),
    ]

    out = normalize_results(items, "p", Q)

    assert [(r.url, r.tags, r.provider_id) for r in out] == [
        ("https://a.test/x", ("ecom",), "p"),
        ("https://b.test/", ("rfq", "wholesale"), "p"),
    ]


def test_static_provider_supports_callables_and_records_calls():
    p = StaticProvider(lambda q: [SearchResult(url=f"https://{len(q.text)}.test/")], provider_id="fx")

    (r,) = p.search(SearchQuery(text="abc"))

    assert r.url == "https://3.test/"
    assert r.provider_id == "fx"
    assert [q.text for q in p.calls] == ["abc"]


def test_providers_from_env_only_builds_configured_adapters():
    assert providers_from_env({}) == []

    ids = [
        p.id
        for p in providers_from_env(
            {"BRAVE_API_KEY": "b", "BING_KEY": " ", "GOOGLE_CSE_KEY": "g", "GOOGLE_CSE_ID": "cx"}
        )
    ]
    assert ids == ["brave", "google_cse"]

    assert providers_from_env({"GOOGLE_CSE_KEY": "g"}) == []
