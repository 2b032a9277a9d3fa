# tests/test_cli.py
from __future__ import annotations

import json

import pytest

from leadscout import cli
from leadscout.models import QuietHours, Region


def test_extract_prints_signal_json(tmp_path, capsys):
    page = tmp_path / "page.html"
    page.write_text(
        "<html><head><title>Boxly | Shop</title></head>"
        "<body><p>Custom boxes, bulk pricing. Request a quote.</p></body></html>",
        encoding="utf-8",
    )

    rc = cli.main(["extract", str(page), "--url", "https://boxly.com/"])

    assert rc == 0
    out = json.loads(capsys.readouterr().out)
    assert out["title"] == "Boxly | Shop"
    assert "custom boxes" in out["packaging_keywords"]
    assert "request a quote" in out["rfq_phrases"]


def test_sweep_once_json(tmp_path, capsys):
    orgs = tmp_path / "orgs.json"
    orgs.write_text(
        json.dumps(
            [
                {"org_id": "acme", "plan": "pro", "lead_query": {"geos": ["CA"]}},
                {
                    "org_id": "boxly",
                    "plan": "free",
                    "cadence": {"quiet_hours": {"start": 0, "end": 0}},
                },
            ]
        ),
        encoding="utf-8",
    )

    rc = cli.main(["sweep", "--orgs", str(orgs), "--once", "--json"])

    assert rc == 0
    payload = json.loads(capsys.readouterr().out)
    by_org = {o["org_id"]: o for o in payload["outcomes"]}
    assert set(by_org) == {"acme", "boxly"}
    # start == end: always quiet, so a free org never gets discovery
    assert by_org["boxly"]["discover"] == 0
    assert all(e["org_id"] == "acme" for e in payload["envelopes"])


def test_discover_without_providers_exits_2(monkeypatch, capsys):
    for name in ("BRAVE_API_KEY", "BING_KEY", "GOOGLE_CSE_KEY", "GOOGLE_CSE_ID"):
        monkeypatch.delenv(name, raising=False)

    assert cli.main(["discover", "--focus", "tape"]) == 2
    assert "No search providers configured" in capsys.readouterr().out


@pytest.mark.parametrize(
    "text, region",
    [
        ("Canada", Region(country="Canada")),
        ("Ontario, Canada", Region(state="Ontario", country="Canada")),
        ("Toronto, Ontario, Canada", Region(city="Toronto", state="Ontario", country="Canada")),
    ],
)
def test_parse_region(text, region):
    assert cli.parse_region(text) == region


def test_org_from_dict_fills_defaults():
    org = cli.org_from_dict(
        {
            "org_id": 7,
            "lead_query": {"product_keywords": ["tape"], "intent_hints": ["rfq"]},
            "cadence": {"daily_discovery_target": 10, "quiet_hours": {"start": 22, "end": 6}},
            "caps": {"max_daily_tasks": 50},
        }
    )
    assert org.org_id == "7"
    assert org.plan == "free"
    assert org.timezone == "UTC"
    assert org.lead_query.product_keywords == ("tape",)
    assert org.lead_query.geos == ()
    assert org.cadence.quiet_hours == QuietHours(22, 6)
    assert org.cadence.daily_refresh_target is None
    assert org.caps.max_daily_tasks == 50


def test_missing_command_is_an_error():
    with pytest.raises(SystemExit):
        cli.main([])
