# tests/test_fetch_client.py
from __future__ import annotations

import time
from dataclasses import replace

import httpx
import pytest
import respx
from httpx import Response

from leadscout.config import app_config
from leadscout.exceptions import FetchAborted, FetchTimeout
from leadscout.fetch import FetchTransport, is_allowed_content_type

HTML = {"Content-Type": "text/html; charset=utf-8"}


@respx.mock
def test_fetch_returns_body_and_meta():
    respx.get("https://acme.test/").mock(return_value=Response(200, headers=HTML, text="<p>hi</p>"))

    with FetchTransport() as t:
        r = t.fetch("https://acme.test/")

    assert r.status == 200
    assert r.body == b"<p>hi</p>"
    assert r.truncated is False
    assert r.content_type.startswith("text/html")


@respx.mock
def test_byte_budget_caps_body_without_raising():
    respx.get("https://big.test/").mock(return_value=Response(200, headers=HTML, content=b"x" * 50_000))

    with FetchTransport() as t:
        r = t.fetch("https://big.test/", max_bytes=1000)

    assert len(r.body) <= 1000
    assert r.truncated is True


@respx.mock
def test_non_html_body_is_not_read():
    respx.get("https://files.test/a.pdf").mock(
        return_value=Response(200, headers={"Content-Type": "application/pdf"}, content=b"%PDF-1.7")
    )

    with FetchTransport() as t:
        r = t.fetch("https://files.test/a.pdf")

    assert r.body == b""
    assert r.content_type == "application/pdf"


@respx.mock
def test_error_status_is_returned_not_raised():
    respx.get("https://gone.test/").mock(return_value=Response(404, headers=HTML, text="missing"))

    with FetchTransport() as t:
        r = t.fetch("https://gone.test/")

    assert r.status == 404


@respx.mock
def test_timeout_maps_to_fetch_timeout():
    respx.get("https://slow.test/").mock(side_effect=httpx.ReadTimeout("slow"))

    with FetchTransport() as t, pytest.raises(FetchTimeout):
        t.fetch("https://slow.test/", timeout_ms=50)


class _TrickleStream(httpx.SyncByteStream):
    """One byte at a time, each just inside any sane per-read timeout."""

    def __init__(self, chunks: int, gap_s: float) -> None:
        self.chunks = chunks
        self.gap_s = gap_s

    def __iter__(self):
        for _ in range(self.chunks):
            time.sleep(self.gap_s)
            yield b"x"


def test_trickling_body_is_cut_off_at_the_request_budget():
    def handler(request: httpx.Request) -> Response:
        return Response(200, headers=HTML, stream=_TrickleStream(chunks=20, gap_s=0.15))

    client = httpx.Client(transport=httpx.MockTransport(handler))
    started = time.monotonic()
    with client, FetchTransport(client=client) as t, pytest.raises(FetchTimeout):
        t.fetch("https://drip.test/", timeout_ms=400)

    # 20 chunks would take 3s; the budget stops it shortly after 0.4s.
    assert time.monotonic() - started < 1.0


@respx.mock
def test_connection_error_maps_to_fetch_aborted():
    respx.get("https://down.test/").mock(side_effect=httpx.ConnectError("refused"))

    with FetchTransport() as t, pytest.raises(FetchAborted):
        t.fetch("https://down.test/")


@respx.mock
def test_user_agent_identifies_bot():
    route = respx.get("https://ua.test/").mock(return_value=Response(200, headers=HTML, text="ok"))
    cfg = replace(app_config.fetch, user_agent="LeadScoutBot/test")

    with FetchTransport(config=cfg) as t:
        t.fetch("https://ua.test/")

    assert route.calls.last.request.headers["User-Agent"] == "LeadScoutBot/test"


@pytest.mark.parametrize(
    "ctype, expected",
    [
        ("text/html", True),
        ("TEXT/HTML; charset=utf-8", True),
        ("application/xhtml+xml", True),
        ("application/json", False),
        (None, False),
        ("", False),
    ],
)
def test_is_allowed_content_type(ctype, expected):
    assert is_allowed_content_type(ctype, ("text/html", "application/xhtml+xml")) is expected
