# ruff: noqa: E402
# tests/conftest.py
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure project root importable
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from leadscout.models import (
    CrawlResult,
    CrawlStatus,
    ExtractedSignals,
    LeadCandidate,
)


class FakeClock:
    """
    Manual clock. sleep(dt) advances time instead of blocking, and every
    sleep is recorded so tests can assert on politeness gaps.
    """

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = float(start)
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, dt: float) -> None:
        dt = float(dt)
        self.sleeps.append(dt)
        if dt > 0:
            self.now += dt

    def advance(self, dt: float) -> None:
        self.now += float(dt)

    @property
    def slept(self) -> float:
        return sum(s for s in self.sleeps if s > 0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def make_candidate(website: str = "https://acme.ca", **signals) -> LeadCandidate:
    return LeadCandidate(website=website, signals=ExtractedSignals(**signals))


def make_ok_result(candidate: LeadCandidate, plan: str = "pro") -> CrawlResult:
    return CrawlResult(
        url=candidate.website + "/",
        status=CrawlStatus.OK,
        plan=plan,
        started_at=0.0,
        finished_at=1.0,
        lead=candidate,
    )
