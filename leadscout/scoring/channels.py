# leadscout/scoring/channels.py
"""
Outreach channel ranking.

ChannelBandit keeps a Beta(alpha, beta) posterior per (segment, channel) from
recorded outreach outcomes and ranks the channels a lead exposes by

    ucb = alpha / (alpha + beta) + c * sqrt(ln(N + 1) / (n + 1))

where n is the arm's trials and N the segment's total. With no history every
arm scores the same and the static surface order wins the tie, so an
untrained bandit behaves like the router's heuristic.
"""

from __future__ import annotations

import hashlib
import math
import re
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Protocol

# static surface order; also the tie-break order
ARMS: tuple[str, ...] = ("email", "phone", "storefront", "contact_form", "app_inbox", "linkedin")
INBOX_PLATFORMS_RE = re.compile(r"Shopify|WooCommerce|Magento")
GLOBAL_SEGMENT = "global"


@dataclass(frozen=True)
class ChannelHints:
    has_cart: bool = False
    platform: str | None = None
    has_phones: bool = False
    has_emails: bool = False
    rfq: bool = False
    segment: str = GLOBAL_SEGMENT


class ChannelRanker(Protocol):
    def rank(self, hints: ChannelHints) -> list[str]: ...


@dataclass
class ArmStats:
    alpha: float = 1.0
    beta: float = 1.0
    trials: int = 0
    successes: int = 0

    @property
    def mean(self) -> float:
        return self.alpha / (self.alpha + self.beta)


def available_channels(hints: ChannelHints) -> list[str]:
    """Channels the lead's site actually exposes, in ARMS order."""
    present = {"contact_form", "linkedin"}
    if hints.has_emails:
        present.add("email")
    if hints.has_phones:
        present.add("phone")
    if hints.has_cart:
        present.add("storefront")
    if hints.platform and INBOX_PLATFORMS_RE.search(hints.platform):
        present.add("app_inbox")
    return [a for a in ARMS if a in present]


class ChannelBandit:
    def __init__(
        self,
        *,
        c: float = 1.4,
        priors: Mapping[str, tuple[float, float]] | None = None,
    ) -> None:
        self.c = c
        self._priors = dict(priors or {})
        self._segments: dict[str, dict[str, ArmStats]] = {}
        self._lock = threading.Lock()

    def _arm(self, segment: str, channel: str) -> ArmStats:
        arms = self._segments.setdefault(segment, {})
        arm = arms.get(channel)
        if arm is None:
            a, b = self._priors.get(channel, (1.0, 1.0))
            arm = arms[channel] = ArmStats(alpha=a, beta=b)
        return arm

    def record(self, segment: str, channel: str, success: bool) -> None:
        with self._lock:
            arm = self._arm(segment or GLOBAL_SEGMENT, channel)
            arm.trials += 1
            if success:
                arm.alpha += 1
                arm.successes += 1
            else:
                arm.beta += 1

    def rank(self, hints: ChannelHints) -> list[str]:
        candidates = available_channels(hints)
        segment = hints.segment or GLOBAL_SEGMENT
        with self._lock:
            arms = [self._arm(segment, ch) for ch in candidates]
            total = sum(a.trials for a in arms)
            scores = [
                a.mean + self.c * math.sqrt(math.log(total + 1) / (a.trials + 1)) for a in arms
            ]
        order = sorted(range(len(candidates)), key=lambda i: (-scores[i], i))
        return [candidates[i] for i in order]

    def stats(self, segment: str) -> dict[str, ArmStats]:
        with self._lock:
            return {
                ch: ArmStats(a.alpha, a.beta, a.trials, a.successes)
                for ch, a in self._segments.get(segment, {}).items()
            }


def _bucket(value: str | None, size: int) -> str:
    if not value:
        return "0"
    digest = hashlib.sha1(value.encode("utf-8")).hexdigest()
    return str(int(digest[:8], 16) % size)


def build_segment_key(
    org_id: str,
    *,
    industry: str | None = None,
    size_tier: str = "s",
    timezone: str | None = None,
    signals: Iterable[str] = (),
) -> str:
    """Coarse segment key: org plus bucketed industry and signal set."""
    sig = ",".join(sorted(list(signals)[:3]))
    tz = re.sub(r"\W", "", timezone or "x")[:5]
    return ":".join(
        [
            "org",
            org_id or "x",
            "ind",
            _bucket(industry or "x", 64),
            "sz",
            size_tier,
            "tz",
            tz,
            "sg",
            _bucket(sig, 128),
        ]
    )


__all__ = [
    "ARMS",
    "ChannelHints",
    "ChannelRanker",
    "ChannelBandit",
    "ArmStats",
    "available_channels",
    "build_segment_key",
]
