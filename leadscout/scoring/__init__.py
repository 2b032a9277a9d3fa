# leadscout/scoring/__init__.py
from .channels import ChannelBandit, ChannelHints, ChannelRanker, build_segment_key
from .router import PRESETS, LeadRouter, classify, compute_match, compute_score

__all__ = [
    "LeadRouter",
    "PRESETS",
    "classify",
    "compute_match",
    "compute_score",
    "ChannelBandit",
    "ChannelHints",
    "ChannelRanker",
    "build_segment_key",
]
