"""Normalized public-activity feed: value objects, normalization, aggregation."""

from __future__ import annotations

from .aggregator import ActivityAggregator, AggregatorConfig
from .models import (
    ActivityActor,
    ActivityItem,
    ActivityKind,
    ActivityRepo,
    ActivityResponse,
    ActivityResult,
    Profile,
    PullRequestReviewState,
)
from .normalize import normalize, normalize_preview, summarize_text
from .profile import fetch_profile

__all__ = [
    "ActivityActor",
    "ActivityAggregator",
    "ActivityItem",
    "ActivityKind",
    "ActivityRepo",
    "ActivityResponse",
    "ActivityResult",
    "AggregatorConfig",
    "Profile",
    "PullRequestReviewState",
    "fetch_profile",
    "normalize",
    "normalize_preview",
    "summarize_text",
]
