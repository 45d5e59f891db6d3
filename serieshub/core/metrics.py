"""
Prometheus counters exposed at ``/metrics``.
"""
from __future__ import annotations

from prometheus_client import Counter

COMMENTS_CREATED = Counter(
    "serieshub_comments_created_total",
    "Comments created, split by top-level vs reply",
    ["kind"],
)

LIKE_TOGGLES = Counter(
    "serieshub_comment_like_toggles_total",
    "Comment like toggles by resulting action",
    ["action"],
)

SERIES_VIEWS = Counter(
    "serieshub_series_view_increments_total",
    "Series view counter increments",
)
