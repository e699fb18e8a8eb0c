"""Analysis module - statistics, warnings, advice and sessions."""

from __future__ import annotations

from mdok.analysis.advisor import (
    estimate_network_cost,
    recommend_both_architectures,
    recommend_instance,
)
from mdok.analysis.sessions import (
    current_session,
    filter_by_time,
    filter_to_current_session,
    filter_to_session,
    gap_threshold,
    list_sessions,
    segment,
    session_by_id,
)
from mdok.analysis.stats import calculate_stats, calculate_summary, percentile
from mdok.analysis.summarize import ensure_summary, summarize_series
from mdok.analysis.warning_rules import detect_warnings

__all__ = [
    "calculate_stats",
    "calculate_summary",
    "current_session",
    "detect_warnings",
    "ensure_summary",
    "estimate_network_cost",
    "filter_by_time",
    "filter_to_current_session",
    "filter_to_session",
    "gap_threshold",
    "list_sessions",
    "percentile",
    "recommend_both_architectures",
    "recommend_instance",
    "segment",
    "session_by_id",
    "summarize_series",
]
