# ABOUTME: Study tracker core: goal visibility filter and progress aggregation.
# ABOUTME: Use build_dashboard()/build_analytics() from tracker.aggregator for API integration.

from tracker.aggregator import build_analytics, build_dashboard
from tracker.visibility import filter_visible, is_visible, sort_goals

__all__ = [
    "build_analytics",
    "build_dashboard",
    "filter_visible",
    "is_visible",
    "sort_goals",
]
