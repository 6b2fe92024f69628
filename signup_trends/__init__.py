"""Signup and platform-activity dashboard core (UI-agnostic).

This package contains:
- source loading (CSV / JSON -> records, async)
- duration-string normalization for last-access fields
- cohort aggregation (per-year cumulative and monthly signups)
- activity classification (recency buckets, daily active series)
- page compute functions (JSON-serializable payloads)
"""

from signup_trends.pipeline import compute_dashboard, load_dashboard_data, prepare_context
from signup_trends.settings import DashboardConfig, RecencyThresholds, normalize_config

__all__ = [
    "DashboardConfig",
    "RecencyThresholds",
    "compute_dashboard",
    "load_dashboard_data",
    "normalize_config",
    "prepare_context",
]
