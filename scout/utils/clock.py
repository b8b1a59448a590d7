"""Wall-clock helpers — one place that decides what 'now' is.

Research records carry an ISO research date; tests patch ``now_utc`` here
instead of chasing ``datetime.now()`` calls through the codebase.
"""

from __future__ import annotations

from datetime import datetime, timezone


def now_utc() -> datetime:
    """Return the current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def today_str() -> str:
    """ISO 8601 date string: '2026-02-23'"""
    return now_utc().strftime("%Y-%m-%d")
