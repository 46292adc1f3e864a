"""
formatting.py

Purpose:
  Small presentation helpers shared by the chart and workload endpoints.

Contents:
  - Impact value formatting used by metric cards.
  - Aggregation window selection for Flux `aggregateWindow()`.
  - Dashboard time-range presets (today, this month, last month, this year).
"""
from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from nadiki_dashboard.models.domain import TimeRangePreset

_DAY_S = 24 * 60 * 60


def format_impact_value(value: Optional[float]) -> str:
    if value is None or math.isnan(value):
        return "No data"
    if abs(value) < 0.01 and value != 0:
        return f"{value:.2e}"
    return f"{value:.2f}"


def _range_days(start: datetime, end: datetime) -> float:
    return abs((end - start).total_seconds()) / _DAY_S


def chart_window(start: datetime, end: datetime) -> str:
    """Aggregation window for chart series; keeps point counts bounded."""
    days = _range_days(start, end)
    if days <= 1:
        return "15m"
    if days <= 7:
        return "1h"
    if days <= 31:
        return "6h"
    return "1d"


def analysis_window(start: datetime, end: datetime) -> str:
    """Aggregation window used before averaging in workload analysis."""
    days = _range_days(start, end)
    if days <= 1:
        return "1h"
    if days <= 7:
        return "2h"
    if days <= 31:
        return "6h"
    if days <= 93:
        return "1d"
    return "1mo"


def _next_month(dt: datetime) -> datetime:
    if dt.month == 12:
        return dt.replace(year=dt.year + 1, month=1)
    return dt.replace(month=dt.month + 1)


def resolve_preset(preset: TimeRangePreset, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Whole calendar period containing `now`; the end is exclusive."""
    now = now or datetime.now(timezone.utc)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    first_of_month = midnight.replace(day=1)
    if preset == TimeRangePreset.TODAY:
        return midnight, midnight + timedelta(days=1)
    if preset == TimeRangePreset.THIS_MONTH:
        return first_of_month, _next_month(first_of_month)
    if preset == TimeRangePreset.LAST_MONTH:
        return (first_of_month - timedelta(days=1)).replace(day=1), first_of_month
    if preset == TimeRangePreset.THIS_YEAR:
        start = first_of_month.replace(month=1)
        return start, start.replace(year=start.year + 1)
    raise ValueError(f"unknown time range preset: {preset}")


def default_range(now: Optional[datetime] = None, days: int = 30) -> Tuple[datetime, datetime]:
    now = now or datetime.now(timezone.utc)
    return now - timedelta(days=days), now


def from_unix(ts: int) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def to_rfc3339(dt: datetime) -> str:
    """Flux-compatible UTC timestamp (`2024-01-01T00:00:00Z`)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
