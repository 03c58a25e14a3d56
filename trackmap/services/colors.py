# path: trackmap/services/colors.py

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from trackmap.models.route_models import Route


DEFAULT_PALETTE: List[str] = [
    "#2563eb", "#10b981", "#f59e0b", "#ef4444", "#8b5cf6", "#06b6d4",
    "#84cc16", "#ec4899", "#14b8a6", "#f97316", "#22c55e", "#3b82f6",
]

PERIOD_KEYS = ("week", "month", "year")


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string to an aware UTC datetime, or None."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def route_color(date: Optional[str], period_key: str = "month", palette: List[str] = DEFAULT_PALETTE) -> str:
    """
    Stable color for a date bucketed by period.

    week -> day of week (Sunday = 0), month -> day of month, year -> month.
    Missing or unreadable dates get the first palette entry.
    """
    if not palette:
        palette = DEFAULT_PALETTE
    dt = parse_iso_datetime(date)
    if dt is None:
        return palette[0]

    if period_key == "week":
        index = (dt.weekday() + 1) % 7
    elif period_key == "year":
        index = dt.month - 1
    else:
        index = dt.day - 1
    return palette[index % len(palette)]


def resolve_route_color(route: Route, period_key: Optional[str] = None) -> str:
    manual = (route.color or "").strip()
    if manual:
        return manual
    return route_color(route.date or route.created_at, period_key or route.period_key)
