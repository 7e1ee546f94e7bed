"""Bedroom-count and property-type breakdowns of a region's home values."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Sequence

import duckdb

from market.compare import format_month
from market.derived import derive_series
from market.filters import CUTS_WINDOW
from market.model import Observation
from market.series import BEDROOM_SEGMENT, HOME_TYPE_SEGMENT, get_segment_series


@dataclass(frozen=True)
class Segment:
    value: str
    key: str
    label: str
    color: str
    icon: str | None = None


BEDROOM_SEGMENTS: tuple[Segment, ...] = (
    Segment("1", "bd1", "1 Bedroom", "#3b82f6"),
    Segment("2", "bd2", "2 Bedroom", "#22c55e"),
    Segment("3", "bd3", "3 Bedroom", "#f59e0b"),
    Segment("4", "bd4", "4 Bedroom", "#ef4444"),
    Segment("5", "bd5", "5+ Bedroom", "#8b5cf6"),
)

PROPERTY_SEGMENTS: tuple[Segment, ...] = (
    Segment("Single Family", "sfr", "Single Family", "#3b82f6", "home"),
    Segment("Condo", "condo", "Condo/Co-op", "#f59e0b", "building"),
    Segment("All Homes", "allHomes", "All Homes", "#6b7280", "home"),
)


def _assemble(observations: Sequence[Observation], segments: Sequence[Segment]) -> dict[str, Any]:
    by_value = {segment.value: segment for segment in segments}
    table: dict[date, dict[str, float]] = {}
    per_segment: dict[str, list[Observation]] = {}
    for obs in observations:
        segment = by_value.get(obs.segment or "")
        if segment is None or obs.value is None:
            continue
        table.setdefault(obs.date, {})[segment.key] = obs.value
        per_segment.setdefault(segment.value, []).append(obs)

    trends = [
        {"date": day.isoformat(), "formattedDate": format_month(day), **table[day]}
        for day in sorted(table)
    ]
    stats = []
    for segment in segments:
        series = per_segment.get(segment.value)
        if not series:
            continue
        latest = max(series, key=lambda obs: obs.date)
        # Published change wins; the window-derived one is only a fallback.
        yoy = latest.yoy_change_pct
        if yoy is None:
            yoy = derive_series(series)[-1].yoy_change_pct
        stat: dict[str, Any] = {
            "label": segment.label,
            "currentValue": latest.value,
            "yoyChange": yoy,
            "color": segment.color,
        }
        stats.append(stat | _identity(segment))
    return {"trends": trends, "stats": stats}


def _identity(segment: Segment) -> dict[str, Any]:
    if segment.icon is None:
        return {"bedrooms": int(segment.value)}
    return {"type": segment.key, "icon": segment.icon}


def bedroom_breakdown(
    conn: duckdb.DuckDBPyConnection,
    region_id: str,
    window_months: int | None = None,
    *,
    today: date | None = None,
) -> dict[str, Any]:
    months = CUTS_WINDOW.resolve(window_months)
    observations = get_segment_series(conn, region_id, BEDROOM_SEGMENT, months, today=today)
    return _assemble(observations, BEDROOM_SEGMENTS)


def property_type_breakdown(
    conn: duckdb.DuckDBPyConnection,
    region_id: str,
    window_months: int | None = None,
    *,
    today: date | None = None,
) -> dict[str, Any]:
    months = CUTS_WINDOW.resolve(window_months)
    observations = get_segment_series(conn, region_id, HOME_TYPE_SEGMENT, months, today=today)
    return _assemble(observations, PROPERTY_SEGMENTS)


__all__ = ["BEDROOM_SEGMENTS", "PROPERTY_SEGMENTS", "bedroom_breakdown", "property_type_breakdown"]
