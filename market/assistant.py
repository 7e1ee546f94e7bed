"""Tool exposed to the conversational agent for home-value questions."""

from __future__ import annotations

from datetime import date
from typing import Any

import duckdb

from market.derived import derive_series, round_half_up
from market.filters import ASSISTANT_WINDOW, DEFAULT_FILTERS, MetricFamily
from market.model import Observation, SeriesPoint
from market.resolver import resolve_one
from market.series import get_series
from market.summary import snapshot_or_recompute

HOME_VALUE_TREND_TOOL: dict[str, Any] = {
    "name": "get_home_value_trend",
    "description": (
        "Get home value price trend for a location. Returns 24 months of monthly "
        "home value data along with the current market summary. Use when users ask "
        "about housing prices, home values, price trends, or market conditions for a "
        "specific city, state, metro area, or zip code."
    ),
    "input_schema": {
        "type": "object",
        "properties": {
            "location": {
                "type": "string",
                "description": (
                    "Location name to search for (e.g., 'Austin, TX', 'New York', "
                    "'California', '90210')"
                ),
            }
        },
        "required": ["location"],
    },
}

_SUMMARY_FIELDS = (
    "homeValueYoyPct",
    "homeValueMomPct",
    "rentYoyPct",
    "priceToRentRatio",
    "grossRentYieldPct",
)


def _round2(value: float | None) -> float | None:
    return None if value is None else round_half_up(value, 2)


def _trend_point(point: SeriesPoint, obs: Observation) -> dict[str, Any]:
    # Published changes win over ones derived inside the window.
    mom = obs.mom_change_pct if obs.mom_change_pct is not None else point.mom_change_pct
    yoy = obs.yoy_change_pct if obs.yoy_change_pct is not None else point.yoy_change_pct
    return {
        "date": point.date.isoformat(),
        "homeValue": point.value,
        "momChangePct": _round2(mom),
        "yoyChangePct": _round2(yoy),
    }


def home_value_trend(
    conn: duckdb.DuckDBPyConnection,
    location: str,
    *,
    today: date | None = None,
) -> dict[str, Any]:
    """Resolve ``location`` and return its recent trend and market summary.

    An unmatched location yields ``{"error": ...}`` for the agent to relay.
    """

    region = resolve_one(conn, location)
    if region is None:
        return {
            "error": (
                f'No region found matching "{location}". '
                "Try a more specific city, state, or metro area name."
            )
        }

    months = ASSISTANT_WINDOW.default
    series = get_series(
        conn, region.region_id, MetricFamily.HOME_VALUE, DEFAULT_FILTERS, months, today=today
    )
    points = derive_series(series)
    published = {obs.date: obs for obs in series}
    snapshot = snapshot_or_recompute(conn, region.region_id, region=region, today=today)

    summary = None
    if snapshot is not None:
        raw = snapshot.to_json()
        summary = {
            "currentHomeValue": raw["currentHomeValue"],
            "currentRentValue": raw["currentRentValue"],
            "marketClassification": raw["marketClassification"],
            **{field: _round2(raw[field]) for field in _SUMMARY_FIELDS},
        }

    return {
        "region": {
            "regionId": region.region_id,
            "name": region.label,
            "geographyLevel": region.geography_level,
            "state": region.state_name,
        },
        "trend": [_trend_point(point, published[point.date]) for point in points],
        "summary": summary,
    }


__all__ = ["HOME_VALUE_TREND_TOOL", "home_value_trend"]
