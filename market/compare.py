"""Side-by-side comparison of up to eight regions."""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Mapping, Sequence

import duckdb

from market.derived import price_to_rent_ratio
from market.directory import get_regions
from market.errors import InvalidCardinality
from market.filters import (
    COMPARE_WINDOW,
    DEFAULT_FILTERS,
    MAX_COMPARE_REGIONS,
    MetricFamily,
    SeriesFilters,
)
from market.model import ComparisonBundle, MarketSummary, Observation, Region, RegionStats
from market.series import get_series_many
from market.summary import get_snapshots

logger = logging.getLogger(__name__)

COMPARISON_COLORS: tuple[str, ...] = (
    "#2563eb",  # blue
    "#16a34a",  # green
    "#dc2626",  # red
    "#9333ea",  # purple
    "#ea580c",  # orange
    "#0891b2",  # cyan
    "#db2777",  # pink
    "#65a30d",  # lime
)
_MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

WideRow = dict[str, object]


def format_month(value: date) -> str:
    return f"{_MONTH_NAMES[value.month - 1]} {value.year}"


def assign_colors(
    region_ids: Sequence[str],
    previous: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Give each region a palette color in the order supplied.

    Regions carried over from ``previous`` keep their color; new regions take
    the first palette color not already in use.
    """

    previous = previous or {}
    assigned: dict[str, str] = {}
    for region_id in region_ids:
        color = previous.get(region_id)
        if color in COMPARISON_COLORS and color not in assigned.values():
            assigned[region_id] = color
    for region_id in region_ids:
        if region_id in assigned:
            continue
        used = set(assigned.values())
        assigned[region_id] = next(
            (color for color in COMPARISON_COLORS if color not in used), COMPARISON_COLORS[0]
        )
    return {region_id: assigned[region_id] for region_id in region_ids}


def _by_date(series: Mapping[str, list[Observation]]) -> dict[date, dict[str, float]]:
    table: dict[date, dict[str, float]] = {}
    for region_id, observations in series.items():
        for obs in observations:
            if not obs.value:
                continue
            table.setdefault(obs.date, {})[region_id] = obs.value
    return table


def _wide_rows(table: Mapping[date, Mapping[str, object]]) -> list[WideRow]:
    return [
        {"date": day.isoformat(), "formattedDate": format_month(day), **table[day]}
        for day in sorted(table)
    ]


def _price_to_rent_rows(
    region_ids: Sequence[str],
    home_values: Mapping[date, Mapping[str, float]],
    rents: Mapping[date, Mapping[str, float]],
) -> list[WideRow]:
    ratios_by_date: dict[date, dict[str, float]] = {}
    for day in set(home_values) | set(rents):
        homes = home_values.get(day, {})
        rent_row = rents.get(day, {})
        ratios = {}
        for region_id in region_ids:
            ratio = price_to_rent_ratio(homes.get(region_id), rent_row.get(region_id))
            if ratio is not None:
                ratios[region_id] = ratio
        if ratios:
            ratios_by_date[day] = ratios
    return _wide_rows(ratios_by_date)


def _region_stats(region: Region, summary: MarketSummary | None, color: str) -> RegionStats:
    snapshot = summary.model_dump() if summary else {}
    return RegionStats(
        region_id=region.region_id,
        region_name=region.region_name,
        display_name=region.display_name,
        geography_level=region.geography_level,
        state=region.state,
        state_name=region.state_name,
        city=region.city,
        county=region.county,
        metro=region.metro,
        current_home_value=snapshot.get("current_home_value"),
        home_value_yoy_pct=snapshot.get("home_value_yoy_pct"),
        home_value_mom_pct=snapshot.get("home_value_mom_pct"),
        current_rent_value=snapshot.get("current_rent_value"),
        rent_yoy_pct=snapshot.get("rent_yoy_pct"),
        price_to_rent_ratio=snapshot.get("price_to_rent_ratio"),
        market_classification=snapshot.get("market_classification"),
        color=color,
    )


def compare(
    conn: duckdb.DuckDBPyConnection,
    region_ids: Iterable[str],
    filters: SeriesFilters = DEFAULT_FILTERS,
    window_months: int | None = None,
    *,
    previous_colors: Mapping[str, str] | None = None,
    today: date | None = None,
) -> ComparisonBundle:
    """Assemble stats and aligned wide trend tables for 1-8 regions.

    Unknown ids are left out of the bundle rather than reported as errors.
    """

    requested = list(region_ids)
    if not requested:
        raise InvalidCardinality("At least one region is required")
    if len(requested) > MAX_COMPARE_REGIONS:
        raise InvalidCardinality(f"Maximum {MAX_COMPARE_REGIONS} regions allowed")
    requested = list(dict.fromkeys(requested))
    filters = filters.validate()
    months = COMPARE_WINDOW.resolve(window_months)

    found = {region.region_id: region for region in get_regions(conn, requested)}
    resolved = [region_id for region_id in requested if region_id in found]
    missing = [region_id for region_id in requested if region_id not in found]
    if missing:
        logger.info("Comparison skipping unknown regions: %s", ", ".join(missing))

    colors = assign_colors(resolved, previous_colors)
    summaries = get_snapshots(conn, resolved)
    home_values = _by_date(
        get_series_many(conn, resolved, MetricFamily.HOME_VALUE, filters, months, today=today)
    )
    rents = _by_date(get_series_many(conn, resolved, MetricFamily.RENT, filters, months, today=today))

    return ComparisonBundle(
        regions={
            region_id: _region_stats(found[region_id], summaries.get(region_id), colors[region_id])
            for region_id in resolved
        },
        home_value_trends=_wide_rows(home_values),
        rent_trends=_wide_rows(rents),
        price_to_rent_trends=_price_to_rent_rows(resolved, home_values, rents),
        filters={**filters.as_dict(), "months": months},
    )


__all__ = ["COMPARISON_COLORS", "assign_colors", "format_month", "compare"]
