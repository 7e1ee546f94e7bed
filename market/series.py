"""Time-series aggregation over the housing fact tables.

Every query here is assembled from module constants; caller-supplied filter
values only ever travel as bound parameters, and only after validation
against the allow-lists in ``market.filters``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Sequence

import duckdb
from dateutil.relativedelta import relativedelta

from market.errors import InvalidFilter, UpstreamFailure
from market.filters import (
    AFFORDABILITY_METRIC_TYPES,
    DEFAULT_FILTERS,
    DEFAULT_HPI_FREQUENCY,
    DEFAULT_HOME_TYPE,
    DEFAULT_TIER,
    HPI_FREQUENCIES,
    RENT_HOME_TYPE,
    AffordabilityFilters,
    MetricFamily,
    SeriesFilters,
    validate_choice,
)
from market.model import HpiPoint, Observation, Region
from storage.db import (
    AFFORDABILITY_TABLE,
    HEAT_INDEX_TABLE,
    HPI_TABLE,
    INVENTORY_TABLE,
    ZHVI_TABLE,
    ZORI_TABLE,
    query_rows,
)

logger = logging.getLogger(__name__)

Filters = SeriesFilters | AffordabilityFilters | None


@dataclass(frozen=True)
class _FamilySource:
    table: str
    value_column: str
    mom_column: str = "mom_change_pct"
    yoy_column: str = "yoy_change_pct"
    label_column: str | None = None


_SOURCES: dict[MetricFamily, _FamilySource] = {
    MetricFamily.HOME_VALUE: _FamilySource(ZHVI_TABLE, "value"),
    MetricFamily.RENT: _FamilySource(ZORI_TABLE, "value"),
    MetricFamily.INVENTORY: _FamilySource(INVENTORY_TABLE, "inventory_count"),
    MetricFamily.AFFORDABILITY: _FamilySource(AFFORDABILITY_TABLE, "value"),
    MetricFamily.HEAT_INDEX: _FamilySource(
        HEAT_INDEX_TABLE, "heat_index", "mom_change", "yoy_change", "market_temperature"
    ),
}

# Segment cuts fetched in one query: the segment column and the fixed filters.
BEDROOM_SEGMENT = "bedrooms"
HOME_TYPE_SEGMENT = "home_type"
PROPERTY_TYPE_SEGMENTS: tuple[str, ...] = ("Single Family", "Condo", "All Homes")

# Secondary house-price index level names.
HPI_NATIONAL = "USA"
HPI_STATE = "State"
HPI_METRO = "MSA"


def window_start(months: int, today: date | None = None) -> date:
    """First date included in a ``months``-long look-back window."""

    return (today or date.today()) - relativedelta(months=months)


def _family_clauses(family: MetricFamily, filters: Filters) -> tuple[list[str], list[Any]]:
    """Dimensional WHERE clauses for one metric family."""

    if family is MetricFamily.HOME_VALUE:
        resolved = (filters if isinstance(filters, SeriesFilters) else DEFAULT_FILTERS).validate()
        clauses = ["home_type = ?", "tier = ?", "smoothed = ?", "seasonally_adjusted = ?"]
        params: list[Any] = [
            resolved.home_type,
            resolved.tier,
            resolved.smoothed,
            resolved.seasonally_adjusted,
        ]
        if resolved.bedrooms is None:
            clauses.append("bedrooms IS NULL")
        else:
            clauses.append("bedrooms = ?")
            params.append(resolved.bedrooms)
        return clauses, params

    if family is MetricFamily.RENT:
        resolved = filters if isinstance(filters, SeriesFilters) else DEFAULT_FILTERS
        # Rent series have no tier and are only published for all homes.
        return (
            ["home_type = ?", "smoothed = ?", "seasonally_adjusted = ?"],
            [RENT_HOME_TYPE, resolved.smoothed, resolved.seasonally_adjusted],
        )

    if family is MetricFamily.INVENTORY:
        smoothed = filters.smoothed if isinstance(filters, SeriesFilters) else True
        return ["smoothed = ?"], [smoothed]

    if family is MetricFamily.AFFORDABILITY:
        if not isinstance(filters, AffordabilityFilters):
            raise InvalidFilter("metricType", None, AFFORDABILITY_METRIC_TYPES)
        resolved_afford = filters.validate()
        if resolved_afford.down_payment_pct is None:
            return (
                ["metric_type = ?", "down_payment_pct IS NULL"],
                [resolved_afford.metric_type],
            )
        return (
            ["metric_type = ?", "down_payment_pct = ?"],
            [resolved_afford.metric_type, resolved_afford.down_payment_pct],
        )

    return [], []


def _select(source: _FamilySource, extra: str = "") -> str:
    label = source.label_column or "NULL"
    return (
        f"SELECT region_id, date, {source.value_column} AS value, "
        f"{source.mom_column} AS mom_change_pct, {source.yoy_column} AS yoy_change_pct, "
        f"{label} AS label"
        f"{extra} FROM {source.table}"
    )


def _run(
    conn: duckdb.DuckDBPyConnection,
    sql: str,
    params: Sequence[object],
    *,
    context: str,
) -> list[dict[str, Any]]:
    try:
        return query_rows(conn, sql, params)
    except duckdb.Error as exc:
        logger.exception("Series query failed (%s)", context)
        raise UpstreamFailure("Series query failed") from exc


def _to_observation(row: dict[str, Any], segment: object = None) -> Observation:
    return Observation(
        region_id=row["region_id"],
        date=row["date"],
        value=row["value"],
        segment=None if segment is None else str(segment),
        mom_change_pct=row.get("mom_change_pct"),
        yoy_change_pct=row.get("yoy_change_pct"),
        label=row.get("label"),
    )


def get_series_many(
    conn: duckdb.DuckDBPyConnection,
    region_ids: Iterable[str],
    family: MetricFamily,
    filters: Filters = None,
    window_months: int = 12,
    *,
    today: date | None = None,
) -> dict[str, list[Observation]]:
    """Filtered, windowed series for several regions, keyed by region id."""

    ids = list(dict.fromkeys(region_ids))
    if not ids:
        return {}
    source = _SOURCES[family]
    clauses, params = _family_clauses(family, filters)
    start = window_start(window_months, today)
    where = [f"region_id IN ({', '.join('?' for _ in ids)})", *clauses, "date >= ?"]
    sql = f"{_select(source)} WHERE {' AND '.join(where)} ORDER BY date, region_id"
    rows = _run(
        conn,
        sql,
        [*ids, *params, start],
        context=f"family={family.value} regions={ids} filters={filters} months={window_months}",
    )

    grouped: dict[str, list[Observation]] = {region_id: [] for region_id in ids}
    for row in rows:
        grouped[row["region_id"]].append(_to_observation(row))
    return grouped


def get_series(
    conn: duckdb.DuckDBPyConnection,
    region_id: str,
    family: MetricFamily,
    filters: Filters = None,
    window_months: int = 12,
    *,
    today: date | None = None,
) -> list[Observation]:
    """Observations for one region, ordered by date ascending."""

    return get_series_many(conn, [region_id], family, filters, window_months, today=today)[region_id]


def get_segment_series(
    conn: duckdb.DuckDBPyConnection,
    region_id: str,
    segment: str,
    window_months: int,
    *,
    today: date | None = None,
) -> list[Observation]:
    """Home-value series for every bedroom count or property type at once.

    Bedroom cuts are pinned to mid-tier all-homes series; property-type cuts
    are mid-tier aggregates across ``PROPERTY_TYPE_SEGMENTS``.
    """

    source = _SOURCES[MetricFamily.HOME_VALUE]
    if segment == BEDROOM_SEGMENT:
        clauses = ["home_type = ?", "bedrooms IS NOT NULL"]
        params: list[Any] = [DEFAULT_HOME_TYPE]
    elif segment == HOME_TYPE_SEGMENT:
        clauses = [
            f"home_type IN ({', '.join('?' for _ in PROPERTY_TYPE_SEGMENTS)})",
            "bedrooms IS NULL",
        ]
        params = list(PROPERTY_TYPE_SEGMENTS)
    else:
        raise InvalidFilter("segment", segment, (BEDROOM_SEGMENT, HOME_TYPE_SEGMENT))

    where = [
        "region_id = ?",
        *clauses,
        "tier = ?",
        "smoothed = ?",
        "seasonally_adjusted = ?",
        "date >= ?",
    ]
    sql = f"{_select(source, f', {segment} AS segment')} WHERE {' AND '.join(where)} ORDER BY date, segment"
    rows = _run(
        conn,
        sql,
        [region_id, *params, DEFAULT_TIER, True, True, window_start(window_months, today)],
        context=f"segment={segment} region={region_id} months={window_months}",
    )
    return [_to_observation(row, row["segment"]) for row in rows]


def latest_observation_date(
    conn: duckdb.DuckDBPyConnection,
    region_id: str,
    family: MetricFamily,
    filters: Filters = None,
) -> date | None:
    source = _SOURCES[family]
    clauses, params = _family_clauses(family, filters)
    where = " AND ".join(["region_id = ?", *clauses])
    rows = _run(
        conn,
        f"SELECT MAX(date) AS latest FROM {source.table} WHERE {where}",
        [region_id, *params],
        context=f"family={family.value} region={region_id} latest",
    )
    return rows[0]["latest"] if rows else None


def latest_family_date(conn: duckdb.DuckDBPyConnection, family: MetricFamily) -> date | None:
    """Most recent date loaded for a family across all regions."""

    source = _SOURCES[family]
    rows = _run(
        conn,
        f"SELECT MAX(date) AS latest FROM {source.table}",
        [],
        context=f"family={family.value} latest",
    )
    return rows[0]["latest"] if rows else None


def get_level_rows(
    conn: duckdb.DuckDBPyConnection,
    family: MetricFamily,
    geography_level: str | None,
    filters: Filters = None,
    *,
    on_date: date | None = None,
    by_value: bool = False,
    max_rows: int = 1000,
) -> list[Observation]:
    """Rows for every region at one geography level, newest first.

    With ``by_value`` rows are ordered by value, largest first, instead.

    Used for cross-region summary tables instead of per-region lookups.
    """

    source = _SOURCES[family]
    clauses, params = _family_clauses(family, filters)
    where = list(clauses)
    all_params: list[Any] = list(params)
    if geography_level is not None:
        where.insert(0, "geography_level = ?")
        all_params.insert(0, geography_level)
    if on_date is not None:
        where.append("date = ?")
        all_params.append(on_date)
    where_sql = f" WHERE {' AND '.join(where)}" if where else ""
    order = "value DESC NULLS LAST, region_id" if by_value else "date DESC, region_id"
    sql = (
        f"{_select(source)}{where_sql} "
        f"ORDER BY {order} LIMIT {int(max_rows)}"
    )
    rows = _run(
        conn,
        sql,
        all_params,
        context=f"family={family.value} level={geography_level} filters={filters}",
    )
    return [_to_observation(row) for row in rows]


def get_affordability_rows(
    conn: duckdb.DuckDBPyConnection,
    region_id: str,
    on_date: date,
) -> list[dict[str, Any]]:
    """Every affordability metric published for a region on one date."""

    return _run(
        conn,
        f"SELECT metric_type, down_payment_pct, value, mom_change_pct, yoy_change_pct "
        f"FROM {AFFORDABILITY_TABLE} WHERE region_id = ? AND date = ? "
        "ORDER BY metric_type, down_payment_pct NULLS FIRST",
        [region_id, on_date],
        context=f"affordability region={region_id} date={on_date}",
    )


def _hpi_target(region: Region) -> tuple[str, str | None] | None:
    """(hpi level, place id) for a region, or None when no match is possible.

    Metro regions are matched on identifier equality with the index's MSA
    codes. The two id spaces are sourced independently, so some metros will
    find nothing.
    """

    level = region.geography_level
    if level == "National":
        return HPI_NATIONAL, None
    if level == "Metro":
        return HPI_METRO, region.region_id
    if not region.state:
        return None
    return HPI_STATE, region.state


def get_hpi_series(
    conn: duckdb.DuckDBPyConnection,
    region: Region,
    frequency: str = DEFAULT_HPI_FREQUENCY,
    window_months: int = 120,
    *,
    today: date | None = None,
) -> tuple[str | None, list[HpiPoint]]:
    """House-price index series for ``region`` and the index level it matched.

    County, city and zip regions have no index entry of their own and fall
    back to their parent state's series.
    """

    validate_choice("frequency", frequency, HPI_FREQUENCIES)
    target = _hpi_target(region)
    if target is None:
        logger.info("No house-price index match for %s (no state code)", region.region_id)
        return None, []

    hpi_level, place_id = target
    if hpi_level == HPI_STATE and region.geography_level != "State":
        logger.debug(
            "Using state-level index %s for %s region %s",
            place_id,
            region.geography_level,
            region.region_id,
        )

    where = ["level = ?", "frequency = ?", "date >= ?"]
    params: list[Any] = [hpi_level, frequency, window_start(window_months, today)]
    if place_id is not None:
        where.insert(1, "place_id = ?")
        params.insert(1, place_id)
    rows = _run(
        conn,
        f"SELECT date, index_nsa, index_sa, level, place_name FROM {HPI_TABLE} "
        f"WHERE {' AND '.join(where)} ORDER BY date",
        params,
        context=f"hpi region={region.region_id} level={hpi_level} place={place_id}",
    )
    return hpi_level, [HpiPoint(**row) for row in rows]


__all__ = [
    "window_start",
    "get_series",
    "get_series_many",
    "get_segment_series",
    "latest_observation_date",
    "latest_family_date",
    "get_level_rows",
    "get_hpi_series",
    "get_affordability_rows",
    "BEDROOM_SEGMENT",
    "HOME_TYPE_SEGMENT",
    "PROPERTY_TYPE_SEGMENTS",
]
