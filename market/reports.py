"""Inventory, market-heat and affordability reports."""

from __future__ import annotations

from datetime import date
from typing import Any, Iterable

import duckdb
from dateutil.relativedelta import relativedelta

from market.compare import format_month
from market.derived import derive_series, inventory_estimates, round_half_up
from market.directory import get_regions
from market.filters import (
    HEAT_WINDOW,
    INVENTORY_WINDOW,
    LIST_DEFAULT_LIMIT,
    PAYMENT_METRIC_TYPES,
    AffordabilityFilters,
    MetricFamily,
    clamp_limit,
    validate_level,
)
from market.model import Observation, Region
from market.series import (
    get_affordability_rows,
    get_level_rows,
    get_series,
    latest_family_date,
)

HOT_HEAT_INDEX = 60
COLD_HEAT_INDEX = 40
HEAT_LEADERBOARD_SIZE = 10
MISSING_SIZE_RANK = 999
LEVEL_SCAN_ROWS = 1000


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value else None


def _names(conn: duckdb.DuckDBPyConnection, region_ids: Iterable[str]) -> dict[str, Region]:
    return {region.region_id: region for region in get_regions(conn, region_ids)}


def _latest_per_region(rows: Iterable[Observation]) -> dict[str, Observation]:
    latest: dict[str, Observation] = {}
    for row in rows:
        current = latest.get(row.region_id)
        if current is None or row.date > current.date:
            latest[row.region_id] = row
    return latest


def inventory_report(
    conn: duckdb.DuckDBPyConnection,
    region_id: str,
    window_months: int | None = None,
    *,
    today: date | None = None,
) -> dict[str, Any]:
    """Inventory trend for one region plus supply and days-on-market estimates."""

    months = INVENTORY_WINDOW.resolve(window_months)
    observations = get_series(conn, region_id, MetricFamily.INVENTORY, None, months, today=today)
    derived = derive_series(observations)

    trends = []
    for obs, point in zip(observations, derived):
        # Published changes win over ones derived from the window.
        mom = obs.mom_change_pct if obs.mom_change_pct is not None else point.mom_change_pct
        yoy = obs.yoy_change_pct if obs.yoy_change_pct is not None else point.yoy_change_pct
        trends.append(
            {
                "date": obs.date.isoformat(),
                "formattedDate": format_month(obs.date),
                "inventoryCount": obs.value,
                "momChangePct": mom,
                "yoyChangePct": yoy,
            }
        )

    latest = trends[-1] if trends else None
    one_year_ago = None
    if observations:
        target = observations[-1].date - relativedelta(years=1)
        one_year_ago = next((obs.value for obs in observations if obs.date == target), None)

    current = latest["inventoryCount"] if latest else None
    yoy = latest["yoyChangePct"] if latest else None
    mom = latest["momChangePct"] if latest else None
    return {
        "trends": trends,
        "stats": {
            "currentInventory": current,
            "yoyChangePct": yoy,
            "momChangePct": mom,
            "inventoryOneYearAgo": one_year_ago,
        },
        "estimates": inventory_estimates(current, yoy, mom).to_json(),
    }


def inventory_summary(
    conn: duckdb.DuckDBPyConnection,
    geography_level: str = "Metro",
    limit: int | None = LIST_DEFAULT_LIMIT,
) -> dict[str, Any]:
    """Latest inventory for the largest regions at one level, with totals."""

    validate_level(geography_level)
    limit = clamp_limit(limit)
    rows = get_level_rows(conn, MetricFamily.INVENTORY, geography_level, max_rows=LEVEL_SCAN_ROWS)
    latest = _latest_per_region(rows)
    regions = _names(conn, latest)

    summary = []
    for region_id, obs in latest.items():
        region = regions.get(region_id)
        summary.append(
            {
                "regionId": region_id,
                "regionName": region.region_name if region else "Unknown",
                "state": region.state if region else None,
                "sizeRank": region.size_rank if region else None,
                "inventoryCount": obs.value or 0,
                "yoyChangePct": obs.yoy_change_pct,
            }
        )
    summary.sort(key=lambda item: (item["sizeRank"] or MISSING_SIZE_RANK, item["regionId"]))
    summary = summary[:limit]

    changes = [item["yoyChangePct"] for item in summary if item["yoyChangePct"] is not None]
    return {
        "summary": summary,
        "totals": {
            "totalInventory": sum(item["inventoryCount"] for item in summary),
            "avgYoyChangePct": sum(changes) / len(changes) if changes else 0,
            "regionCount": len(summary),
        },
    }


def heat_trend(
    conn: duckdb.DuckDBPyConnection,
    region_id: str,
    window_months: int | None = None,
    *,
    today: date | None = None,
) -> dict[str, Any]:
    months = HEAT_WINDOW.resolve(window_months)
    observations = get_series(conn, region_id, MetricFamily.HEAT_INDEX, None, months, today=today)
    return {
        "data": [
            {
                "date": obs.date.isoformat(),
                "heatIndex": obs.value,
                "momChange": obs.mom_change_pct,
                "yoyChange": obs.yoy_change_pct,
                "marketTemperature": obs.label,
            }
            for obs in observations
        ],
        "meta": {"regionId": region_id, "months": months},
    }


def heat_summary(
    conn: duckdb.DuckDBPyConnection, limit: int | None = LIST_DEFAULT_LIMIT
) -> dict[str, Any]:
    """Latest heat index across regions with hottest/coolest leaderboards."""

    limit = clamp_limit(limit)
    latest_date = latest_family_date(conn, MetricFamily.HEAT_INDEX)
    if latest_date is None:
        return {
            "data": [],
            "hottest": [],
            "coolest": [],
            "summary": {"avgHeatIndex": 0, "totalRegions": 0, "hotMarkets": 0, "coldMarkets": 0},
            "meta": {"status": "no_data"},
        }

    rows = get_level_rows(
        conn, MetricFamily.HEAT_INDEX, None, on_date=latest_date, by_value=True, max_rows=limit
    )
    regions = _names(conn, (row.region_id for row in rows))
    data = []
    for obs in rows:
        region = regions.get(obs.region_id)
        data.append(
            {
                "regionId": obs.region_id,
                "regionName": region.region_name if region else None,
                "displayName": region.display_name if region else None,
                "geographyLevel": region.geography_level if region else None,
                "date": obs.date.isoformat(),
                "heatIndex": obs.value,
                "momChange": obs.mom_change_pct,
                "yoyChange": obs.yoy_change_pct,
                "marketTemperature": obs.label,
            }
        )

    scored = [item["heatIndex"] for item in data if item["heatIndex"] is not None]
    return {
        "data": data,
        "hottest": data[:HEAT_LEADERBOARD_SIZE],
        "coolest": sorted(data, key=lambda item: item["heatIndex"] or 0)[:HEAT_LEADERBOARD_SIZE],
        "summary": {
            "avgHeatIndex": int(round_half_up(sum(scored) / len(scored))) if scored else 0,
            "totalRegions": len(scored),
            "hotMarkets": sum(1 for value in scored if value >= HOT_HEAT_INDEX),
            "coldMarkets": sum(1 for value in scored if value < COLD_HEAT_INDEX),
            "latestDate": latest_date.isoformat(),
        },
        "meta": {"limit": limit},
    }


def affordability_breakdown(conn: duckdb.DuckDBPyConnection, region_id: str) -> dict[str, Any]:
    """Payments by down payment and income needed for one region on the latest date."""

    latest_date = latest_family_date(conn, MetricFamily.AFFORDABILITY)
    if latest_date is None:
        return {"data": None, "meta": {"regionId": region_id, "status": "no_data"}}

    rows = get_affordability_rows(conn, region_id, latest_date)
    region = _names(conn, [region_id]).get(region_id)

    def payments(metric_type: str) -> list[dict[str, Any]]:
        return [
            {
                "downPaymentPct": row["down_payment_pct"],
                "monthlyPayment": row["value"],
                "yoyChangePct": row["yoy_change_pct"],
            }
            for row in rows
            if row["metric_type"] == metric_type
        ]

    def single(metric_type: str) -> dict[str, Any]:
        return next((row for row in rows if row["metric_type"] == metric_type), {})

    homeowner = single("homeowner_income_needed")
    renter = single("renter_income_needed")
    mortgage, total = PAYMENT_METRIC_TYPES
    return {
        "region": (
            {
                "regionId": region.region_id,
                "regionName": region.region_name,
                "displayName": region.display_name,
            }
            if region
            else None
        ),
        "data": {
            "mortgagePayments": payments(mortgage),
            "totalPayments": payments(total),
            "homeownerIncomeNeeded": homeowner.get("value"),
            "homeownerIncomeYoy": homeowner.get("yoy_change_pct"),
            "renterIncomeNeeded": renter.get("value"),
            "renterIncomeYoy": renter.get("yoy_change_pct"),
        },
        "meta": {"regionId": region_id, "latestDate": latest_date.isoformat()},
    }


def affordability_summary(
    conn: duckdb.DuckDBPyConnection,
    geography_level: str = "Metro",
    limit: int | None = LIST_DEFAULT_LIMIT,
) -> dict[str, Any]:
    """Income needed to own at one level, least affordable first."""

    validate_level(geography_level)
    limit = clamp_limit(limit)
    latest_date = latest_family_date(conn, MetricFamily.AFFORDABILITY)
    if latest_date is None:
        return {"data": [], "summary": None, "meta": {"status": "no_data"}}

    rows = get_level_rows(
        conn,
        MetricFamily.AFFORDABILITY,
        geography_level,
        AffordabilityFilters("homeowner_income_needed"),
        on_date=latest_date,
        by_value=True,
        max_rows=limit,
    )
    regions = _names(conn, (row.region_id for row in rows))
    data = []
    for obs in rows:
        region = regions.get(obs.region_id)
        data.append(
            {
                "regionId": obs.region_id,
                "regionName": region.region_name if region else None,
                "displayName": region.display_name if region else None,
                "metricType": "homeowner_income_needed",
                "downPaymentPct": None,
                "value": obs.value,
                "yoyChangePct": obs.yoy_change_pct,
            }
        )
    return {
        "data": data,
        "meta": {
            "latestDate": _iso(latest_date),
            "geographyLevel": geography_level,
            "limit": limit,
        },
    }


__all__ = [
    "inventory_report",
    "inventory_summary",
    "heat_trend",
    "heat_summary",
    "affordability_breakdown",
    "affordability_summary",
]
