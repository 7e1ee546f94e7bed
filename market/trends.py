"""Single-region trend and house-price index views."""

from __future__ import annotations

from datetime import date
from typing import Any

import duckdb

from market.derived import derive_series, price_to_rent_ratio
from market.directory import get_region
from market.filters import (
    DEFAULT_HPI_FREQUENCY,
    HPI_WINDOW,
    TREND_WINDOW,
    MetricFamily,
    SeriesFilters,
)
from market.series import get_hpi_series, get_series


def region_trend(
    conn: duckdb.DuckDBPyConnection,
    region_id: str,
    filters: SeriesFilters,
    window_months: int | None = None,
    *,
    today: date | None = None,
) -> dict[str, Any]:
    """Home values with MoM change, the matching rent and price-to-rent ratio."""

    filters = filters.validate()
    months = TREND_WINDOW.resolve(window_months)
    home = derive_series(
        get_series(conn, region_id, MetricFamily.HOME_VALUE, filters, months, today=today)
    )
    rents = {
        obs.date: obs.value
        for obs in get_series(conn, region_id, MetricFamily.RENT, filters, months, today=today)
    }

    data = []
    for point in home:
        rent = rents.get(point.date)
        data.append(
            {
                "date": point.date.isoformat(),
                "homeValue": point.value,
                "rentValue": rent,
                "momChangePct": point.mom_change_pct,
                "priceToRentRatio": price_to_rent_ratio(point.value, rent),
            }
        )
    return {"data": data, "filters": {**filters.as_dict(), "months": months}}


def region_hpi(
    conn: duckdb.DuckDBPyConnection,
    region_id: str,
    frequency: str = DEFAULT_HPI_FREQUENCY,
    window_months: int | None = None,
    *,
    today: date | None = None,
) -> dict[str, Any]:
    region = get_region(conn, region_id)
    months = HPI_WINDOW.resolve(window_months)
    matched_level, points = get_hpi_series(conn, region, frequency, months, today=today)
    return {
        "data": [point.to_json() for point in points],
        "meta": {
            "regionId": region_id,
            "geographyLevel": region.geography_level,
            "matchedLevel": matched_level,
            "frequency": frequency,
            "months": months,
            "total": len(points),
        },
    }


__all__ = ["region_trend", "region_hpi"]
