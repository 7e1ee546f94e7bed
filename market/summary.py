"""Market summary snapshots, rankings and overview statistics."""

from __future__ import annotations

import logging
from datetime import date
from enum import Enum
from typing import Any, Iterable, Sequence

import duckdb

from market.derived import (
    classify_market,
    derive_series,
    gross_rent_yield,
    market_health_score,
    price_to_rent_ratio,
    round_half_up,
)
from market.directory import find_region
from market.errors import InvalidFilter, NotFound, UpstreamFailure
from market.filters import (
    CLASSIFIED_LEVELS,
    DEFAULT_FILTERS,
    LIST_DEFAULT_LIMIT,
    RANKING_LEVELS,
    SUMMARY_WINDOW,
    MetricFamily,
    clamp_limit,
    validate_level,
)
from market.model import HealthScore, MarketSummary, Region
from market.series import get_series, latest_observation_date
from storage.db import MARKET_SUMMARY_TABLE, query_rows

logger = logging.getLogger(__name__)

SUMMARY_COLUMNS: tuple[str, ...] = tuple(MarketSummary.model_fields)
_SELECT = f"SELECT {', '.join(SUMMARY_COLUMNS)} FROM {MARKET_SUMMARY_TABLE}"


class RankingSort(str, Enum):
    """Sort keys accepted by the rankings view."""

    HOME_VALUE_YOY = "homeValueYoyPct"
    RENT_YOY = "rentYoyPct"
    GROSS_RENT_YIELD = "grossRentYieldPct"
    PRICE_TO_RENT = "priceToRentRatio"
    HOME_VALUE = "currentHomeValue"
    RENT_VALUE = "currentRentValue"

    @property
    def column(self) -> str:
        return _SORT_COLUMNS[self]

    @classmethod
    def parse(cls, value: str) -> "RankingSort":
        try:
            return cls(value)
        except ValueError:
            raise InvalidFilter("sortBy", value, [member.value for member in cls]) from None


_SORT_COLUMNS: dict[RankingSort, str] = {
    RankingSort.HOME_VALUE_YOY: "home_value_yoy_pct",
    RankingSort.RENT_YOY: "rent_yoy_pct",
    RankingSort.GROSS_RENT_YIELD: "gross_rent_yield_pct",
    RankingSort.PRICE_TO_RENT: "price_to_rent_ratio",
    RankingSort.HOME_VALUE: "current_home_value",
    RankingSort.RENT_VALUE: "current_rent_value",
}


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
        logger.exception("Market summary query failed (%s)", context)
        raise UpstreamFailure("Market summary query failed") from exc


def get_snapshot(conn: duckdb.DuckDBPyConnection, region_id: str) -> MarketSummary | None:
    rows = _run(
        conn,
        f"{_SELECT} WHERE region_id = ? LIMIT 1",
        [region_id],
        context=f"region_id={region_id}",
    )
    return MarketSummary(**rows[0]) if rows else None


def require_snapshot(conn: duckdb.DuckDBPyConnection, region_id: str) -> MarketSummary:
    snapshot = get_snapshot(conn, region_id)
    if snapshot is None:
        raise NotFound("Region not found")
    return snapshot


def get_snapshots(
    conn: duckdb.DuckDBPyConnection, region_ids: Iterable[str]
) -> dict[str, MarketSummary]:
    ids = list(dict.fromkeys(region_ids))
    if not ids:
        return {}
    rows = _run(
        conn,
        f"{_SELECT} WHERE region_id IN ({', '.join('?' for _ in ids)})",
        ids,
        context=f"region_ids={ids}",
    )
    return {row["region_id"]: MarketSummary(**row) for row in rows}


def _round2(value: float | None) -> float | None:
    return None if value is None else round_half_up(value, 2)


def recompute_snapshot(
    conn: duckdb.DuckDBPyConnection,
    region: Region,
    *,
    today: date | None = None,
) -> MarketSummary:
    """Rebuild a region's snapshot directly from its default home-value and rent series."""

    window = SUMMARY_WINDOW.default
    home = derive_series(
        get_series(
            conn, region.region_id, MetricFamily.HOME_VALUE, DEFAULT_FILTERS, window, today=today
        )
    )
    rent = derive_series(
        get_series(conn, region.region_id, MetricFamily.RENT, DEFAULT_FILTERS, window, today=today)
    )
    latest_home = home[-1] if home else None
    latest_rent = rent[-1] if rent else None

    home_value = latest_home.value if latest_home else None
    rent_value = latest_rent.value if latest_rent else None
    home_yoy = latest_home.yoy_change_pct if latest_home else None
    return MarketSummary(
        region_id=region.region_id,
        region_name=region.region_name,
        display_name=region.display_name,
        geography_level=region.geography_level,
        state_code=region.state,
        state_name=region.state_name,
        metro=region.metro,
        size_rank=region.size_rank,
        current_home_value=home_value,
        home_value_yoy_pct=home_yoy,
        home_value_mom_pct=latest_home.mom_change_pct if latest_home else None,
        home_value_date=latest_home.date if latest_home else None,
        current_rent_value=rent_value,
        rent_yoy_pct=latest_rent.yoy_change_pct if latest_rent else None,
        rent_mom_pct=latest_rent.mom_change_pct if latest_rent else None,
        rent_value_date=latest_rent.date if latest_rent else None,
        price_to_rent_ratio=price_to_rent_ratio(home_value, rent_value),
        gross_rent_yield_pct=_round2(gross_rent_yield(rent_value, home_value)),
        market_classification=classify_market(home_yoy),
    )


def _is_stale(conn: duckdb.DuckDBPyConnection, snapshot: MarketSummary) -> bool:
    latest = latest_observation_date(
        conn, snapshot.region_id, MetricFamily.HOME_VALUE, DEFAULT_FILTERS
    )
    if latest is None:
        return False
    return snapshot.home_value_date is None or latest > snapshot.home_value_date


def snapshot_or_recompute(
    conn: duckdb.DuckDBPyConnection,
    region_id: str,
    *,
    region: Region | None = None,
    today: date | None = None,
) -> MarketSummary | None:
    """Stored snapshot, or one rebuilt from observations when absent or stale.

    Returns ``None`` only when the region itself is unknown.
    """

    snapshot = get_snapshot(conn, region_id)
    if snapshot is not None and not _is_stale(conn, snapshot):
        return snapshot

    region = region or find_region(conn, region_id)
    if region is None:
        return snapshot
    logger.info(
        "Recomputing market snapshot for %s (%s)",
        region_id,
        "stale" if snapshot is not None else "missing",
    )
    return recompute_snapshot(conn, region, today=today)


def health_score_for(
    conn: duckdb.DuckDBPyConnection,
    region_id: str,
    *,
    today: date | None = None,
) -> tuple[MarketSummary, HealthScore]:
    snapshot = snapshot_or_recompute(conn, region_id, today=today)
    if snapshot is None:
        raise NotFound("Region not found")
    score = market_health_score(
        snapshot.home_value_yoy_pct,
        snapshot.rent_yoy_pct,
        snapshot.price_to_rent_ratio,
        snapshot.gross_rent_yield_pct,
    )
    return snapshot, score


def rankings(
    conn: duckdb.DuckDBPyConnection,
    sort_by: str | RankingSort = RankingSort.HOME_VALUE_YOY,
    order: str = "desc",
    geography_level: str = "State",
    limit: int | None = LIST_DEFAULT_LIMIT,
) -> list[dict[str, Any]]:
    """Snapshots at one level ordered by an allow-listed column, numbered from 1."""

    sort = sort_by if isinstance(sort_by, RankingSort) else RankingSort.parse(sort_by)
    validate_level(geography_level, RANKING_LEVELS)
    direction = "ASC" if order == "asc" else "DESC"
    limit = clamp_limit(limit)
    rows = _run(
        conn,
        f"{_SELECT} WHERE geography_level = ? "
        f"ORDER BY {sort.column} {direction} NULLS LAST, region_id LIMIT {int(limit)}",
        [geography_level],
        context=f"rankings sort={sort.value} order={direction} level={geography_level}",
    )
    return [
        {"rank": index, **MarketSummary(**row).to_json()}
        for index, row in enumerate(rows, start=1)
    ]


def snapshots_for_level(
    conn: duckdb.DuckDBPyConnection, geography_level: str = "State"
) -> list[MarketSummary]:
    validate_level(geography_level)
    rows = _run(
        conn,
        f"{_SELECT} WHERE geography_level = ? ORDER BY size_rank ASC NULLS LAST, region_id",
        [geography_level],
        context=f"level={geography_level}",
    )
    return [MarketSummary(**row) for row in rows]


def overview_stats(conn: duckdb.DuckDBPyConnection) -> dict[str, Any]:
    """Region counts, data freshness and classification mix across all snapshots."""

    counts_rows = _run(
        conn,
        f"SELECT geography_level, COUNT(*) AS n FROM {MARKET_SUMMARY_TABLE} GROUP BY geography_level",
        [],
        context="overview counts",
    )
    dates_rows = _run(
        conn,
        f"SELECT MAX(home_value_date) AS home, MAX(rent_value_date) AS rent FROM {MARKET_SUMMARY_TABLE}",
        [],
        context="overview dates",
    )
    health_rows = _run(
        conn,
        f"SELECT market_classification, COUNT(*) AS n FROM {MARKET_SUMMARY_TABLE} "
        f"WHERE geography_level IN ({', '.join('?' for _ in CLASSIFIED_LEVELS)}) "
        "GROUP BY market_classification",
        list(CLASSIFIED_LEVELS),
        context="overview classification",
    )

    counts = {row["geography_level"]: row["n"] for row in counts_rows if row["geography_level"]}
    health = {
        row["market_classification"]: row["n"]
        for row in health_rows
        if row["market_classification"]
    }
    latest = dates_rows[0] if dates_rows else {}
    home_date = latest.get("home")
    rent_date = latest.get("rent")
    return {
        "regionCounts": counts,
        "totalRegions": sum(counts.values()),
        "latestHomeValueDate": home_date.isoformat() if home_date else None,
        "latestRentValueDate": rent_date.isoformat() if rent_date else None,
        "marketHealth": health,
    }


__all__ = [
    "RankingSort",
    "get_snapshot",
    "require_snapshot",
    "get_snapshots",
    "recompute_snapshot",
    "snapshot_or_recompute",
    "health_score_for",
    "rankings",
    "snapshots_for_level",
    "overview_stats",
]
