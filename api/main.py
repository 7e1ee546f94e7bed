"""FastAPI service exposing region search, trends and housing-market views."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Iterator

import duckdb
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from market import assistant, cuts, reports, summary, trends
from market.compare import compare
from market.errors import (
    InvalidCardinality,
    InvalidFilter,
    MarketDataError,
    NotFound,
    UpstreamFailure,
)
from market.filters import (
    DEFAULT_HPI_FREQUENCY,
    LIST_DEFAULT_LIMIT,
    SEARCH_DEFAULT_LIMIT,
    SeriesFilters,
    parse_months,
)
from market.resolver import search
from storage.db import connect

load_dotenv()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    conn = connect()
    conn.close()
    yield


app = FastAPI(title="Housing Market API", version="0.1.0", lifespan=lifespan)


def _configure_cors() -> None:
    raw_origins = os.getenv("API_CORS_ORIGINS", "*")
    origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )


_configure_cors()


def get_connection() -> Iterator[duckdb.DuckDBPyConnection]:
    conn = connect(read_only=True)
    try:
        yield conn
    finally:
        conn.close()


_STATUS_CODES: dict[type[MarketDataError], int] = {
    NotFound: 404,
    InvalidFilter: 400,
    InvalidCardinality: 400,
}


@app.exception_handler(MarketDataError)
async def _market_error(request: Request, exc: MarketDataError) -> JSONResponse:
    if isinstance(exc, UpstreamFailure):
        logger.error("Upstream failure serving %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
    status = next(
        (code for kind, code in _STATUS_CODES.items() if isinstance(exc, kind)), 500
    )
    return JSONResponse(status_code=status, content={"error": str(exc)})


@app.exception_handler(duckdb.Error)
async def _store_error(request: Request, exc: duckdb.Error) -> JSONResponse:
    logger.error("Database error serving %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/regions/search")
def search_regions(
    q: str = Query("", description="Free-text location query"),
    level: str | None = Query(None, description="Restrict to one geography level"),
    limit: int = Query(SEARCH_DEFAULT_LIMIT, description="Maximum results (capped at 50)"),
    conn: duckdb.DuckDBPyConnection = Depends(get_connection),
):
    results = search(conn, q, level, limit)
    return {"results": [region.to_json() for region in results]}


@app.get("/market/stats")
def market_stats(conn: duckdb.DuckDBPyConnection = Depends(get_connection)):
    return {"data": summary.overview_stats(conn)}


@app.get("/market/all")
def market_all(
    geography_level: str = Query("State", alias="geographyLevel"),
    conn: duckdb.DuckDBPyConnection = Depends(get_connection),
):
    snapshots = summary.snapshots_for_level(conn, geography_level)
    return {"data": [snapshot.to_json() for snapshot in snapshots]}


@app.get("/market/rankings")
def market_rankings(
    sort_by: str = Query("homeValueYoyPct", alias="sortBy"),
    order: str = Query("desc"),
    geography_level: str = Query("State", alias="geographyLevel"),
    limit: int = Query(LIST_DEFAULT_LIMIT, description="Maximum rows (capped at 100)"),
    conn: duckdb.DuckDBPyConnection = Depends(get_connection),
):
    ranked = summary.rankings(conn, sort_by, order, geography_level, limit)
    return {
        "data": ranked,
        "meta": {
            "sortBy": sort_by,
            "order": order,
            "geographyLevel": geography_level,
            "total": len(ranked),
        },
    }


@app.get("/market/compare")
def market_compare(
    regions: str = Query("", description="Comma-separated region ids (1-8)"),
    home_type: str | None = Query(None, alias="homeType"),
    tier: str | None = Query(None),
    months: str | None = Query(None),
    conn: duckdb.DuckDBPyConnection = Depends(get_connection),
):
    region_ids = [item.strip() for item in regions.split(",") if item.strip()]
    filters = SeriesFilters.parse(home_type, tier, strict=False)
    bundle = compare(conn, region_ids, filters, parse_months(months))
    return {"data": bundle.to_json()}


@app.get("/market/inventory")
def market_inventory(
    region_id: str | None = Query(None, alias="regionId"),
    geography_level: str = Query("Metro", alias="geographyLevel"),
    months: str | None = Query(None),
    limit: int = Query(LIST_DEFAULT_LIMIT),
    conn: duckdb.DuckDBPyConnection = Depends(get_connection),
):
    if region_id:
        return {"data": reports.inventory_report(conn, region_id, parse_months(months))}
    return {"data": reports.inventory_summary(conn, geography_level, limit)}


@app.get("/market/heat")
def market_heat(
    region_id: str | None = Query(None, alias="regionId"),
    months: str | None = Query(None),
    limit: int = Query(LIST_DEFAULT_LIMIT),
    conn: duckdb.DuckDBPyConnection = Depends(get_connection),
):
    if region_id:
        return reports.heat_trend(conn, region_id, parse_months(months))
    return reports.heat_summary(conn, limit)


@app.get("/market/affordability")
def market_affordability(
    region_id: str | None = Query(None, alias="regionId"),
    geography_level: str = Query("Metro", alias="geographyLevel"),
    limit: int = Query(LIST_DEFAULT_LIMIT),
    conn: duckdb.DuckDBPyConnection = Depends(get_connection),
):
    if region_id:
        return reports.affordability_breakdown(conn, region_id)
    return reports.affordability_summary(conn, geography_level, limit)


@app.get("/market/{region_id}")
def market_overview(region_id: str, conn: duckdb.DuckDBPyConnection = Depends(get_connection)):
    return {"data": summary.require_snapshot(conn, region_id).to_json()}


@app.get("/market/{region_id}/trends")
def market_trends(
    region_id: str,
    home_type: str | None = Query(None, alias="homeType"),
    tier: str | None = Query(None),
    months: str | None = Query(None),
    conn: duckdb.DuckDBPyConnection = Depends(get_connection),
):
    filters = SeriesFilters.parse(home_type, tier, strict=True)
    return trends.region_trend(conn, region_id, filters, parse_months(months))


@app.get("/market/{region_id}/hpi")
def market_hpi(
    region_id: str,
    months: str | None = Query(None),
    frequency: str = Query(DEFAULT_HPI_FREQUENCY),
    conn: duckdb.DuckDBPyConnection = Depends(get_connection),
):
    return trends.region_hpi(conn, region_id, frequency, parse_months(months))


@app.get("/market/{region_id}/bedrooms")
def market_bedrooms(
    region_id: str,
    months: str | None = Query(None),
    conn: duckdb.DuckDBPyConnection = Depends(get_connection),
):
    return {"data": cuts.bedroom_breakdown(conn, region_id, parse_months(months))}


@app.get("/market/{region_id}/property-types")
def market_property_types(
    region_id: str,
    months: str | None = Query(None),
    conn: duckdb.DuckDBPyConnection = Depends(get_connection),
):
    return {"data": cuts.property_type_breakdown(conn, region_id, parse_months(months))}


@app.get("/market/{region_id}/health-score")
def market_health_score(region_id: str, conn: duckdb.DuckDBPyConnection = Depends(get_connection)):
    snapshot, score = summary.health_score_for(conn, region_id)
    return {"data": score.to_json(), "snapshot": snapshot.to_json()}


@app.get("/tools/home-value-trend")
def tool_home_value_trend(
    location: str = Query(..., description="Place named in natural language"),
    conn: duckdb.DuckDBPyConnection = Depends(get_connection),
):
    return assistant.home_value_trend(conn, location)


@app.get("/tools")
def tool_catalog() -> dict[str, list[dict]]:
    return {"tools": [assistant.HOME_VALUE_TREND_TOOL]}
