"""Region directory: identity, hierarchy level and display metadata lookups."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Sequence

import duckdb

from market.errors import NotFound, UpstreamFailure
from market.filters import validate_level
from market.model import Region
from storage.db import REGIONS_TABLE, query_rows

logger = logging.getLogger(__name__)

REGION_COLUMNS = (
    "region_id",
    "region_name",
    "display_name",
    "geography_level",
    "state",
    "state_name",
    "city",
    "county",
    "metro",
    "size_rank",
)
_SELECT = f"SELECT {', '.join(REGION_COLUMNS)} FROM {REGIONS_TABLE}"


def region_from_row(row: Mapping[str, Any]) -> Region:
    return Region(**{column: row.get(column) for column in REGION_COLUMNS})


def fetch_regions(
    conn: duckdb.DuckDBPyConnection,
    sql: str,
    params: Sequence[object],
    *,
    context: str,
) -> list[Region]:
    """Run a region query and wrap store failures with diagnostic context."""

    try:
        rows = query_rows(conn, sql, params)
    except duckdb.Error as exc:
        logger.exception("Region lookup failed (%s)", context)
        raise UpstreamFailure("Region lookup failed") from exc
    return [region_from_row(row) for row in rows]


def find_region(conn: duckdb.DuckDBPyConnection, region_id: str) -> Region | None:
    results = fetch_regions(
        conn,
        f"{_SELECT} WHERE region_id = ? LIMIT 1",
        [region_id],
        context=f"region_id={region_id}",
    )
    return results[0] if results else None


def get_region(conn: duckdb.DuckDBPyConnection, region_id: str) -> Region:
    region = find_region(conn, region_id)
    if region is None:
        raise NotFound("Region not found")
    return region


def list_regions(conn: duckdb.DuckDBPyConnection, level: str, limit: int) -> list[Region]:
    """Largest regions of ``level`` first; regions without a size rank last."""

    validate_level(level)
    return fetch_regions(
        conn,
        f"{_SELECT} WHERE geography_level = ? "
        f"ORDER BY size_rank ASC NULLS LAST, region_id LIMIT {int(limit)}",
        [level],
        context=f"level={level} limit={limit}",
    )


def get_regions(conn: duckdb.DuckDBPyConnection, region_ids: Iterable[str]) -> list[Region]:
    """Batch lookup. Unknown ids are omitted; result order is not guaranteed."""

    ids = list(dict.fromkeys(region_ids))
    if not ids:
        return []
    placeholders = ", ".join("?" for _ in ids)
    return fetch_regions(
        conn,
        f"{_SELECT} WHERE region_id IN ({placeholders})",
        ids,
        context=f"region_ids={ids}",
    )


__all__ = [
    "REGION_COLUMNS",
    "region_from_row",
    "fetch_regions",
    "find_region",
    "get_region",
    "list_regions",
    "get_regions",
]
