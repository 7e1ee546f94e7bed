"""Resolve free-text location queries to ranked regions."""

from __future__ import annotations

import logging

import duckdb

from market.directory import REGION_COLUMNS, fetch_regions, list_regions
from market.filters import (
    DEFAULT_SEARCH_LEVELS,
    GEOGRAPHY_LEVELS,
    LEVEL_PRECEDENCE,
    SEARCH_DEFAULT_LIMIT,
    SEARCH_MAX_LIMIT,
    clamp_limit,
)
from market.model import Region
from storage.db import REGIONS_TABLE

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2

# Columns matched when the caller scopes the search to one level.
SCOPED_MATCH_COLUMNS = ("region_name", "display_name", "state_name", "city", "county", "metro")
# Global search and single-best-match resolution skip city and county names.
GLOBAL_MATCH_COLUMNS = ("region_name", "display_name", "state_name", "metro")

_PRECEDENCE_SQL = (
    "CASE geography_level "
    + " ".join(f"WHEN '{level}' THEN {rank}" for level, rank in LEVEL_PRECEDENCE.items())
    + f" ELSE {len(LEVEL_PRECEDENCE) + 1} END"
)
_ORDER_SQL = f"ORDER BY {_PRECEDENCE_SQL}, size_rank ASC NULLS LAST, region_id"


def _match_clause(columns: tuple[str, ...]) -> str:
    return "(" + " OR ".join(f"{column} ILIKE ?" for column in columns) + ")"


def _ranked_match(
    conn: duckdb.DuckDBPyConnection,
    query: str,
    *,
    levels: tuple[str, ...] | None,
    columns: tuple[str, ...],
    limit: int,
) -> list[Region]:
    pattern = f"%{query}%"
    where = [_match_clause(columns)]
    params: list[object] = [pattern] * len(columns)
    if levels:
        where.insert(0, f"geography_level IN ({', '.join('?' for _ in levels)})")
        params = [*levels, *params]
    sql = (
        f"SELECT {', '.join(REGION_COLUMNS)} FROM {REGIONS_TABLE} "
        f"WHERE {' AND '.join(where)} {_ORDER_SQL} LIMIT {int(limit)}"
    )
    return fetch_regions(conn, sql, params, context=f"query={query!r} levels={levels}")


def search(
    conn: duckdb.DuckDBPyConnection,
    query: str | None,
    level: str | None = None,
    limit: int | None = SEARCH_DEFAULT_LIMIT,
) -> list[Region]:
    """Case-insensitive substring search ranked by level precedence, then size rank.

    Unknown ``level`` values are ignored. Without a level the search only
    covers National, State and Metro regions.
    """

    text = (query or "").strip()
    limit = clamp_limit(limit, SEARCH_DEFAULT_LIMIT, SEARCH_MAX_LIMIT)
    level = level if level in GEOGRAPHY_LEVELS else None

    if len(text) < MIN_QUERY_LENGTH:
        if level is None:
            return []
        return list_regions(conn, level, limit)

    if level is not None:
        return _ranked_match(conn, text, levels=(level,), columns=SCOPED_MATCH_COLUMNS, limit=limit)
    return _ranked_match(
        conn, text, levels=DEFAULT_SEARCH_LEVELS, columns=GLOBAL_MATCH_COLUMNS, limit=limit
    )


def resolve_one(conn: duckdb.DuckDBPyConnection, text: str | None) -> Region | None:
    """Best single region for a place named in natural language, across all levels."""

    text = (text or "").strip()
    if not text:
        return None
    results = _ranked_match(conn, text, levels=None, columns=GLOBAL_MATCH_COLUMNS, limit=1)
    if not results:
        logger.info("No region matched %r", text)
        return None
    return results[0]


__all__ = ["search", "resolve_one", "MIN_QUERY_LENGTH"]
