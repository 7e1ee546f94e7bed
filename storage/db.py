"""DuckDB persistence utilities for regions and housing-market fact tables."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

import duckdb

from market.model import MarketSummary, Region

DB_ENV_VAR = "MARKET_DB_PATH"
DEFAULT_DB_PATH = Path("data/market.duckdb")

REGIONS_TABLE = "regions"
ZHVI_TABLE = "zhvi_values"
ZORI_TABLE = "zori_values"
INVENTORY_TABLE = "inventory_values"
AFFORDABILITY_TABLE = "affordability_metrics"
HEAT_INDEX_TABLE = "market_heat_index"
MARKET_SUMMARY_TABLE = "market_summary"
HPI_TABLE = "fhfa_hpi"

_SCHEMA: dict[str, str] = {
    REGIONS_TABLE: """
        region_id TEXT PRIMARY KEY,
        region_name TEXT,
        display_name TEXT,
        geography_level TEXT,
        state TEXT,
        state_name TEXT,
        city TEXT,
        county TEXT,
        metro TEXT,
        size_rank INTEGER
    """,
    ZHVI_TABLE: """
        region_id TEXT NOT NULL,
        date DATE NOT NULL,
        value DOUBLE,
        geography_level TEXT,
        home_type TEXT,
        tier TEXT,
        bedrooms INTEGER,
        smoothed BOOLEAN,
        seasonally_adjusted BOOLEAN,
        frequency TEXT,
        mom_change_pct DOUBLE,
        yoy_change_pct DOUBLE
    """,
    ZORI_TABLE: """
        region_id TEXT NOT NULL,
        date DATE NOT NULL,
        value DOUBLE,
        geography_level TEXT,
        home_type TEXT,
        smoothed BOOLEAN,
        seasonally_adjusted BOOLEAN,
        frequency TEXT,
        mom_change_pct DOUBLE,
        yoy_change_pct DOUBLE
    """,
    INVENTORY_TABLE: """
        region_id TEXT NOT NULL,
        date DATE NOT NULL,
        inventory_count DOUBLE,
        geography_level TEXT,
        smoothed BOOLEAN,
        frequency TEXT,
        mom_change_pct DOUBLE,
        yoy_change_pct DOUBLE
    """,
    AFFORDABILITY_TABLE: """
        region_id TEXT NOT NULL,
        date DATE NOT NULL,
        value DOUBLE,
        geography_level TEXT,
        metric_type TEXT NOT NULL,
        down_payment_pct INTEGER,
        mom_change_pct DOUBLE,
        yoy_change_pct DOUBLE
    """,
    HEAT_INDEX_TABLE: """
        region_id TEXT NOT NULL,
        date DATE NOT NULL,
        heat_index DOUBLE,
        geography_level TEXT,
        mom_change DOUBLE,
        yoy_change DOUBLE,
        market_temperature TEXT,
        PRIMARY KEY (region_id, date)
    """,
    MARKET_SUMMARY_TABLE: """
        region_id TEXT PRIMARY KEY,
        region_name TEXT,
        display_name TEXT,
        geography_level TEXT,
        state_code TEXT,
        state_name TEXT,
        metro TEXT,
        size_rank INTEGER,
        current_home_value DOUBLE,
        home_value_yoy_pct DOUBLE,
        home_value_mom_pct DOUBLE,
        home_value_date DATE,
        current_rent_value DOUBLE,
        rent_yoy_pct DOUBLE,
        rent_mom_pct DOUBLE,
        rent_value_date DATE,
        price_to_rent_ratio DOUBLE,
        gross_rent_yield_pct DOUBLE,
        market_classification TEXT
    """,
    HPI_TABLE: """
        level TEXT,
        place_name TEXT,
        place_id TEXT,
        date DATE NOT NULL,
        index_nsa DOUBLE,
        index_sa DOUBLE,
        hpi_type TEXT,
        frequency TEXT
    """,
}

_INDEXES: tuple[tuple[str, str], ...] = (
    (REGIONS_TABLE, "geography_level, size_rank"),
    (ZHVI_TABLE, "region_id, date"),
    (ZORI_TABLE, "region_id, date"),
    (INVENTORY_TABLE, "region_id, date"),
    (AFFORDABILITY_TABLE, "region_id, date"),
    (MARKET_SUMMARY_TABLE, "geography_level"),
    (HPI_TABLE, "level, place_id"),
)


def _ensure_parent_dir(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def get_database_path(override: str | os.PathLike[str] | None = None) -> Path:
    """Resolve the DuckDB file path from an explicit override or environment variable."""

    if override is not None:
        return Path(override)
    env_value = os.getenv(DB_ENV_VAR)
    if env_value:
        return Path(env_value)
    return DEFAULT_DB_PATH


def connect(
    path: str | os.PathLike[str] | None = None,
    *,
    read_only: bool = False,
    ensure: bool = True,
) -> duckdb.DuckDBPyConnection:
    """Create a DuckDB connection, optionally ensuring schema availability."""

    db_path = get_database_path(path)
    if not read_only:
        _ensure_parent_dir(db_path)
    conn = duckdb.connect(str(db_path), read_only=read_only)
    if ensure and not read_only:
        ensure_schema(conn)
    return conn


def ensure_schema(conn: duckdb.DuckDBPyConnection) -> None:
    """Create every table the market core reads if it does not already exist."""

    for table, columns in _SCHEMA.items():
        conn.execute(f"CREATE TABLE IF NOT EXISTS {table} ({columns})")
    for table, columns in _INDEXES:
        conn.execute(
            f"""
            CREATE INDEX IF NOT EXISTS idx_{table}_{columns.split(",")[0]}
            ON {table} ({columns})
            """
        )


def query_rows(
    conn: duckdb.DuckDBPyConnection,
    sql: str,
    params: Sequence[object] | None = None,
) -> list[dict[str, Any]]:
    """Execute ``sql`` with bound ``params`` and return rows keyed by column name."""

    cursor = conn.execute(sql, list(params or []))
    columns = [column[0] for column in cursor.description]
    return [dict(zip(columns, row)) for row in cursor.fetchall()]


def insert_rows(
    conn: duckdb.DuckDBPyConnection,
    table: str,
    rows: Iterable[Mapping[str, Any]],
    *,
    replace: bool = False,
) -> int:
    """Bulk-insert mappings into one of the known tables.

    Returns
    -------
    int
        Number of records written to the database.
    """

    if table not in _SCHEMA:
        raise ValueError(f"Unknown table '{table}'")
    materialized = [dict(row) for row in rows]
    if not materialized:
        return 0

    columns = list(materialized[0])
    placeholders = ", ".join("?" for _ in columns)
    verb = "INSERT OR REPLACE" if replace else "INSERT"
    conn.executemany(
        f"{verb} INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
        [[row.get(column) for column in columns] for row in materialized],
    )
    return len(materialized)


def upsert_regions(conn: duckdb.DuckDBPyConnection, regions: Iterable[Region]) -> int:
    """Insert or replace a batch of ``Region`` records."""

    return insert_rows(
        conn,
        REGIONS_TABLE,
        (region.model_dump() for region in regions),
        replace=True,
    )


def upsert_market_summary(
    conn: duckdb.DuckDBPyConnection, snapshots: Iterable[MarketSummary]
) -> int:
    """Insert or replace a batch of ``MarketSummary`` snapshot rows."""

    return insert_rows(
        conn,
        MARKET_SUMMARY_TABLE,
        (snapshot.model_dump() for snapshot in snapshots),
        replace=True,
    )


__all__ = [
    "connect",
    "ensure_schema",
    "query_rows",
    "insert_rows",
    "upsert_regions",
    "upsert_market_summary",
    "get_database_path",
    "REGIONS_TABLE",
    "ZHVI_TABLE",
    "ZORI_TABLE",
    "INVENTORY_TABLE",
    "AFFORDABILITY_TABLE",
    "HEAT_INDEX_TABLE",
    "MARKET_SUMMARY_TABLE",
    "HPI_TABLE",
]
