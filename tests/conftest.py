from datetime import date

import pytest
from dateutil.relativedelta import relativedelta
from fastapi.testclient import TestClient

from market.model import MarketSummary, Region
from storage.db import (
    AFFORDABILITY_TABLE,
    HEAT_INDEX_TABLE,
    HPI_TABLE,
    INVENTORY_TABLE,
    ZHVI_TABLE,
    ZORI_TABLE,
    connect,
    insert_rows,
    upsert_market_summary,
    upsert_regions,
)

CURRENT_MONTH = date.today().replace(day=1)
TODAY = CURRENT_MONTH.replace(day=15)

DALLAS = "394913"
AUSTIN = "394355"
TEXAS = "9"


def month_starts(count: int, end: date = CURRENT_MONTH) -> list[date]:
    return [end - relativedelta(months=offset) for offset in range(count - 1, -1, -1)]


def zhvi_row(
    region_id, day, value, *, home_type="All Homes", tier="Mid-Tier", bedrooms=None, mom=None, yoy=None
):
    return {
        "region_id": region_id,
        "date": day,
        "value": value,
        "geography_level": "Metro",
        "home_type": home_type,
        "tier": tier,
        "bedrooms": bedrooms,
        "smoothed": True,
        "seasonally_adjusted": True,
        "frequency": "monthly",
        "mom_change_pct": mom,
        "yoy_change_pct": yoy,
    }


def zori_row(region_id, day, value):
    return {
        "region_id": region_id,
        "date": day,
        "value": value,
        "geography_level": "Metro",
        "home_type": "All Homes",
        "smoothed": True,
        "seasonally_adjusted": True,
        "frequency": "monthly",
        "mom_change_pct": None,
        "yoy_change_pct": None,
    }


REGIONS = [
    Region(region_id="102001", geography_level="National", region_name="United States", size_rank=0),
    Region(region_id="6", geography_level="State", region_name="California", state="CA", state_name="California", size_rank=1),
    Region(region_id=TEXAS, geography_level="State", region_name="Texas", state="TX", state_name="Texas", size_rank=2),
    Region(
        region_id=DALLAS,
        geography_level="Metro",
        region_name="Dallas, TX",
        state="TX",
        state_name="Texas",
        metro="Dallas-Fort Worth-Arlington, TX",
        size_rank=4,
    ),
    Region(
        region_id=AUSTIN,
        geography_level="Metro",
        region_name="Austin, TX",
        display_name="Austin-Round Rock, TX",
        state="TX",
        state_name="Texas",
        metro="Austin-Round Rock, TX",
        size_rank=30,
    ),
    Region(region_id="5001", geography_level="Metro", region_name="Texarkana, TX", state="TX", state_name="Texas"),
    Region(
        region_id="1001",
        geography_level="County",
        region_name="Travis County",
        state="TX",
        state_name="Texas",
        county="Travis County",
        metro="Austin, TX",
        size_rank=40,
    ),
    Region(region_id="5002", geography_level="County", region_name="Nowhere County"),
    Region(region_id="3001", geography_level="City", region_name="Texas City", state="TX", state_name="Texas", city="Texas City", size_rank=900),
    Region(region_id="3002", geography_level="City", region_name="Austin", state="TX", state_name="Texas", city="Austin", size_rank=10),
    Region(region_id="4001", geography_level="Zip", region_name="78701", state="TX", state_name="Texas", city="Austin"),
]


def _snapshots() -> list[MarketSummary]:
    latest = CURRENT_MONTH
    return [
        MarketSummary(
            region_id=TEXAS,
            region_name="Texas",
            geography_level="State",
            state_code="TX",
            state_name="Texas",
            size_rank=2,
            current_home_value=300000,
            home_value_yoy_pct=5.0,
            home_value_mom_pct=0.4,
            home_value_date=latest,
            current_rent_value=1900,
            rent_yoy_pct=3.0,
            price_to_rent_ratio=13.2,
            gross_rent_yield_pct=7.6,
            market_classification="Warm",
        ),
        MarketSummary(
            region_id="6",
            region_name="California",
            geography_level="State",
            state_code="CA",
            state_name="California",
            size_rank=1,
            current_home_value=780000,
            home_value_yoy_pct=12.5,
            home_value_mom_pct=1.1,
            home_value_date=latest,
            current_rent_value=2900,
            rent_yoy_pct=6.5,
            price_to_rent_ratio=22.4,
            gross_rent_yield_pct=4.46,
            market_classification="Hot",
        ),
        MarketSummary(
            region_id=DALLAS,
            region_name="Dallas, TX",
            geography_level="Metro",
            state_code="TX",
            state_name="Texas",
            metro="Dallas-Fort Worth-Arlington, TX",
            size_rank=4,
            current_home_value=323000,
            home_value_yoy_pct=3.86,
            home_value_mom_pct=0.31,
            home_value_date=latest,
            current_rent_value=1915,
            rent_yoy_pct=3.23,
            price_to_rent_ratio=14.1,
            gross_rent_yield_pct=7.11,
            market_classification="Warm",
        ),
    ]


def seed(conn) -> None:
    upsert_regions(conn, REGIONS)
    upsert_market_summary(conn, _snapshots())

    months24 = month_starts(24)
    homes, rents = [], []
    for i, day in enumerate(months24):
        homes.append(zhvi_row(DALLAS, day, 300000 + 1000 * i))
        homes.append(zhvi_row(AUSTIN, day, 400000 + 2000 * i))
        homes.append(zhvi_row(AUSTIN, day, 900000 + 5000 * i, tier="Top-Tier"))
        rents.append(zori_row(DALLAS, day, 1800 + 5 * i))
        rents.append(zori_row(AUSTIN, day, 2000 + 10 * i))

    months13 = month_starts(13)
    for i, day in enumerate(months13):
        for bedrooms in (1, 2, 3):
            homes.append(zhvi_row(DALLAS, day, 200000 + 50000 * bedrooms + 500 * i, bedrooms=bedrooms))
        homes.append(zhvi_row(DALLAS, day, 350000 + 1000 * i, home_type="Single Family"))
        homes.append(zhvi_row(DALLAS, day, 250000 + 400 * i, home_type="Condo"))
    insert_rows(conn, ZHVI_TABLE, homes)
    insert_rows(conn, ZORI_TABLE, rents)

    inventory = []
    for i, day in enumerate(months13):
        last = i == len(months13) - 1
        inventory.append(
            {
                "region_id": DALLAS,
                "date": day,
                "inventory_count": 10000 + 100 * i,
                "geography_level": "Metro",
                "smoothed": True,
                "frequency": "monthly",
                "mom_change_pct": 2.0 if last else None,
                "yoy_change_pct": 20.0 if last else None,
            }
        )
    inventory.append(
        {
            "region_id": AUSTIN,
            "date": CURRENT_MONTH,
            "inventory_count": 5000,
            "geography_level": "Metro",
            "smoothed": True,
            "frequency": "monthly",
            "mom_change_pct": -1.0,
            "yoy_change_pct": -4.0,
        }
    )
    insert_rows(conn, INVENTORY_TABLE, inventory)

    previous = CURRENT_MONTH - relativedelta(months=1)
    heat = [
        (DALLAS, previous, 68, "Hot"),
        (DALLAS, CURRENT_MONTH, 72, "Hot"),
        (AUSTIN, CURRENT_MONTH, 35, "Cold"),
        (TEXAS, CURRENT_MONTH, 55, "Neutral"),
    ]
    insert_rows(
        conn,
        HEAT_INDEX_TABLE,
        [
            {
                "region_id": region_id,
                "date": day,
                "heat_index": value,
                "geography_level": "Metro",
                "mom_change": None,
                "yoy_change": None,
                "market_temperature": temperature,
            }
            for region_id, day, value, temperature in heat
        ],
    )

    affordability = []
    for metric_type in ("mortgage_payment", "total_monthly_payment"):
        for pct, value in ((5, 2100.0), (10, 2000.0), (20, 1800.0)):
            affordability.append((DALLAS, metric_type, pct, value + (400 if metric_type == "total_monthly_payment" else 0)))
    affordability += [
        (DALLAS, "homeowner_income_needed", None, 95000.0),
        (DALLAS, "renter_income_needed", None, 70000.0),
        (AUSTIN, "homeowner_income_needed", None, 110000.0),
    ]
    insert_rows(
        conn,
        AFFORDABILITY_TABLE,
        [
            {
                "region_id": region_id,
                "date": CURRENT_MONTH,
                "value": value,
                "geography_level": "Metro",
                "metric_type": metric_type,
                "down_payment_pct": pct,
                "mom_change_pct": None,
                "yoy_change_pct": 1.5,
            }
            for region_id, metric_type, pct, value in affordability
        ],
    )

    hpi = []
    for i, day in enumerate(month_starts(12)):
        for level, place_id, name, base in (
            ("USA", None, "United States", 400),
            ("State", "TX", "Texas", 380),
            ("MSA", DALLAS, "Dallas-Fort Worth-Arlington, TX", 350),
        ):
            hpi.append(
                {
                    "level": level,
                    "place_name": name,
                    "place_id": place_id,
                    "date": day,
                    "index_nsa": base + i,
                    "index_sa": base + i + 0.5,
                    "hpi_type": "traditional",
                    "frequency": "monthly",
                }
            )
    insert_rows(conn, HPI_TABLE, hpi)


@pytest.fixture()
def db_path(monkeypatch, tmp_path):
    path = tmp_path / "market.duckdb"
    monkeypatch.setenv("MARKET_DB_PATH", str(path))
    return path


@pytest.fixture()
def conn(db_path):
    connection = connect()
    seed(connection)
    yield connection
    connection.close()


@pytest.fixture()
def populated_db(db_path):
    connection = connect()
    try:
        seed(connection)
    finally:
        connection.close()
    yield db_path


@pytest.fixture()
def client(populated_db):
    from api.main import app

    with TestClient(app) as test_client:
        yield test_client
