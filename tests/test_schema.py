from datetime import date

import pytest
from pydantic import ValidationError

from market.model import ComparisonBundle, MarketSummary, Observation, Region, RegionStats
from storage.db import MARKET_SUMMARY_TABLE, REGIONS_TABLE, query_rows


def test_region_serializes_with_camel_case_keys():
    region = Region(
        region_id="394913",
        geography_level="Metro",
        region_name="Dallas, TX",
        state="TX",
        size_rank=4,
    )

    payload = region.to_json()

    assert payload["regionId"] == "394913"
    assert payload["geographyLevel"] == "Metro"
    assert payload["sizeRank"] == 4
    assert payload["displayName"] is None


def test_region_label_prefers_display_name():
    assert Region(region_id="1", geography_level="Metro", display_name="Austin-Round Rock, TX").label == (
        "Austin-Round Rock, TX"
    )
    assert Region(region_id="2", geography_level="City", region_name="Austin", state="TX").label == "Austin, TX"
    assert Region(region_id="3", geography_level="State", region_name="Texas", state="TX").label == "Texas"


def test_observation_requires_numeric_value():
    with pytest.raises(ValidationError):
        Observation(region_id="9", date=date(2024, 1, 1), value="not-a-number")


def test_models_are_immutable():
    summary = MarketSummary(region_id="9", current_home_value=300000)
    with pytest.raises(ValidationError):
        summary.current_home_value = 1


def test_comparison_bundle_keeps_region_ids_as_keys():
    bundle = ComparisonBundle(
        regions={"394913": RegionStats(region_id="394913", color="#2563eb")},
        home_value_trends=[{"date": "2024-01-01", "formattedDate": "Jan 2024", "394913": 300000.0}],
        rent_trends=[],
        price_to_rent_trends=[],
        filters={"homeType": "All Homes", "tier": "Mid-Tier", "months": 60},
    )

    payload = bundle.to_json()

    assert set(payload) == {"regions", "homeValueTrends", "rentTrends", "priceToRentTrends", "filters"}
    assert payload["regions"]["394913"]["color"] == "#2563eb"
    assert payload["homeValueTrends"][0]["394913"] == 300000.0


def test_schema_created_and_seeded(conn):
    regions = query_rows(conn, f"SELECT COUNT(*) AS n FROM {REGIONS_TABLE}")
    summaries = query_rows(conn, f"SELECT region_id FROM {MARKET_SUMMARY_TABLE} ORDER BY region_id")

    assert regions[0]["n"] == 11
    assert [row["region_id"] for row in summaries] == ["394913", "6", "9"]
