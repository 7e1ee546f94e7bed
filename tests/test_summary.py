import pytest
from dateutil.relativedelta import relativedelta

from conftest import AUSTIN, CURRENT_MONTH, DALLAS, TEXAS, TODAY
from market.errors import InvalidFilter, NotFound
from market.filters import SeriesFilters
from market.model import MarketSummary
from market.summary import (
    RankingSort,
    get_snapshot,
    health_score_for,
    overview_stats,
    rankings,
    require_snapshot,
    snapshot_or_recompute,
    snapshots_for_level,
)
from market.trends import region_hpi, region_trend
from storage.db import upsert_market_summary


def test_stored_snapshot_is_returned(conn):
    snapshot = snapshot_or_recompute(conn, DALLAS, today=TODAY)

    assert snapshot.current_home_value == pytest.approx(323000)
    assert snapshot.market_classification == "Warm"


def test_require_snapshot_missing(conn):
    with pytest.raises(NotFound, match="Region not found"):
        require_snapshot(conn, AUSTIN)


def test_missing_snapshot_is_recomputed(conn):
    assert get_snapshot(conn, AUSTIN) is None

    snapshot = snapshot_or_recompute(conn, AUSTIN, today=TODAY)

    assert snapshot.current_home_value == pytest.approx(446000)
    assert snapshot.home_value_yoy_pct == pytest.approx(5.69)
    assert snapshot.home_value_mom_pct == pytest.approx(0.45)
    assert snapshot.current_rent_value == pytest.approx(2230)
    assert snapshot.rent_yoy_pct == pytest.approx(5.69)
    assert snapshot.price_to_rent_ratio == pytest.approx(16.7)
    assert snapshot.gross_rent_yield_pct == pytest.approx(6.0)
    assert snapshot.market_classification == "Warm"
    assert snapshot.home_value_date == CURRENT_MONTH
    assert snapshot.display_name == "Austin-Round Rock, TX"


def test_stale_snapshot_is_recomputed(conn):
    stale = MarketSummary(
        region_id=AUSTIN,
        region_name="Austin, TX",
        geography_level="Metro",
        current_home_value=1,
        home_value_date=CURRENT_MONTH - relativedelta(months=3),
    )
    upsert_market_summary(conn, [stale])

    snapshot = snapshot_or_recompute(conn, AUSTIN, today=TODAY)

    assert snapshot.current_home_value == pytest.approx(446000)


def test_unknown_region_has_no_snapshot(conn):
    assert snapshot_or_recompute(conn, "missing", today=TODAY) is None

    with pytest.raises(NotFound):
        health_score_for(conn, "missing", today=TODAY)


def test_health_score_for_recomputed_region(conn):
    snapshot, score = health_score_for(conn, AUSTIN, today=TODAY)

    assert snapshot.region_id == AUSTIN
    assert score.total_score == 94
    assert score.label == "Excellent"
    assert score.to_json()["breakdown"][0]["maxScore"] == 25


def test_rankings_by_appreciation(conn):
    ranked = rankings(conn, "homeValueYoyPct", "desc", "State")

    assert [(row["rank"], row["regionId"]) for row in ranked] == [(1, "6"), (2, TEXAS)]


def test_rankings_ascending_with_enum(conn):
    ranked = rankings(conn, RankingSort.PRICE_TO_RENT, "asc", "State", limit=1)

    assert [row["regionId"] for row in ranked] == [TEXAS]


def test_rankings_reject_unknown_sort_and_level(conn):
    with pytest.raises(InvalidFilter, match="sortBy"):
        rankings(conn, "sizeRank")

    with pytest.raises(InvalidFilter, match="geographyLevel"):
        rankings(conn, "homeValueYoyPct", geography_level="Zip")


def test_snapshots_for_level_ordered_by_size(conn):
    assert [snapshot.region_id for snapshot in snapshots_for_level(conn, "State")] == ["6", TEXAS]


def test_overview_stats(conn):
    stats = overview_stats(conn)

    assert stats["regionCounts"] == {"State": 2, "Metro": 1}
    assert stats["totalRegions"] == 3
    assert stats["latestHomeValueDate"] == CURRENT_MONTH.isoformat()
    assert stats["latestRentValueDate"] is None
    assert stats["marketHealth"] == {"Warm": 2, "Hot": 1}


def test_region_trend_joins_rent_and_ratio(conn):
    trend = region_trend(conn, AUSTIN, SeriesFilters(), 12, today=TODAY)

    latest = trend["data"][-1]
    assert len(trend["data"]) == 12
    assert latest["homeValue"] == pytest.approx(446000)
    assert latest["rentValue"] == pytest.approx(2230)
    assert latest["momChangePct"] == pytest.approx(0.45)
    assert latest["priceToRentRatio"] == pytest.approx(16.7)
    assert trend["data"][0]["momChangePct"] is None
    assert trend["filters"] == {"homeType": "All Homes", "tier": "Mid-Tier", "months": 12}


def test_region_trend_unsupported_window_uses_default(conn):
    trend = region_trend(conn, AUSTIN, SeriesFilters(), 24, today=TODAY)

    assert trend["filters"]["months"] == 12


def test_region_hpi_reports_matched_level(conn):
    payload = region_hpi(conn, "1001", today=TODAY)

    assert payload["meta"]["matchedLevel"] == "State"
    assert payload["meta"]["geographyLevel"] == "County"
    assert payload["meta"]["total"] == 12
    assert payload["data"][0]["placeName"] == "Texas"


def test_region_hpi_unknown_region(conn):
    with pytest.raises(NotFound):
        region_hpi(conn, "missing", today=TODAY)
