import pytest

from market.directory import find_region, get_region, get_regions, list_regions
from market.errors import InvalidFilter, NotFound
from market.resolver import resolve_one, search


def _ids(regions):
    return [region.region_id for region in regions]


def test_search_orders_by_level_then_size_rank(conn):
    results = search(conn, "Tex")

    assert [region.geography_level for region in results] == ["State", "Metro", "Metro", "Metro"]
    # Unranked regions sort after ranked ones.
    assert _ids(results) == ["9", "394913", "394355", "5001"]


def test_unscoped_search_excludes_city_and_county(conn):
    results = search(conn, "Austin")

    assert {region.geography_level for region in results} <= {"National", "State", "Metro"}
    assert _ids(results) == ["394355"]


def test_search_is_case_insensitive(conn):
    assert _ids(search(conn, "DALLAS")) == ["394913"]


def test_scoped_search_matches_city_columns(conn):
    results = search(conn, "Texas", level="City")

    assert _ids(results) == ["3002", "3001"]


def test_short_query_without_level_returns_nothing(conn):
    assert search(conn, "T") == []
    assert search(conn, "   ") == []


def test_short_query_with_level_lists_largest_regions(conn):
    assert _ids(search(conn, "", level="State")) == ["6", "9"]


def test_unknown_level_is_ignored(conn):
    assert _ids(search(conn, "Dallas", level="Planet")) == ["394913"]


def test_search_limit_is_capped(conn):
    assert len(search(conn, "Tex", limit=2)) == 2
    assert len(search(conn, "Tex", limit=500)) == 4


def test_resolve_one_prefers_higher_levels(conn):
    assert resolve_one(conn, "Texas").geography_level == "State"
    assert resolve_one(conn, "Austin").region_id == "394355"


def test_resolve_one_reaches_every_level(conn):
    region = resolve_one(conn, "Travis")

    assert region.geography_level == "County"


def test_resolve_one_without_match(conn):
    assert resolve_one(conn, "Atlantis") is None
    assert resolve_one(conn, "  ") is None


def test_directory_lookups(conn):
    assert find_region(conn, "missing") is None
    assert get_region(conn, "9").state == "TX"
    assert sorted(_ids(get_regions(conn, ["9", "6", "missing", "9"]))) == ["6", "9"]


def test_get_region_not_found(conn):
    with pytest.raises(NotFound, match="Region not found"):
        get_region(conn, "missing")


def test_list_regions_rejects_unknown_level(conn):
    with pytest.raises(InvalidFilter):
        list_regions(conn, "Planet", 10)
