import api.main
from market.errors import UpstreamFailure

from conftest import AUSTIN, DALLAS


def test_health_endpoint(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_search_endpoint(client):
    response = client.get("/regions/search", params={"q": "Tex"})
    assert response.status_code == 200
    results = response.json()["results"]
    assert [item["regionId"] for item in results] == ["9", DALLAS, AUSTIN, "5001"]
    assert results[0]["geographyLevel"] == "State"


def test_search_short_query_returns_empty(client):
    response = client.get("/regions/search", params={"q": "T"})
    assert response.json() == {"results": []}


def test_market_overview(client):
    response = client.get(f"/market/{DALLAS}")
    assert response.status_code == 200
    assert response.json()["data"]["currentHomeValue"] == 323000


def test_market_overview_not_found(client):
    response = client.get("/market/missing")
    assert response.status_code == 404
    assert response.json() == {"error": "Region not found"}


def test_trends_rejects_unknown_tier(client):
    response = client.get(f"/market/{DALLAS}/trends", params={"tier": "Ultra"})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid tier. Valid options: Mid-Tier, Top-Tier, Bottom-Tier"}


def test_trends_endpoint(client):
    response = client.get(f"/market/{AUSTIN}/trends", params={"months": 36})
    assert response.status_code == 200
    payload = response.json()
    assert payload["filters"]["months"] == 36
    assert payload["data"][-1]["priceToRentRatio"] == 16.7


def test_unparseable_months_falls_back_to_default(client):
    response = client.get(f"/market/{AUSTIN}/trends", params={"months": "abc"})
    assert response.status_code == 200
    assert response.json()["filters"]["months"] == 12

    response = client.get("/market/compare", params={"regions": DALLAS, "months": "abc"})
    assert response.status_code == 200
    assert response.json()["data"]["filters"]["months"] == 60


def test_compare_requires_regions(client):
    response = client.get("/market/compare", params={"regions": ""})
    assert response.status_code == 400
    assert response.json() == {"error": "At least one region is required"}

    too_many = ",".join(str(index) for index in range(9))
    response = client.get("/market/compare", params={"regions": too_many})
    assert response.status_code == 400
    assert response.json() == {"error": "Maximum 8 regions allowed"}


def test_compare_is_lenient_about_filters(client):
    response = client.get(
        "/market/compare",
        params={"regions": f"{DALLAS},nope", "tier": "Ultra", "months": 12},
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert list(data["regions"]) == [DALLAS]
    assert data["filters"] == {"homeType": "All Homes", "tier": "Mid-Tier", "months": 12}
    assert data["homeValueTrends"][-1][DALLAS] == 323000


def test_rankings_endpoint(client):
    response = client.get("/market/rankings", params={"sortBy": "homeValueYoyPct"})
    assert response.status_code == 200
    payload = response.json()
    assert [row["regionId"] for row in payload["data"]] == ["6", "9"]
    assert payload["meta"]["total"] == 2

    response = client.get("/market/rankings", params={"sortBy": "bogus"})
    assert response.status_code == 400


def test_stats_and_all_endpoints(client):
    stats = client.get("/market/stats").json()["data"]
    assert stats["totalRegions"] == 3

    states = client.get("/market/all", params={"geographyLevel": "State"}).json()["data"]
    assert [item["regionId"] for item in states] == ["6", "9"]


def test_health_score_endpoint(client):
    response = client.get(f"/market/{AUSTIN}/health-score")
    assert response.status_code == 200
    payload = response.json()
    assert payload["data"]["totalScore"] == 94
    assert payload["snapshot"]["regionId"] == AUSTIN


def test_hpi_endpoint(client):
    response = client.get("/market/1001/hpi")
    assert response.status_code == 200
    assert response.json()["meta"]["matchedLevel"] == "State"

    response = client.get("/market/1001/hpi", params={"frequency": "weekly"})
    assert response.status_code == 400


def test_cut_endpoints(client):
    bedrooms = client.get(f"/market/{DALLAS}/bedrooms").json()["data"]
    assert [item["bedrooms"] for item in bedrooms["stats"]] == [1, 2, 3]

    types = client.get(f"/market/{DALLAS}/property-types").json()["data"]
    assert [item["type"] for item in types["stats"]] == ["sfr", "condo", "allHomes"]


def test_report_endpoints(client):
    inventory = client.get("/market/inventory", params={"regionId": DALLAS}).json()["data"]
    assert inventory["stats"]["currentInventory"] == 11200

    heat = client.get("/market/heat").json()
    assert heat["summary"]["avgHeatIndex"] == 54

    affordability = client.get("/market/affordability", params={"regionId": DALLAS}).json()
    assert affordability["data"]["homeownerIncomeNeeded"] == 95000


def test_home_value_tool(client):
    response = client.get("/tools/home-value-trend", params={"location": "Texas"})
    assert response.status_code == 200
    payload = response.json()
    assert payload["region"]["geographyLevel"] == "State"
    assert payload["summary"]["homeValueYoyPct"] == 5.0

    missing = client.get("/tools/home-value-trend", params={"location": "Atlantis"}).json()
    assert missing["error"].startswith('No region found matching "Atlantis"')

    tools = client.get("/tools").json()["tools"]
    assert tools[0]["name"] == "get_home_value_trend"


def test_store_failure_is_masked(client, monkeypatch):
    def fail(*_args, **_kwargs):
        raise UpstreamFailure("Region lookup failed")

    monkeypatch.setattr(api.main, "search", fail)

    response = client.get("/regions/search", params={"q": "Tex"})
    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}
