"""Canonical data model for regions, observations and derived market views."""

from __future__ import annotations

import datetime as dt
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MarketModel(BaseModel):
    """Base model serialising to the camelCase field names the UI expects."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        str_strip_whitespace=True,
    )

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Region(MarketModel):
    """A geographic entity from the region directory."""

    region_id: str = Field(..., description="Opaque, stable, unique region identifier.")
    geography_level: str = Field(
        ..., description="One of National, State, Metro, County, City, Zip."
    )
    region_name: Optional[str] = Field(default=None, description="Short region label.")
    display_name: Optional[str] = Field(
        default=None, description="Preferred human label; may be absent."
    )
    state: Optional[str] = Field(default=None, description="Two-letter state code.")
    state_name: Optional[str] = None
    city: Optional[str] = None
    county: Optional[str] = None
    metro: Optional[str] = None
    size_rank: Optional[int] = Field(
        default=None, description="Population/size rank; lower is larger."
    )

    @property
    def label(self) -> str:
        if self.display_name:
            return self.display_name
        name = self.region_name or self.region_id
        if self.state and self.geography_level not in ("National", "State"):
            return f"{name}, {self.state}"
        return name


class Observation(MarketModel):
    """A single dated value from one filtered metric series."""

    region_id: str
    date: dt.date
    value: Optional[float] = None
    segment: Optional[str] = Field(
        default=None,
        description="Segment key when several series are fetched together (bedrooms, home type).",
    )
    mom_change_pct: Optional[float] = Field(
        default=None, description="Month-over-month change as published by the data platform."
    )
    yoy_change_pct: Optional[float] = Field(
        default=None, description="Year-over-year change as published by the data platform."
    )
    label: Optional[str] = Field(
        default=None, description="Categorical label published with the value, if any."
    )


class SeriesPoint(MarketModel):
    """Observation paired with its lag-1 and lag-12 predecessors."""

    date: dt.date
    value: Optional[float] = None
    mom_change_pct: Optional[float] = None
    yoy_change_pct: Optional[float] = None


class HpiPoint(MarketModel):
    date: dt.date
    index_nsa: Optional[float] = None
    index_sa: Optional[float] = None
    level: Optional[str] = None
    place_name: Optional[str] = None


class MarketSummary(MarketModel):
    """Latest-observation snapshot for one region."""

    region_id: str
    region_name: Optional[str] = None
    display_name: Optional[str] = None
    geography_level: Optional[str] = None
    state_code: Optional[str] = None
    state_name: Optional[str] = None
    metro: Optional[str] = None
    size_rank: Optional[int] = None
    current_home_value: Optional[float] = None
    home_value_yoy_pct: Optional[float] = None
    home_value_mom_pct: Optional[float] = None
    home_value_date: Optional[dt.date] = None
    current_rent_value: Optional[float] = None
    rent_yoy_pct: Optional[float] = None
    rent_mom_pct: Optional[float] = None
    rent_value_date: Optional[dt.date] = None
    price_to_rent_ratio: Optional[float] = None
    gross_rent_yield_pct: Optional[float] = None
    market_classification: Optional[str] = None


class RegionStats(MarketModel):
    """Region metadata merged with its snapshot and comparison color."""

    region_id: str
    region_name: Optional[str] = None
    display_name: Optional[str] = None
    geography_level: Optional[str] = None
    state: Optional[str] = None
    state_name: Optional[str] = None
    city: Optional[str] = None
    county: Optional[str] = None
    metro: Optional[str] = None
    current_home_value: Optional[float] = None
    home_value_yoy_pct: Optional[float] = None
    home_value_mom_pct: Optional[float] = None
    current_rent_value: Optional[float] = None
    rent_yoy_pct: Optional[float] = None
    price_to_rent_ratio: Optional[float] = None
    market_classification: Optional[str] = None
    color: str


class ScoreCategory(MarketModel):
    category: str
    score: int
    max_score: int = 25
    value: Optional[float] = None
    status: str = "neutral"


class HealthScore(MarketModel):
    """Composite 0-100 market health score."""

    total_score: int
    label: str
    breakdown: list[ScoreCategory]


class InventoryEstimates(MarketModel):
    """Heuristic proxies derived from inventory trends, not measured values."""

    estimated_months_of_supply: Optional[float] = None
    estimated_days_on_market: Optional[int] = None
    supply_condition: str = "Unknown"


class ComparisonBundle(MarketModel):
    regions: dict[str, RegionStats]
    home_value_trends: list[dict[str, Any]]
    rent_trends: list[dict[str, Any]]
    price_to_rent_trends: list[dict[str, Any]]
    filters: dict[str, Any]

    def to_json(self) -> dict[str, Any]:
        # Wide rows are keyed by region id and must not be camel-cased.
        return {
            "regions": {key: stats.to_json() for key, stats in self.regions.items()},
            "homeValueTrends": [dict(row) for row in self.home_value_trends],
            "rentTrends": [dict(row) for row in self.rent_trends],
            "priceToRentTrends": [dict(row) for row in self.price_to_rent_trends],
            "filters": dict(self.filters),
        }


__all__ = [
    "MarketModel",
    "Region",
    "Observation",
    "SeriesPoint",
    "HpiPoint",
    "MarketSummary",
    "RegionStats",
    "ScoreCategory",
    "HealthScore",
    "InventoryEstimates",
    "ComparisonBundle",
]
