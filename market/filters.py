"""Filter defaults and allow-lists for every metric family.

All call sites read their recognised options from here so that endpoints
meant to share semantics cannot drift apart.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from market.errors import InvalidFilter


class MetricFamily(str, Enum):
    HOME_VALUE = "home_value"
    RENT = "rent"
    INVENTORY = "inventory"
    AFFORDABILITY = "affordability"
    HEAT_INDEX = "heat_index"


GEOGRAPHY_LEVELS: tuple[str, ...] = ("National", "State", "Metro", "County", "City", "Zip")
LEVEL_PRECEDENCE: dict[str, int] = {level: rank for rank, level in enumerate(GEOGRAPHY_LEVELS, 1)}
# Levels searched when the caller does not name one.
DEFAULT_SEARCH_LEVELS: tuple[str, ...] = ("National", "State", "Metro")
RANKING_LEVELS: tuple[str, ...] = ("State", "Metro", "City")
CLASSIFIED_LEVELS: tuple[str, ...] = ("State", "Metro", "County", "City")

HOME_TYPES: tuple[str, ...] = ("All Homes", "Single Family", "Condo", "Multi Family")
TIERS: tuple[str, ...] = ("Mid-Tier", "Top-Tier", "Bottom-Tier")
BEDROOM_COUNTS: tuple[int, ...] = (1, 2, 3, 4, 5)

DEFAULT_HOME_TYPE = "All Homes"
DEFAULT_TIER = "Mid-Tier"
RENT_HOME_TYPE = "All Homes"

AFFORDABILITY_METRIC_TYPES: tuple[str, ...] = (
    "mortgage_payment",
    "total_monthly_payment",
    "homeowner_income_needed",
    "renter_income_needed",
)
PAYMENT_METRIC_TYPES: tuple[str, ...] = ("mortgage_payment", "total_monthly_payment")
DOWN_PAYMENT_PCTS: tuple[int, ...] = (5, 10, 20)

HPI_FREQUENCIES: tuple[str, ...] = ("monthly", "quarterly")
DEFAULT_HPI_FREQUENCY = "monthly"

SEARCH_DEFAULT_LIMIT = 15
SEARCH_MAX_LIMIT = 50
LIST_DEFAULT_LIMIT = 50
LIST_MAX_LIMIT = 100
MAX_COMPARE_REGIONS = 8


def clamp_limit(
    limit: int | None, default: int = LIST_DEFAULT_LIMIT, maximum: int = LIST_MAX_LIMIT
) -> int:
    if limit is None or limit < 1:
        return default
    return min(limit, maximum)


def validate_choice(name: str, value: Any, options: tuple[Any, ...]) -> Any:
    if value not in options:
        raise InvalidFilter(name, value, options)
    return value


def validate_level(value: str, options: tuple[str, ...] = GEOGRAPHY_LEVELS) -> str:
    return validate_choice("geographyLevel", value, options)


def parse_months(raw: str | int | None) -> int | None:
    """Integer window from a raw query value; anything unparseable is ``None``."""

    if raw is None or isinstance(raw, int):
        return raw
    try:
        return int(raw.strip())
    except ValueError:
        return None


@dataclass(frozen=True)
class WindowPolicy:
    """Allowed look-back windows (in months) for one call site."""

    allowed: tuple[int, ...]
    default: int

    def resolve(self, months: int | None) -> int:
        if months in self.allowed:
            return months
        return self.default


TREND_WINDOW = WindowPolicy((12, 36, 60), 12)
COMPARE_WINDOW = WindowPolicy((12, 36, 60, 120), 60)
CUTS_WINDOW = WindowPolicy((12, 24, 36, 60, 120), 36)
INVENTORY_WINDOW = WindowPolicy((12, 24, 36, 60, 120), 36)
HEAT_WINDOW = WindowPolicy((12, 24, 36, 60, 120), 24)
HPI_WINDOW = WindowPolicy((12, 24, 36, 60, 120), 120)
ASSISTANT_WINDOW = WindowPolicy((24,), 24)
SUMMARY_WINDOW = WindowPolicy((24,), 24)


@dataclass(frozen=True)
class SeriesFilters:
    """Dimensional filter tuple for home-value and rent series."""

    home_type: str = DEFAULT_HOME_TYPE
    tier: str = DEFAULT_TIER
    smoothed: bool = True
    seasonally_adjusted: bool = True
    bedrooms: int | None = None

    @classmethod
    def parse(
        cls, home_type: str | None = None, tier: str | None = None, *, strict: bool = True
    ) -> "SeriesFilters":
        """Build filters from raw query values.

        With ``strict`` an out-of-list value raises ``InvalidFilter``; otherwise
        it silently falls back to the default.
        """

        home_type = home_type or DEFAULT_HOME_TYPE
        tier = tier or DEFAULT_TIER
        if strict:
            validate_choice("homeType", home_type, HOME_TYPES)
            validate_choice("tier", tier, TIERS)
        else:
            home_type = home_type if home_type in HOME_TYPES else DEFAULT_HOME_TYPE
            tier = tier if tier in TIERS else DEFAULT_TIER
        return cls(home_type=home_type, tier=tier)

    def for_bedrooms(self, bedrooms: int) -> "SeriesFilters":
        # Bedroom cuts are only published for mid-tier, all-homes series.
        validate_choice("bedrooms", bedrooms, BEDROOM_COUNTS)
        return replace(self, home_type=DEFAULT_HOME_TYPE, tier=DEFAULT_TIER, bedrooms=bedrooms)

    def validate(self) -> "SeriesFilters":
        validate_choice("homeType", self.home_type, HOME_TYPES)
        validate_choice("tier", self.tier, TIERS)
        if self.bedrooms is not None:
            validate_choice("bedrooms", self.bedrooms, BEDROOM_COUNTS)
            validate_choice("homeType", self.home_type, (DEFAULT_HOME_TYPE,))
            validate_choice("tier", self.tier, (DEFAULT_TIER,))
        return self

    def as_dict(self) -> dict[str, Any]:
        return {"homeType": self.home_type, "tier": self.tier}


@dataclass(frozen=True)
class AffordabilityFilters:
    metric_type: str
    down_payment_pct: int | None = None

    def validate(self) -> "AffordabilityFilters":
        validate_choice("metricType", self.metric_type, AFFORDABILITY_METRIC_TYPES)
        if self.metric_type in PAYMENT_METRIC_TYPES:
            validate_choice("downPaymentPct", self.down_payment_pct, DOWN_PAYMENT_PCTS)
        elif self.down_payment_pct is not None:
            raise InvalidFilter("downPaymentPct", self.down_payment_pct, (None,))
        return self


DEFAULT_FILTERS = SeriesFilters()


__all__ = [
    "MetricFamily",
    "GEOGRAPHY_LEVELS",
    "LEVEL_PRECEDENCE",
    "DEFAULT_SEARCH_LEVELS",
    "RANKING_LEVELS",
    "CLASSIFIED_LEVELS",
    "HOME_TYPES",
    "TIERS",
    "BEDROOM_COUNTS",
    "AFFORDABILITY_METRIC_TYPES",
    "PAYMENT_METRIC_TYPES",
    "DOWN_PAYMENT_PCTS",
    "WindowPolicy",
    "SeriesFilters",
    "AffordabilityFilters",
    "DEFAULT_FILTERS",
    "clamp_limit",
    "validate_choice",
    "validate_level",
    "parse_months",
]
