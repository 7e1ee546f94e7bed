"""Derived housing metrics computed from already-fetched series.

Every function is total: missing or degenerate inputs produce ``None`` (or a
zero score contribution) instead of raising, so partial data never aborts a
response.
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence

from market.model import HealthScore, InventoryEstimates, Observation, ScoreCategory, SeriesPoint

MOM_LAG = 1
YOY_LAG = 12

HOT_YOY_THRESHOLD = 10.0
WARM_YOY_THRESHOLD = 3.0

BUY_FAVORABLE_RATIO = 15.0
RENT_FAVORABLE_RATIO = 20.0

# Months-of-supply and days-on-market are proxies built without sales data.
BASE_MONTHLY_TURNOVER = 0.06
TURNOVER_YOY_SENSITIVITY = 0.5
MIN_MONTHLY_TURNOVER = 0.02
MAX_MONTHLY_TURNOVER = 0.15
BASE_DAYS_ON_MARKET = 30
DOM_YOY_WEIGHT = 0.5
DOM_MOM_WEIGHT = 2
MIN_DAYS_ON_MARKET = 10
MAX_DAYS_ON_MARKET = 120

CATEGORY_MAX_SCORE = 25
HEALTH_LABELS: tuple[tuple[int, str], ...] = (
    (85, "Excellent"),
    (70, "Good"),
    (55, "Fair"),
    (40, "Weak"),
)
SUPPLY_CONDITIONS: tuple[tuple[float, str], ...] = (
    (3, "Extreme Seller's Market"),
    (4, "Seller's Market"),
    (6, "Balanced"),
    (8, "Buyer's Market"),
)


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like JavaScript's ``Math.round(value * 10**digits) / 10**digits``."""

    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def _finite(value: float | None) -> bool:
    return value is not None and math.isfinite(value)


def pct_change(current: float | None, previous: float | None) -> float | None:
    """Percent change rounded to two decimals; ``None`` without a usable base."""

    if not _finite(current) or not _finite(previous) or previous == 0:
        return None
    return round_half_up((current - previous) / previous * 100, 2)


def derive_series(observations: Iterable[Observation]) -> list[SeriesPoint]:
    """Pair each observation with its lag-1 and lag-12 predecessors.

    Lags are positional within the series as given, after sorting by date.
    """

    ordered = sorted(observations, key=lambda obs: obs.date)
    points: list[SeriesPoint] = []
    for index, obs in enumerate(ordered):
        mom_base = ordered[index - MOM_LAG].value if index >= MOM_LAG else None
        yoy_base = ordered[index - YOY_LAG].value if index >= YOY_LAG else None
        points.append(
            SeriesPoint(
                date=obs.date,
                value=obs.value,
                mom_change_pct=pct_change(obs.value, mom_base),
                yoy_change_pct=pct_change(obs.value, yoy_base),
            )
        )
    return points


def price_to_rent_ratio(home_value: float | None, monthly_rent: float | None) -> float | None:
    """Home value over annualised rent, one decimal."""

    if not _finite(home_value) or not _finite(monthly_rent) or monthly_rent <= 0:
        return None
    return round_half_up(home_value / (monthly_rent * 12), 1)


def price_to_rent_band(ratio: float | None) -> str | None:
    if ratio is None:
        return None
    if ratio < BUY_FAVORABLE_RATIO:
        return "buy-favorable"
    if ratio <= RENT_FAVORABLE_RATIO:
        return "neutral"
    return "rent-favorable"


def gross_rent_yield(monthly_rent: float | None, home_value: float | None) -> float | None:
    if not _finite(monthly_rent) or not _finite(home_value) or home_value <= 0:
        return None
    return monthly_rent * 12 / home_value * 100


def classify_market(home_value_yoy_pct: float | None) -> str | None:
    """Hot above 10% YoY, Warm from 3% to 10% inclusive, Cold below 3%."""

    if not _finite(home_value_yoy_pct):
        return None
    if home_value_yoy_pct > HOT_YOY_THRESHOLD:
        return "Hot"
    if home_value_yoy_pct >= WARM_YOY_THRESHOLD:
        return "Warm"
    return "Cold"


def estimate_months_of_supply(
    inventory_count: float | None, yoy_change_pct: float | None
) -> float | None:
    """Months of supply from an assumed 6% monthly turnover.

    Rising inventory implies slower turnover; the rate is clamped to
    ``[MIN_MONTHLY_TURNOVER, MAX_MONTHLY_TURNOVER]``.
    """

    if not _finite(inventory_count) or not inventory_count:
        return None
    turnover = BASE_MONTHLY_TURNOVER
    if _finite(yoy_change_pct) and yoy_change_pct:
        turnover = BASE_MONTHLY_TURNOVER * (1 - (yoy_change_pct / 100) * TURNOVER_YOY_SENSITIVITY)
    turnover = max(MIN_MONTHLY_TURNOVER, min(MAX_MONTHLY_TURNOVER, turnover))
    return 1 / turnover


def estimate_days_on_market(
    yoy_change_pct: float | None, mom_change_pct: float | None
) -> int | None:
    if not _finite(yoy_change_pct):
        return None
    mom = mom_change_pct if _finite(mom_change_pct) else 0
    estimate = BASE_DAYS_ON_MARKET + yoy_change_pct * DOM_YOY_WEIGHT + mom * DOM_MOM_WEIGHT
    return int(max(MIN_DAYS_ON_MARKET, min(MAX_DAYS_ON_MARKET, round_half_up(estimate))))


def supply_condition(months_of_supply: float | None) -> str:
    if months_of_supply is None:
        return "Unknown"
    for ceiling, label in SUPPLY_CONDITIONS:
        if months_of_supply < ceiling:
            return label
    return "Strong Buyer's Market"


def inventory_estimates(
    inventory_count: float | None,
    yoy_change_pct: float | None,
    mom_change_pct: float | None,
) -> InventoryEstimates:
    months = estimate_months_of_supply(inventory_count, yoy_change_pct)
    return InventoryEstimates(
        estimated_months_of_supply=months,
        estimated_days_on_market=estimate_days_on_market(yoy_change_pct, mom_change_pct),
        supply_condition=supply_condition(months),
    )


def _appreciation_points(pct: float) -> int:
    if 3 <= pct <= 8:
        return 25
    if 8 < pct <= 12:
        return 20
    if pct > 12:
        return 15
    if 0 <= pct < 3:
        return 18
    if -3 <= pct < 0:
        return 10
    return 5


def _rent_growth_points(pct: float) -> int:
    if 2 <= pct <= 6:
        return 25
    if 6 < pct <= 10:
        return 20
    if pct > 10:
        return 15
    if 0 <= pct < 2:
        return 18
    if -2 <= pct < 0:
        return 12
    return 5


def _price_to_rent_points(ratio: float) -> int:
    if ratio < 15:
        return 25
    if ratio <= 18:
        return 22
    if ratio <= 20:
        return 18
    if ratio <= 25:
        return 12
    return 5


def _rent_yield_points(pct: float) -> int:
    if pct >= 8:
        return 25
    if pct >= 6:
        return 22
    if pct >= 5:
        return 18
    if pct >= 4:
        return 12
    return 5


def _status(value: float | None, positive, negative) -> str:
    if value is None:
        return "neutral"
    if positive(value):
        return "positive"
    if negative(value):
        return "negative"
    return "neutral"


def _category(name: str, value: float | None, points, positive, negative) -> ScoreCategory:
    usable = value if _finite(value) else None
    return ScoreCategory(
        category=name,
        score=points(usable) if usable is not None else 0,
        max_score=CATEGORY_MAX_SCORE,
        value=usable,
        status=_status(usable, positive, negative),
    )


def health_label(total: int) -> str:
    for floor, label in HEALTH_LABELS:
        if total >= floor:
            return label
    return "Poor"


def market_health_score(
    home_value_yoy_pct: float | None,
    rent_yoy_pct: float | None,
    price_to_rent: float | None,
    gross_rent_yield_pct: float | None,
) -> HealthScore:
    """Sum of four 0-25 category scores.

    A category with no input scores 0; the total is never renormalised.
    """

    breakdown: Sequence[ScoreCategory] = (
        _category(
            "Home Value Appreciation",
            home_value_yoy_pct,
            _appreciation_points,
            lambda v: v >= 3,
            lambda v: v < 0,
        ),
        _category("Rent Growth", rent_yoy_pct, _rent_growth_points, lambda v: v >= 2, lambda v: v < 0),
        _category(
            "Price-to-Rent Ratio",
            price_to_rent,
            _price_to_rent_points,
            lambda v: v < 18,
            lambda v: v > 22,
        ),
        _category(
            "Gross Rent Yield",
            gross_rent_yield_pct,
            _rent_yield_points,
            lambda v: v >= 6,
            lambda v: v < 4,
        ),
    )
    total = sum(item.score for item in breakdown)
    return HealthScore(total_score=total, label=health_label(total), breakdown=list(breakdown))


__all__ = [
    "round_half_up",
    "pct_change",
    "derive_series",
    "price_to_rent_ratio",
    "price_to_rent_band",
    "gross_rent_yield",
    "classify_market",
    "estimate_months_of_supply",
    "estimate_days_on_market",
    "supply_condition",
    "inventory_estimates",
    "market_health_score",
    "health_label",
    "MIN_MONTHLY_TURNOVER",
    "MAX_MONTHLY_TURNOVER",
    "MIN_DAYS_ON_MARKET",
    "MAX_DAYS_ON_MARKET",
]
