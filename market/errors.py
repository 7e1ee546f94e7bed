"""Error taxonomy shared by the market core and its HTTP/CLI front ends."""

from __future__ import annotations

from typing import Iterable


class MarketDataError(Exception):
    """Base class for every error raised deliberately by the market core."""


class NotFound(MarketDataError):
    """A region or snapshot does not exist for the requested key."""


class InvalidFilter(MarketDataError):
    """A caller-supplied filter value is outside its allow-list."""

    def __init__(self, name: str, value: object, options: Iterable[object]) -> None:
        self.name = name
        self.value = value
        self.options = tuple(options)
        joined = ", ".join(str(option) for option in self.options)
        super().__init__(f"Invalid {name}. Valid options: {joined}")


class InvalidCardinality(MarketDataError):
    """A comparison was requested for too few or too many regions."""


class UpstreamFailure(MarketDataError):
    """The data store was unreachable or a query failed."""


__all__ = [
    "MarketDataError",
    "NotFound",
    "InvalidFilter",
    "InvalidCardinality",
    "UpstreamFailure",
]
