"""Errors raised by the ranking and category services."""


class TrendingError(Exception):
    """Base class for errors reported to the presentation layer."""


class RankingError(TrendingError):
    """A ranking pipeline could not compute its result."""


class CategoryError(TrendingError):
    """Category aggregation or maintenance failed."""
