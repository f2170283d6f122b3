"""Weighted trending score formulas.

Each formula is defined once and used both to build the content source's
sort key and to compute the score returned to callers, so the two can
never drift apart.
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable

TRENDING_WINDOW_DAYS = 7
FEATURED_WINDOW_DAYS = 30

# Share of the requested limit fetched as candidates for each content kind
VIDEO_CANDIDATE_SHARE = 0.7
SERIES_CANDIDATE_SHARE = 0.3
FEATURED_VIDEO_SHARE = 0.6
FEATURED_SERIES_SHARE = 0.4


@dataclass(frozen=True)
class ScoreFormula:
    """A linear combination of named signals whose weights sum to 1.0."""

    name: str
    weights: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.weights:
            raise ValueError(f"Score formula '{self.name}' has no weights")
        if any(weight < 0 for weight in self.weights.values()):
            raise ValueError(f"Score formula '{self.name}' has a negative weight")
        if not math.isclose(sum(self.weights.values()), 1.0):
            raise ValueError(f"Weights of score formula '{self.name}' must sum to 1.0")

    @property
    def signals(self) -> tuple[str, ...]:
        return tuple(self.weights)

    def combine(self, term: Callable[[str], Any]) -> Any:
        """Fold ``term(signal) * weight`` over every signal.

        ``term`` may return numbers or query expressions; anything that
        supports ``*`` and ``+`` works.
        """
        total = None
        for signal, weight in self.weights.items():
            part = term(signal) * weight
            total = part if total is None else total + part
        return total

    def raw_score(self, signals: Mapping[str, Any]) -> float:
        """Unrounded score, treating missing or null signals as zero."""
        return self.combine(lambda name: float(signals.get(name) or 0))

    def score(self, signals: Mapping[str, Any]) -> int:
        return round_score(self.raw_score(signals))


def round_score(value: float) -> int:
    """Round half up, so 2.5 becomes 3 rather than 2."""
    return math.floor(value + 0.5)


def candidate_quota(limit: int, share: float) -> int:
    """Number of candidates of one kind to fetch for a list of ``limit``.

    Rounds away float noise before taking the ceiling, so 0.7 * 10 is 7.
    """
    return math.ceil(round(limit * share, 9))


CREATOR_SCORE = ScoreFormula(
    "creator",
    {
        "recent_followers": 0.40,
        "recent_views": 0.35,
        "recent_profile_visits": 0.15,
        "video_count": 0.10,
    },
)

VIDEO_SCORE = ScoreFormula(
    "video",
    {
        "recent_views": 0.5,
        "recent_likes": 0.3,
        "view_count": 0.2,
    },
)

SERIES_SCORE = ScoreFormula(
    "series",
    {
        "recent_purchases": 0.6,
        "recent_series_views": 0.25,
        "view_count": 0.15,
    },
)
