"""Recommendation engine configuration — single source for all thresholds."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class QualityGate:
    """A place survives if it clears either bar."""
    new_place_min_ratings: int = 5
    new_place_min_rating: float = 3.8
    established_min_ratings: int = 10
    established_min_rating: float = 4.0

    def passes(self, rating: float, rating_count: int) -> bool:
        is_new_place = rating_count >= self.new_place_min_ratings and rating >= self.new_place_min_rating
        is_established = rating >= self.established_min_rating and rating_count >= self.established_min_ratings
        return is_new_place or is_established


@dataclass(frozen=True)
class SearchLimits:
    """How hard to look for candidates per preference."""
    target_per_preference: int = 5      # stop escalating once this many are retained
    qualifiers: tuple[str, ...] = field(
        default=("best", "popular", "new", "trendy", "cool")
    )
    wider_retry: bool = True            # one wider-radius retry when a preference found nothing


@dataclass(frozen=True)
class RankingWeights:
    """Weights for the rating-weighted ranking strategy."""
    seconds_per_rating_point: float = 300.0


QUALITY_GATE = QualityGate()
SEARCH_LIMITS = SearchLimits()
RANKING_WEIGHTS = RankingWeights()
