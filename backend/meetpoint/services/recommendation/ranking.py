"""Ranking engine — orders costed candidates by fairness (or rating-weighted time)."""

from collections.abc import Mapping, Sequence

from meetpoint.config import settings
from meetpoint.exceptions import InvalidInputError
from meetpoint.services.recommendation.config import RANKING_WEIGHTS, RankingWeights
from meetpoint.services.recommendation.geo import great_circle_distance_km
from meetpoint.services.recommendation.types import (
    CENTER_POINT_PLACE_ID,
    CandidatePlace,
    Coordinate,
    RankedCandidate,
    TravelCost,
)

FAIRNESS = "fairness"
RATING_WEIGHTED = "rating_weighted"
RANKING_STRATEGIES = (FAIRNESS, RATING_WEIGHTED)


def summarize_costs(costs: Sequence[TravelCost]) -> tuple[float, float]:
    """(mean, spread) of travel durations in seconds. spread = max - min."""
    durations = [c.duration_seconds for c in costs]
    if not durations:
        return 0.0, 0.0
    mean = sum(durations) / len(durations)
    return mean, float(max(durations) - min(durations))


def center_point_candidate(center: Coordinate) -> RankedCandidate:
    """Synthetic fallback when nothing qualified. Not a real venue."""
    place = CandidatePlace(
        place_id=CENTER_POINT_PLACE_ID,
        name="Center Point",
        address="Approximate center of all locations",
        location=center,
        types=("meeting_point",),
    )
    return RankedCandidate(
        place=place,
        travel_costs=(),
        mean_cost=0.0,
        spread=0.0,
        score=0.0,
        distance_from_center_km=0.0,
        is_sentinel=True,
    )


def rank(
    candidates: Sequence[CandidatePlace],
    costs: Mapping[str, Sequence[TravelCost]],
    top_n: int,
    center: Coordinate,
    strategy: str | None = None,
    weights: RankingWeights = RANKING_WEIGHTS,
) -> list[RankedCandidate]:
    """
    Rank candidates that have travel costs and return the best `top_n`.

    fairness (default): lowest spread first, then lowest mean, then place_id.
    rating_weighted: lowest (mean - seconds_per_rating_point * rating), then place_id.

    Returns the center-point sentinel alone when no candidate has costs.
    """
    if not isinstance(top_n, int) or top_n < 1:
        raise InvalidInputError("top_n must be a positive integer")

    strategy = strategy or settings.ranking_strategy
    if strategy not in RANKING_STRATEGIES:
        raise InvalidInputError(f"Unknown ranking strategy '{strategy}'")

    ranked: list[RankedCandidate] = []
    for place in candidates:
        place_costs = costs.get(place.place_id)
        if not place_costs:
            continue
        mean, spread = summarize_costs(place_costs)
        if strategy == FAIRNESS:
            score = spread
        else:
            score = mean - weights.seconds_per_rating_point * place.rating
        ranked.append(RankedCandidate(
            place=place,
            travel_costs=tuple(place_costs),
            mean_cost=mean,
            spread=spread,
            score=score,
            distance_from_center_km=round(great_circle_distance_km(center, place.location), 3),
        ))

    if not ranked:
        return [center_point_candidate(center)]

    if strategy == FAIRNESS:
        ranked.sort(key=lambda r: (r.spread, r.mean_cost, r.place.place_id))
    else:
        ranked.sort(key=lambda r: (r.score, r.place.place_id))

    return ranked[:top_n]
