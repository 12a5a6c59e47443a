"""Recommendation engine — meeting point search and ranking.

Modules:
    config          Quality gate, search limits and ranking weights
    types           Coordinates, places, travel costs, votes and rooms
    geo             Centroid and great-circle distance
    fanout          Bounded parallel provider calls with a shared deadline
    place_search    Per-preference provider queries, quality gate, dedupe
    travel_cost     Per-candidate distance matrix, strict completeness
    ranking         Fairness (spread, mean) or rating-weighted ordering

Pipeline:
    geo.centroid → PlaceCandidateSearch → TravelCostEstimator → ranking.rank
"""
