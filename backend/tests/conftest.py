import asyncio
import os
import sys
from pathlib import Path

# Ensure backend root is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

# Keep tests off Postgres, Redis and the real Maps API
os.environ.setdefault("ROOM_STORE_BACKEND", "memory")
os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("GOOGLE_MAPS_API_KEY", "")

import pytest

from meetpoint.exceptions import ProviderError
from meetpoint.services.google_maps_client import GeocodeResult, MatrixCell, TextSearchPage
from meetpoint.services.recommendation.types import Coordinate, Participant

DEFAULT_DURATION = 600


def raw_place(place_id, name=None, lat=21.15, lng=79.09, rating=4.5, count=120, types=("cafe",)):
    """A Google Places text search record."""
    return {
        "place_id": place_id,
        "name": name or f"Place {place_id}",
        "formatted_address": f"{place_id} Main St",
        "geometry": {"location": {"lat": lat, "lng": lng}},
        "types": list(types),
        "rating": rating,
        "user_ratings_total": count,
    }


class FakeMapsProvider:
    """Scripted MapsProvider. Unscripted queries return an empty page."""

    def __init__(self):
        self.pages: dict[str, TextSearchPage] = {}
        self.continuations: dict[str, TextSearchPage] = {}
        self.failing_queries: set[str] = set()
        self.fail_all_searches = False
        self.search_delays: dict[str, float] = {}
        # destination -> duration per origin (None = unreachable)
        self.durations: dict[Coordinate, list[int | None]] = {}
        self.failing_destinations: set[Coordinate] = set()
        self.matrix_delays: dict[Coordinate, float] = {}
        self.geocodes: dict[str, GeocodeResult] = {}

        self.search_calls: list[dict] = []
        self.matrix_calls: list[tuple[list[Coordinate], list[Coordinate]]] = []

    def add_page(self, query, results, next_page_token=None):
        self.pages[query] = TextSearchPage(results=list(results), next_page_token=next_page_token)

    async def text_search(self, query, center, radius_meters, page_token=None, place_type=None):
        self.search_calls.append({
            "query": query,
            "center": center,
            "radius_meters": radius_meters,
            "page_token": page_token,
            "place_type": place_type,
        })
        if query in self.search_delays:
            await asyncio.sleep(self.search_delays[query])
        if self.fail_all_searches or query in self.failing_queries:
            raise ProviderError(f"search failed for {query}", provider_status="UNKNOWN_ERROR")
        if page_token:
            return self.continuations.get(page_token, TextSearchPage())
        return self.pages.get(query, TextSearchPage())

    async def distance_matrix(self, origins, destinations, mode="driving"):
        self.matrix_calls.append((list(origins), list(destinations)))
        for dest in destinations:
            if dest in self.matrix_delays:
                await asyncio.sleep(self.matrix_delays[dest])
            if dest in self.failing_destinations:
                raise ProviderError("matrix failed", provider_status="OVER_QUERY_LIMIT")

        matrix = []
        for i, _ in enumerate(origins):
            row = []
            for dest in destinations:
                durations = self.durations.get(dest)
                duration = durations[i] if durations is not None else DEFAULT_DURATION
                row.append(None if duration is None else MatrixCell(duration * 10, duration))
            matrix.append(row)
        return matrix

    async def geocode(self, address):
        return self.geocodes.get(address)


@pytest.fixture
def provider():
    return FakeMapsProvider()


@pytest.fixture
def participants():
    return [
        Participant("Asha", Coordinate(21.10, 79.05)),
        Participant("Ben", Coordinate(21.20, 79.13)),
    ]
