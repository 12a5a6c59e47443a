import asyncio

import pytest

from conftest import raw_place
from meetpoint.exceptions import ProviderError
from meetpoint.services.google_maps_client import TextSearchPage
from meetpoint.services.recommendation.config import QUALITY_GATE
from meetpoint.services.recommendation.place_search import (
    PlaceCandidateSearch,
    parse_place,
    preference_match_score,
)
from meetpoint.services.recommendation.types import Coordinate

CENTER = Coordinate(21.15, 79.09)


def make_search(provider):
    return PlaceCandidateSearch(provider, wider_radius_meters=10000, concurrency=4)


@pytest.mark.parametrize("rating,count,expected", [
    (3.9, 5, True),     # new place bar
    (3.8, 5, True),
    (3.7, 100, False),  # rating too low for either bar
    (4.0, 10, True),    # established bar
    (4.0, 9, True),     # still clears the new place bar
    (4.5, 4, False),    # too few ratings
    (3.9, 4, False),
    (0.0, 0, False),
])
def test_quality_gate(rating, count, expected):
    assert QUALITY_GATE.passes(rating, count) is expected


def test_preference_match_score():
    assert preference_match_score("Blue Cafe", ["cafe", "food"], "cafe") == 0.8
    assert preference_match_score("Blue Door", ["food", "cafe"], "cafe") == 0.3
    assert preference_match_score("Blue Door", ["food"], "cafe") == 0.0


def test_parse_place_requires_id_and_location():
    assert parse_place({"name": "No id", "geometry": {"location": {"lat": 1, "lng": 2}}}) is None
    assert parse_place({"place_id": "x", "name": "No geometry"}) is None
    assert parse_place({"place_id": "x", "geometry": {"location": {"lat": 95, "lng": 2}}}) is None


def test_parse_place_maps_fields():
    cand = parse_place(raw_place("p1", name="Cafe Uno", rating=4.2, count=33), "cafe")
    assert cand.place_id == "p1"
    assert cand.address == "p1 Main St"
    assert cand.rating == 4.2
    assert cand.rating_count == 33
    assert cand.matched_preference == "cafe"
    assert cand.match_score == 0.8


@pytest.mark.asyncio
async def test_early_stop_keeps_whole_page(provider):
    provider.add_page("cafe", [raw_place(f"c{i}") for i in range(6)])

    result = await make_search(provider).search(CENTER, ["cafe"], 5000)

    assert [c.place_id for c in result.candidates] == [f"c{i}" for i in range(6)]
    assert [c["query"] for c in provider.search_calls] == ["cafe"]
    assert provider.search_calls[0]["place_type"] == "cafe"


@pytest.mark.asyncio
async def test_qualifier_escalation_stops_at_target(provider):
    provider.add_page("cafe", [raw_place("c1"), raw_place("c2")])
    provider.add_page("best cafe", [raw_place("c2"), raw_place("c3")])
    provider.add_page("popular cafe", [raw_place("c4"), raw_place("c5"), raw_place("c6")])

    result = await make_search(provider).search(CENTER, ["cafe"], 5000)

    assert [c.place_id for c in result.candidates] == ["c1", "c2", "c3", "c4", "c5", "c6"]
    assert [c["query"] for c in provider.search_calls] == ["cafe", "best cafe", "popular cafe"]


@pytest.mark.asyncio
async def test_quality_gate_filters_results(provider):
    provider.add_page("cafe", [
        raw_place("good", rating=4.6, count=200),
        raw_place("too_new", rating=4.9, count=2),
        raw_place("poor", rating=3.1, count=500),
    ])

    result = await make_search(provider).search(CENTER, ["cafe"], 5000)

    assert [c.place_id for c in result.candidates] == ["good"]


@pytest.mark.asyncio
async def test_wider_retry_when_nothing_retained(provider):
    result = await make_search(provider).search(CENTER, ["ramen"], 5000)

    assert result.candidates == []
    queries = [c["query"] for c in provider.search_calls]
    assert queries == ["ramen", "best ramen", "popular ramen", "new ramen", "trendy ramen", "cool ramen", "ramen"]
    assert provider.search_calls[-1]["radius_meters"] == 10000
    assert all(c["place_type"] is None for c in provider.search_calls)


@pytest.mark.asyncio
async def test_dedupes_across_preferences_in_preference_order(provider):
    provider.add_page("cafe", [raw_place(f"c{i}") for i in range(4)] + [raw_place("shared")])
    provider.add_page("park", [raw_place("shared", types=("park",))] + [raw_place(f"p{i}", types=("park",)) for i in range(5)])

    result = await make_search(provider).search(CENTER, ["cafe", "park", "Cafe"], 5000)

    ids = [c.place_id for c in result.candidates]
    assert len(ids) == len(set(ids))
    assert ids[:5] == ["c0", "c1", "c2", "c3", "shared"]
    shared = next(c for c in result.candidates if c.place_id == "shared")
    assert shared.matched_preference == "cafe"


@pytest.mark.asyncio
async def test_primary_query_next_page_token_is_returned(provider):
    provider.add_page("cafe", [raw_place(f"c{i}") for i in range(5)], next_page_token="tok-1")

    result = await make_search(provider).search(CENTER, ["cafe"], 5000)

    assert result.next_page_token == "tok-1"


@pytest.mark.asyncio
async def test_page_token_issues_single_continuation_query(provider):
    provider.continuations["tok-1"] = TextSearchPage([raw_place("n1"), raw_place("n2")], "tok-2")

    result = await make_search(provider).search(CENTER, ["cafe", "park"], 5000, page_token="tok-1")

    assert len(provider.search_calls) == 1
    call = provider.search_calls[0]
    assert call["query"] == "cafe park"
    assert call["page_token"] == "tok-1"
    assert [c.place_id for c in result.candidates] == ["n1", "n2"]
    assert result.next_page_token == "tok-2"


@pytest.mark.asyncio
async def test_partial_failure_is_absorbed(provider):
    provider.failing_queries = {"cafe", "best cafe", "popular cafe", "new cafe", "trendy cafe", "cool cafe"}
    provider.add_page("park", [raw_place(f"p{i}", types=("park",)) for i in range(5)])

    result = await make_search(provider).search(CENTER, ["cafe", "park"], 5000)

    assert [c.place_id for c in result.candidates] == [f"p{i}" for i in range(5)]


@pytest.mark.asyncio
async def test_total_failure_raises_provider_error(provider):
    provider.fail_all_searches = True

    with pytest.raises(ProviderError):
        await make_search(provider).search(CENTER, ["cafe", "park"], 5000)


@pytest.mark.asyncio
async def test_no_preferences_means_no_queries(provider):
    result = await make_search(provider).search(CENTER, ["", "  "], 5000)

    assert result.candidates == []
    assert provider.search_calls == []


@pytest.mark.asyncio
async def test_deadline_keeps_finished_preferences(provider):
    provider.add_page("cafe", [raw_place(f"c{i}") for i in range(5)])
    provider.add_page("park", [raw_place(f"p{i}", types=("park",)) for i in range(5)])
    provider.search_delays["park"] = 5.0

    deadline = asyncio.get_running_loop().time() + 0.2
    result = await make_search(provider).search(CENTER, ["cafe", "park"], 5000, deadline=deadline)

    assert [c.place_id for c in result.candidates] == [f"c{i}" for i in range(5)]
