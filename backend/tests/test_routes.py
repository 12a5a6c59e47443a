import pytest
from fastapi.testclient import TestClient

from conftest import FakeMapsProvider, raw_place
from meetpoint.dependencies import get_meeting_point_service
from meetpoint.main import app
from meetpoint.services.google_maps_client import GeocodeResult
from meetpoint.services.meeting_point_service import MeetingPointService
from meetpoint.services.recommendation.types import Coordinate
from meetpoint.services.room_store import InMemoryRoomStore

ASHA = {"name": "Asha", "location": {"lat": 21.10, "lng": 79.05}}
BEN = {"name": "Ben", "location": {"lat": 21.20, "lng": 79.13}}


@pytest.fixture
def fake_provider():
    provider = FakeMapsProvider()
    provider.add_page("cafe", [
        raw_place("fair", name="Fair Cafe", lat=21.150, lng=79.090),
        raw_place("ok", name="Ok Cafe", lat=21.160, lng=79.100),
    ], next_page_token="tok-1")
    provider.durations[Coordinate(21.150, 79.090)] = [600, 660]
    provider.durations[Coordinate(21.160, 79.100)] = [700, 900]
    provider.geocodes["Sitabuldi"] = GeocodeResult(Coordinate(21.1458, 79.0882), "Sitabuldi, Nagpur")
    return provider


@pytest.fixture
def client(fake_provider):
    service = MeetingPointService(fake_provider, InMemoryRoomStore())
    app.dependency_overrides[get_meeting_point_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def create_room(client, *participants):
    code = client.post("/api/rooms", json={"name": "Friday dinner"}).json()["code"]
    for p in participants:
        assert client.post(f"/api/rooms/{code}/participants", json=p).status_code == 200
    return code


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "service": "meetpoint"}


def test_meeting_points_converts_units(client):
    resp = client.post("/api/meeting-points", json={
        "participants": [ASHA, BEN],
        "preferences": ["Cafe"],
        "top_n": 2,
    })

    assert resp.status_code == 200
    data = resp.json()
    assert [c["place"]["place_id"] for c in data["candidates"]] == ["fair", "ok"]
    fair = data["candidates"][0]
    assert fair["spread_minutes"] == 1.0
    assert fair["average_duration_minutes"] == 10.5
    assert fair["travel_costs"][0] == {"participant_name": "Asha", "distance_km": 6.0, "duration_minutes": 10.0}
    assert fair["is_sentinel"] is False
    assert data["next_page_token"] == "tok-1"
    assert data["center"]["lat"] == pytest.approx(21.15)


def test_meeting_points_sentinel(client):
    resp = client.post("/api/meeting-points", json={"participants": [ASHA, BEN], "preferences": ["ramen"]})

    assert resp.status_code == 200
    candidates = resp.json()["candidates"]
    assert len(candidates) == 1
    assert candidates[0]["place"]["place_id"] == "center_point"
    assert candidates[0]["is_sentinel"] is True


def test_meeting_points_rejects_invalid_location(client):
    bad = {"name": "Zed", "location": {"lat": 123.0, "lng": 79.0}}

    resp = client.post("/api/meeting-points", json={"participants": [ASHA, bad], "preferences": ["cafe"]})

    assert resp.status_code == 400
    assert "Latitude" in resp.json()["error"]


def test_meeting_points_rejects_empty_participants(client):
    resp = client.post("/api/meeting-points", json={"participants": [], "preferences": ["cafe"]})

    assert resp.status_code == 400


def test_meeting_points_top_n_bounds(client):
    body = {"participants": [ASHA, BEN], "preferences": ["cafe"]}

    assert client.post("/api/meeting-points", json={**body, "top_n": 50}).status_code == 400
    assert client.post("/api/meeting-points", json={**body, "top_n": 0}).status_code == 422


def test_meeting_points_missing_fields(client):
    resp = client.post("/api/meeting-points", json={"preferences": ["cafe"]})

    assert resp.status_code == 422
    assert resp.json()["error"] == "Invalid or missing request fields"


def test_room_lifecycle(client):
    created = client.post("/api/rooms", json={"name": "Friday dinner"})
    assert created.status_code == 201
    code = created.json()["code"]
    assert len(code) == 6

    assert client.post(f"/api/rooms/{code}/participants", json=ASHA).status_code == 200
    assert client.post(f"/api/rooms/{code}/participants", json=BEN).status_code == 200
    duplicate = client.post(f"/api/rooms/{code}/participants", json=ASHA)
    assert duplicate.status_code == 400

    prefs = client.put(f"/api/rooms/{code}/preferences", json={"preferences": ["Cafe", "park", "cafe"]})
    assert prefs.json()["preferences"] == ["cafe", "park"]
    removed = client.delete(f"/api/rooms/{code}/preferences/park")
    assert removed.json()["preferences"] == ["cafe"]
    assert client.delete(f"/api/rooms/{code}/preferences/bowling").status_code == 404

    found = client.post(f"/api/rooms/{code}/meeting-points", json={"top_n": 2})
    assert found.status_code == 200
    assert found.json()["candidates"][0]["place"]["place_id"] == "fair"

    room = client.get(f"/api/rooms/{code.lower()}").json()
    assert room["code"] == code
    assert [p["name"] for p in room["participants"]] == ["Asha", "Ben"]
    assert room["status"] == "active"


def test_voting_flow(client):
    code = create_room(client, ASHA, BEN)
    client.put(f"/api/rooms/{code}/preferences", json={"preferences": ["cafe"]})
    client.post(f"/api/rooms/{code}/meeting-points", json={})

    first = client.post(f"/api/rooms/{code}/vote", json={"place_id": "ok", "participant_name": "Asha"})
    assert first.status_code == 200
    assert first.json()["tally"] == 1
    assert first.json()["majority"] is False

    again = client.post(f"/api/rooms/{code}/vote", json={"place_id": "ok", "participant_name": "Asha"})
    assert again.status_code == 409

    votes = client.get(f"/api/rooms/{code}/votes").json()
    assert [v["participant_name"] for v in votes["ok"]] == ["Asha"]

    retracted = client.request(
        "DELETE", f"/api/rooms/{code}/vote", json={"place_id": "ok", "participant_name": "Asha"}
    )
    assert retracted.status_code == 200
    assert retracted.json()["votes"] == {}
    missing = client.request(
        "DELETE", f"/api/rooms/{code}/vote", json={"place_id": "ok", "participant_name": "Asha"}
    )
    assert missing.status_code == 404

    client.post(f"/api/rooms/{code}/vote", json={"place_id": "fair", "participant_name": "Asha"})
    decided = client.post(f"/api/rooms/{code}/vote", json={
        "place_id": "fair",
        "participant_name": "Ben",
        "participant_location": BEN["location"],
    })
    assert decided.json()["finalized"] is True
    assert decided.json()["status"] == "completed"
    assert decided.json()["meeting_point"]["name"] == "Fair Cafe"

    late = client.post(f"/api/rooms/{code}/vote", json={"place_id": "ok", "participant_name": "Asha"})
    assert late.status_code == 409


def test_final_place(client):
    code = create_room(client, ASHA)
    place = {"place_id": "bistro", "name": "Bistro", "location": {"lat": 21.15, "lng": 79.09}}

    resp = client.put(f"/api/rooms/{code}/final-place", json={"place": place})

    assert resp.status_code == 200
    assert resp.json()["status"] == "completed"
    assert resp.json()["meeting_point"]["place_id"] == "bistro"
    assert client.put(f"/api/rooms/{code}/final-place", json={"place": place}).status_code == 409


def test_unknown_room(client):
    resp = client.get("/api/rooms/ZZZZZZ")

    assert resp.status_code == 404
    assert "ZZZZZZ" in resp.json()["error"]


def test_room_search_without_participants(client):
    code = create_room(client)

    assert client.post(f"/api/rooms/{code}/meeting-points", json={}).status_code == 400


def test_geocode(client):
    resp = client.post("/api/geocode", json={"address": "Sitabuldi"})
    assert resp.status_code == 200
    assert resp.json() == {"lat": 21.1458, "lng": 79.0882, "formatted_address": "Sitabuldi, Nagpur"}

    assert client.post("/api/geocode", json={"address": "Atlantis"}).status_code == 404
