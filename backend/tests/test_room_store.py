from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from meetpoint.database import init_models
from meetpoint.exceptions import NotFoundError, StaleRoomError
from meetpoint.services.recommendation.types import (
    ROOM_COMPLETED,
    CandidatePlace,
    Coordinate,
    Participant,
    Vote,
)
from meetpoint.services.room_store import InMemoryRoomStore, SqlRoomStore, generate_room_code


def place(place_id):
    return CandidatePlace(
        place_id=place_id,
        name=place_id.title(),
        address="1 Main St",
        location=Coordinate(21.15, 79.09),
        types=("cafe", "food"),
        rating=4.4,
        rating_count=210,
        matched_preference="cafe",
        match_score=0.7,
    )


@pytest_asyncio.fixture(params=["memory", "sql"])
async def store(request):
    if request.param == "memory":
        yield InMemoryRoomStore()
        return

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_models(bind=engine)
    yield SqlRoomStore(async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False))
    await engine.dispose()


def test_generate_room_code():
    code = generate_room_code()
    assert len(code) == 6
    assert code == code.upper()
    assert code.isalnum()


@pytest.mark.asyncio
async def test_create_and_load(store):
    created = await store.create_room("Friday dinner")

    loaded = await store.load_room(created.code)

    assert loaded.code == created.code
    assert loaded.name == "Friday dinner"
    assert loaded.status == "active"
    assert loaded.participants == []
    assert loaded.votes == {}


@pytest.mark.asyncio
async def test_load_is_case_insensitive(store):
    created = await store.create_room("Lunch")

    loaded = await store.load_room(created.code.lower())

    assert loaded.code == created.code


@pytest.mark.asyncio
async def test_unknown_room(store):
    with pytest.raises(NotFoundError):
        await store.load_room("NOPE00")


@pytest.mark.asyncio
async def test_save_round_trip(store):
    room = await store.create_room("Weekend")
    room.participants = [
        Participant("Asha", Coordinate(21.10, 79.05)),
        Participant("Ben", Coordinate(21.20, 79.13)),
    ]
    room.preferences = ["cafe", "park"]
    cast_at = datetime(2026, 5, 1, 18, 30, tzinfo=timezone.utc)
    room.votes = {
        "cafe_1": [
            Vote("cafe_1", "Asha", Coordinate(21.10, 79.05), cast_at),
            Vote("cafe_1", "Ben", None, cast_at),
        ],
        "park_2": [Vote("park_2", "Asha", None, cast_at)],
    }
    room.candidates = {"cafe_1": place("cafe_1"), "park_2": place("park_2")}
    room.meeting_point = place("cafe_1")
    room.status = ROOM_COMPLETED

    await store.save_room(room)
    loaded = await store.load_room(room.code)

    assert loaded.participants == room.participants
    assert loaded.preferences == ["cafe", "park"]
    assert {pid: [v.participant_name for v in vs] for pid, vs in loaded.votes.items()} == {
        "cafe_1": ["Asha", "Ben"],
        "park_2": ["Asha"],
    }
    assert loaded.votes["cafe_1"][0].participant_location == Coordinate(21.10, 79.05)
    assert loaded.votes["cafe_1"][1].participant_location is None
    assert loaded.candidates == room.candidates
    assert loaded.meeting_point == place("cafe_1")
    assert loaded.status == ROOM_COMPLETED


@pytest.mark.asyncio
async def test_save_replaces_previous_children(store):
    room = await store.create_room("Weekend")
    room.votes = {"cafe_1": [Vote("cafe_1", "Asha")], "park_2": [Vote("park_2", "Ben")]}
    await store.save_room(room)

    room.votes = {"park_2": [Vote("park_2", "Ben")]}
    await store.save_room(room)

    loaded = await store.load_room(room.code)
    assert list(loaded.votes) == ["park_2"]


@pytest.mark.asyncio
async def test_save_from_stale_copy_is_rejected(store):
    created = await store.create_room("Weekend")
    first = await store.load_room(created.code)
    second = await store.load_room(created.code)

    first.preferences = ["cafe"]
    await store.save_room(first)
    second.preferences = ["park"]
    with pytest.raises(StaleRoomError):
        await store.save_room(second)

    loaded = await store.load_room(created.code)
    assert loaded.preferences == ["cafe"]
    assert loaded.version == first.version == created.version + 1


@pytest.mark.asyncio
async def test_save_bumps_version(store):
    room = await store.create_room("Weekend")
    start = room.version

    await store.save_room(room)
    await store.save_room(room)

    assert room.version == start + 2
    assert (await store.load_room(room.code)).version == start + 2


@pytest.mark.asyncio
async def test_loaded_room_is_a_copy():
    store = InMemoryRoomStore()
    room = await store.create_room("Weekend")

    loaded = await store.load_room(room.code)
    loaded.preferences.append("cafe")

    assert (await store.load_room(room.code)).preferences == []
