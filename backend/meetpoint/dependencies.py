from functools import lru_cache

from meetpoint.config import settings
from meetpoint.services.google_maps_client import google_maps_client
from meetpoint.services.meeting_point_service import MeetingPointService
from meetpoint.services.room_store import InMemoryRoomStore, RoomStore, SqlRoomStore


@lru_cache
def get_room_store() -> RoomStore:
    if settings.room_store_backend == "memory":
        return InMemoryRoomStore()
    return SqlRoomStore()


@lru_cache
def get_meeting_point_service() -> MeetingPointService:
    """One service per process so the per-room vote locks are shared."""
    return MeetingPointService(google_maps_client, get_room_store())
