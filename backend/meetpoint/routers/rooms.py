"""Rooms router — membership, preferences, shortlist and voting."""

from fastapi import APIRouter, Depends

from meetpoint.dependencies import get_meeting_point_service
from meetpoint.routers.meeting_points import resolve_top_n, to_response
from meetpoint.schemas.meeting import MeetingPointResponse, RoomMeetingPointRequest
from meetpoint.schemas.room import (
    FinalPlaceRequest,
    ParticipantJoin,
    PreferencesUpdate,
    RoomCreate,
    RoomOut,
    VoteOut,
    VoteOutcomeOut,
    VoteRequest,
    VoteRetract,
    votes_out,
)
from meetpoint.services.meeting_point_service import MeetingPointService
from meetpoint.services.recommendation.types import Participant

router = APIRouter()


# ─── Rooms ───

@router.post("/rooms", response_model=RoomOut, status_code=201)
async def create_room(
    body: RoomCreate,
    service: MeetingPointService = Depends(get_meeting_point_service),
):
    room = await service.store.create_room(body.name.strip())
    return RoomOut.from_room(room)


@router.get("/rooms/{code}", response_model=RoomOut)
async def get_room(
    code: str,
    service: MeetingPointService = Depends(get_meeting_point_service),
):
    room = await service.store.load_room(code)
    return RoomOut.from_room(room)


@router.post("/rooms/{code}/participants", response_model=RoomOut)
async def join_room(
    code: str,
    body: ParticipantJoin,
    service: MeetingPointService = Depends(get_meeting_point_service),
):
    """Add a participant; names are unique within a room."""
    participant = Participant(body.name.strip(), body.location.to_coordinate())
    room = await service.add_participant(code, participant)
    return RoomOut.from_room(room)


# ─── Preferences ───

@router.put("/rooms/{code}/preferences", response_model=RoomOut)
async def update_preferences(
    code: str,
    body: PreferencesUpdate,
    service: MeetingPointService = Depends(get_meeting_point_service),
):
    room = await service.set_preferences(code, body.preferences)
    return RoomOut.from_room(room)


@router.delete("/rooms/{code}/preferences/{preference}", response_model=RoomOut)
async def delete_preference(
    code: str,
    preference: str,
    service: MeetingPointService = Depends(get_meeting_point_service),
):
    room = await service.remove_preference(code, preference)
    return RoomOut.from_room(room)


# ─── Recommendations ───

@router.post("/rooms/{code}/meeting-points", response_model=MeetingPointResponse)
async def find_room_meeting_points(
    code: str,
    body: RoomMeetingPointRequest,
    service: MeetingPointService = Depends(get_meeting_point_service),
):
    """Search with the room's participants and preferences; results join the shortlist."""
    result = await service.find_meeting_points_for_room(
        code, top_n=resolve_top_n(body.top_n), page_token=body.page_token
    )
    return to_response(result)


# ─── Voting ───

@router.get("/rooms/{code}/votes", response_model=dict[str, list[VoteOut]])
async def get_votes(
    code: str,
    service: MeetingPointService = Depends(get_meeting_point_service),
):
    return votes_out(await service.get_votes(code))


@router.post("/rooms/{code}/vote", response_model=VoteOutcomeOut)
async def cast_vote(
    code: str,
    body: VoteRequest,
    service: MeetingPointService = Depends(get_meeting_point_service),
):
    """Vote for a place. A strict majority completes the room."""
    outcome = await service.cast_vote(
        code,
        body.place_id,
        body.participant_name,
        participant_location=body.participant_location.to_coordinate() if body.participant_location else None,
        candidate=body.place.to_candidate() if body.place else None,
    )
    return VoteOutcomeOut.from_outcome(outcome)


@router.delete("/rooms/{code}/vote", response_model=VoteOutcomeOut)
async def retract_vote(
    code: str,
    body: VoteRetract,
    service: MeetingPointService = Depends(get_meeting_point_service),
):
    outcome = await service.retract_vote(code, body.place_id, body.participant_name)
    return VoteOutcomeOut.from_outcome(outcome)


@router.put("/rooms/{code}/final-place", response_model=RoomOut)
async def set_final_place(
    code: str,
    body: FinalPlaceRequest,
    service: MeetingPointService = Depends(get_meeting_point_service),
):
    room = await service.finalize(code, body.place.to_candidate())
    return RoomOut.from_room(room)
