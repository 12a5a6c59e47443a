from datetime import datetime

from pydantic import BaseModel, Field

from meetpoint.schemas.meeting import LocationIn, LocationOut, PlaceIn, PlaceOut
from meetpoint.services.recommendation.types import Room, Vote
from meetpoint.services.voting_service import VoteOutcome


class RoomCreate(BaseModel):
    name: str = Field(min_length=1)


class ParticipantJoin(BaseModel):
    name: str
    location: LocationIn


class PreferencesUpdate(BaseModel):
    preferences: list[str]


class VoteRequest(BaseModel):
    place_id: str
    participant_name: str
    participant_location: LocationIn | None = None
    place: PlaceIn | None = None


class VoteRetract(BaseModel):
    place_id: str
    participant_name: str


class FinalPlaceRequest(BaseModel):
    place: PlaceIn


class VoteOut(BaseModel):
    participant_name: str
    participant_location: LocationOut | None = None
    cast_at: datetime | None = None

    @classmethod
    def from_vote(cls, v: Vote) -> "VoteOut":
        return cls(
            participant_name=v.participant_name,
            participant_location=(
                LocationOut.from_coordinate(v.participant_location) if v.participant_location else None
            ),
            cast_at=v.cast_at,
        )


def votes_out(votes: dict[str, list[Vote]]) -> dict[str, list[VoteOut]]:
    return {place_id: [VoteOut.from_vote(v) for v in place_votes] for place_id, place_votes in votes.items()}


class VoteOutcomeOut(BaseModel):
    room_code: str
    place_id: str
    tally: int
    tallies: dict[str, int]
    votes: dict[str, list[VoteOut]]
    majority: bool
    finalized: bool
    status: str
    meeting_point: PlaceOut | None = None

    @classmethod
    def from_outcome(cls, o: VoteOutcome) -> "VoteOutcomeOut":
        return cls(
            room_code=o.room_code,
            place_id=o.place_id,
            tally=o.tally,
            tallies=o.tallies,
            votes=votes_out(o.votes),
            majority=o.majority,
            finalized=o.finalized,
            status=o.status,
            meeting_point=PlaceOut.from_candidate(o.meeting_point) if o.meeting_point else None,
        )


class ParticipantOut(BaseModel):
    name: str
    location: LocationOut


class RoomOut(BaseModel):
    code: str
    name: str
    status: str
    participants: list[ParticipantOut]
    preferences: list[str]
    votes: dict[str, list[VoteOut]]
    meeting_point: PlaceOut | None = None
    created_at: datetime | None = None

    @classmethod
    def from_room(cls, room: Room) -> "RoomOut":
        return cls(
            code=room.code,
            name=room.name,
            status=room.status,
            participants=[
                ParticipantOut(name=p.name, location=LocationOut.from_coordinate(p.location))
                for p in room.participants
            ],
            preferences=list(room.preferences),
            votes=votes_out(room.votes),
            meeting_point=PlaceOut.from_candidate(room.meeting_point) if room.meeting_point else None,
            created_at=room.created_at,
        )
