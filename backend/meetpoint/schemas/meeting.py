from pydantic import BaseModel, Field

from meetpoint.services.recommendation.geo import meters_to_km, seconds_to_minutes
from meetpoint.services.recommendation.types import (
    CandidatePlace,
    Coordinate,
    Participant,
    RankedCandidate,
    TravelCost,
)


class LocationIn(BaseModel):
    lat: float
    lng: float

    def to_coordinate(self) -> Coordinate:
        return Coordinate(self.lat, self.lng)


class LocationOut(BaseModel):
    lat: float
    lng: float

    @classmethod
    def from_coordinate(cls, c: Coordinate) -> "LocationOut":
        return cls(lat=c.latitude, lng=c.longitude)


class ParticipantIn(BaseModel):
    name: str
    location: LocationIn

    def to_participant(self) -> Participant:
        return Participant(self.name.strip(), self.location.to_coordinate())


class PlaceIn(BaseModel):
    place_id: str
    name: str
    address: str = ""
    location: LocationIn
    types: list[str] = Field(default_factory=list)
    rating: float = 0.0
    rating_count: int = 0

    def to_candidate(self) -> CandidatePlace:
        return CandidatePlace(
            place_id=self.place_id,
            name=self.name,
            address=self.address,
            location=self.location.to_coordinate(),
            types=tuple(self.types),
            rating=self.rating,
            rating_count=self.rating_count,
        )


class PlaceOut(BaseModel):
    place_id: str
    name: str
    address: str
    location: LocationOut
    types: list[str]
    rating: float
    rating_count: int
    matched_preference: str | None = None
    match_score: float = Field(
        default=0.0,
        description="Name/type relevance to matched_preference (0.0-0.8). Display only; ranking ignores it.",
    )

    @classmethod
    def from_candidate(cls, p: CandidatePlace) -> "PlaceOut":
        return cls(
            place_id=p.place_id,
            name=p.name,
            address=p.address,
            location=LocationOut.from_coordinate(p.location),
            types=list(p.types),
            rating=p.rating,
            rating_count=p.rating_count,
            matched_preference=p.matched_preference,
            match_score=p.match_score,
        )


class TravelCostOut(BaseModel):
    participant_name: str
    distance_km: float
    duration_minutes: float

    @classmethod
    def from_cost(cls, c: TravelCost) -> "TravelCostOut":
        return cls(
            participant_name=c.participant_name,
            distance_km=meters_to_km(c.distance_meters),
            duration_minutes=seconds_to_minutes(c.duration_seconds),
        )


class RankedCandidateOut(BaseModel):
    place: PlaceOut
    travel_costs: list[TravelCostOut]
    average_duration_minutes: float
    spread_minutes: float
    score: float
    distance_from_center_km: float
    is_sentinel: bool = False

    @classmethod
    def from_ranked(cls, r: RankedCandidate) -> "RankedCandidateOut":
        return cls(
            place=PlaceOut.from_candidate(r.place),
            travel_costs=[TravelCostOut.from_cost(c) for c in r.travel_costs],
            average_duration_minutes=seconds_to_minutes(r.mean_cost),
            spread_minutes=seconds_to_minutes(r.spread),
            score=round(r.score, 1),
            distance_from_center_km=round(r.distance_from_center_km, 2),
            is_sentinel=r.is_sentinel,
        )


class MeetingPointRequest(BaseModel):
    participants: list[ParticipantIn]
    preferences: list[str] = Field(default_factory=list)
    page_token: str | None = None
    top_n: int | None = Field(default=None, ge=1)


class RoomMeetingPointRequest(BaseModel):
    page_token: str | None = None
    top_n: int | None = Field(default=None, ge=1)


class MeetingPointResponse(BaseModel):
    candidates: list[RankedCandidateOut]
    center: LocationOut
    next_page_token: str | None = None
    metadata: dict = Field(default_factory=dict)


class GeocodeRequest(BaseModel):
    address: str


class GeocodeResponse(BaseModel):
    lat: float
    lng: float
    formatted_address: str
