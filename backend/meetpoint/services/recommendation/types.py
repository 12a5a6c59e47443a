"""Domain types shared by the recommendation pipeline, voting and the room store."""

import math
from dataclasses import dataclass, field
from datetime import datetime

from meetpoint.exceptions import InvalidInputError

CENTER_POINT_PLACE_ID = "center_point"

ROOM_ACTIVE = "active"
ROOM_COMPLETED = "completed"


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def __post_init__(self):
        try:
            lat = float(self.latitude)
            lng = float(self.longitude)
        except (TypeError, ValueError):
            raise InvalidInputError(f"Invalid coordinate ({self.latitude!r}, {self.longitude!r})")
        if not (math.isfinite(lat) and math.isfinite(lng)):
            raise InvalidInputError(f"Coordinate must be finite, got ({lat}, {lng})")
        if not -90.0 <= lat <= 90.0:
            raise InvalidInputError(f"Latitude {lat} out of range [-90, 90]")
        if not -180.0 <= lng <= 180.0:
            raise InvalidInputError(f"Longitude {lng} out of range [-180, 180]")
        object.__setattr__(self, "latitude", lat)
        object.__setattr__(self, "longitude", lng)

    def as_param(self) -> str:
        """Google Maps 'lat,lng' query form."""
        return f"{self.latitude},{self.longitude}"

    def to_dict(self) -> dict:
        return {"lat": self.latitude, "lng": self.longitude}

    @classmethod
    def from_dict(cls, data: dict) -> "Coordinate":
        if not isinstance(data, dict):
            raise InvalidInputError("Location must be an object with lat and lng")
        if "lat" not in data or "lng" not in data:
            raise InvalidInputError("Location requires both lat and lng")
        return cls(data["lat"], data["lng"])


@dataclass(frozen=True)
class Participant:
    name: str
    location: Coordinate

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidInputError("Participant name is required")


@dataclass(frozen=True)
class CandidatePlace:
    place_id: str
    name: str
    address: str
    location: Coordinate
    types: tuple[str, ...] = ()
    rating: float = 0.0
    rating_count: int = 0
    matched_preference: str | None = None
    match_score: float = 0.0

    def to_dict(self) -> dict:
        return {
            "place_id": self.place_id,
            "name": self.name,
            "address": self.address,
            "location": self.location.to_dict(),
            "types": list(self.types),
            "rating": self.rating,
            "rating_count": self.rating_count,
            "matched_preference": self.matched_preference,
            "match_score": self.match_score,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CandidatePlace":
        return cls(
            place_id=data["place_id"],
            name=data.get("name", ""),
            address=data.get("address", ""),
            location=Coordinate.from_dict(data["location"]),
            types=tuple(data.get("types") or ()),
            rating=float(data.get("rating") or 0.0),
            rating_count=int(data.get("rating_count") or 0),
            matched_preference=data.get("matched_preference"),
            match_score=float(data.get("match_score") or 0.0),
        )


@dataclass(frozen=True)
class TravelCost:
    participant_name: str
    place_id: str
    distance_meters: int
    duration_seconds: int


@dataclass(frozen=True)
class RankedCandidate:
    place: CandidatePlace
    travel_costs: tuple[TravelCost, ...]
    mean_cost: float
    spread: float
    score: float
    distance_from_center_km: float = 0.0
    is_sentinel: bool = False


@dataclass(frozen=True)
class Vote:
    place_id: str
    participant_name: str
    participant_location: Coordinate | None = None
    cast_at: datetime | None = None


@dataclass
class Room:
    """Room snapshot as loaded from the room store."""
    code: str
    name: str = ""
    participants: list[Participant] = field(default_factory=list)
    preferences: list[str] = field(default_factory=list)
    votes: dict[str, list[Vote]] = field(default_factory=dict)
    status: str = ROOM_ACTIVE
    meeting_point: CandidatePlace | None = None
    candidates: dict[str, CandidatePlace] = field(default_factory=dict)
    created_at: datetime | None = None
    # Bumped by every successful save; a save from an older version is rejected
    version: int = 0

    @property
    def participant_count(self) -> int:
        return len(self.participants)

    @property
    def is_completed(self) -> bool:
        return self.status == ROOM_COMPLETED

    def participant(self, name: str) -> Participant | None:
        for p in self.participants:
            if p.name == name:
                return p
        return None
