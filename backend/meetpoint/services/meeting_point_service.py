"""Meeting point service — coordinates search, travel costs, ranking and voting."""

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field

from meetpoint.config import settings
from meetpoint.data.place_categories import normalize_preference, unique_preferences
from meetpoint.exceptions import InvalidInputError, NotFoundError
from meetpoint.services.google_maps_client import GeocodeResult, MapsProvider
from meetpoint.services.recommendation.fanout import deadline_after
from meetpoint.services.recommendation.geo import centroid
from meetpoint.services.recommendation.place_search import PlaceCandidateSearch
from meetpoint.services.recommendation.ranking import rank
from meetpoint.services.recommendation.travel_cost import TravelCostEstimator
from meetpoint.services.recommendation.types import (
    CandidatePlace,
    Coordinate,
    Participant,
    RankedCandidate,
    Room,
    Vote,
)
from meetpoint.services.room_store import RoomStore
from meetpoint.services.voting_service import VoteOutcome, VotingService

logger = logging.getLogger(__name__)


@dataclass
class MeetingPointResult:
    candidates: list[RankedCandidate]
    center: Coordinate
    next_page_token: str | None = None
    metadata: dict = field(default_factory=dict)


class MeetingPointService:
    """Entry point for finding meeting points and driving a room to a decision."""

    def __init__(
        self,
        provider: MapsProvider,
        store: RoomStore,
        place_search: PlaceCandidateSearch | None = None,
        estimator: TravelCostEstimator | None = None,
        voting: VotingService | None = None,
        radius_meters: int | None = None,
        ranking_strategy: str | None = None,
        deadline_seconds: float | None = None,
    ):
        self.provider = provider
        self.store = store
        self.place_search = place_search or PlaceCandidateSearch(provider)
        self.estimator = estimator or TravelCostEstimator(provider)
        self.voting = voting or VotingService(store)
        self.radius_meters = radius_meters or settings.search_radius_meters
        self.ranking_strategy = ranking_strategy or settings.ranking_strategy
        self.deadline_seconds = deadline_seconds or settings.recommendation_deadline_seconds

    # ─── Recommendation ───

    async def find_meeting_points(
        self,
        participants: Sequence[Participant],
        preferences: Sequence[str],
        *,
        top_n: int,
        page_token: str | None = None,
        deadline_seconds: float | None = None,
    ) -> MeetingPointResult:
        """
        Rank places around the participants' centroid by travel fairness.

        Returns the center-point sentinel when nothing qualifies. Provider
        calls still running at the deadline are dropped, not failed.
        """
        start_time = time.monotonic()
        self._validate_participants(participants)
        if not isinstance(top_n, int) or top_n < 1:
            raise InvalidInputError("top_n must be a positive integer")

        deadline = deadline_after(deadline_seconds or self.deadline_seconds)
        center = centroid([p.location for p in participants])

        # 1. Candidates around the center
        search = await self.place_search.search(
            center, preferences, self.radius_meters, page_token=page_token, deadline=deadline
        )

        # 2. Travel costs for everyone
        costs = {}
        if search.candidates:
            costs = await self.estimator.estimate(search.candidates, participants, deadline=deadline)

        # 3. Rank once everything is in
        ranked = rank(search.candidates, costs, top_n, center, strategy=self.ranking_strategy)

        elapsed_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            f"Meeting points: {len(participants)} participants, {len(search.candidates)} candidates, "
            f"{len(costs)} costed, returned {len(ranked)} in {elapsed_ms}ms"
        )
        return MeetingPointResult(
            candidates=ranked,
            center=center,
            next_page_token=search.next_page_token,
            metadata={
                "candidates_found": len(search.candidates),
                "candidates_costed": len(costs),
                "ranking_strategy": self.ranking_strategy,
                "search_time_ms": elapsed_ms,
            },
        )

    async def find_meeting_points_for_room(
        self,
        room_code: str,
        *,
        top_n: int,
        page_token: str | None = None,
    ) -> MeetingPointResult:
        """
        Search with the room's own participants and preferences and shortlist the results.

        A completed room can still be searched but its shortlist is frozen.
        """
        room = await self.store.load_room(room_code)
        if not room.participants:
            raise InvalidInputError(f"Room {room.code} has no participants yet")

        result = await self.find_meeting_points(
            room.participants, room.preferences, top_n=top_n, page_token=page_token
        )

        real = [r.place for r in result.candidates if not r.is_sentinel]
        if real and not room.is_completed:
            await self.voting.add_to_shortlist(room.code, real)
        return result

    @staticmethod
    def _validate_participants(participants: Sequence[Participant]) -> None:
        if not participants:
            raise InvalidInputError("At least one participant is required")
        names: set[str] = set()
        for p in participants:
            if not isinstance(p, Participant) or not isinstance(p.location, Coordinate):
                raise InvalidInputError("Every participant needs a name and a valid location")
            if p.name in names:
                raise InvalidInputError(f"Duplicate participant name '{p.name}'")
            names.add(p.name)

    # ─── Voting ───

    async def cast_vote(
        self,
        room_code: str,
        place_id: str,
        participant_name: str,
        participant_location: Coordinate | None = None,
        candidate: CandidatePlace | None = None,
    ) -> VoteOutcome:
        return await self.voting.cast_vote(
            room_code, place_id, participant_name, participant_location, candidate=candidate
        )

    async def retract_vote(self, room_code: str, place_id: str, participant_name: str) -> VoteOutcome:
        return await self.voting.retract_vote(room_code, place_id, participant_name)

    async def finalize(self, room_code: str, candidate: CandidatePlace) -> Room:
        return await self.voting.finalize(room_code, candidate)

    async def get_votes(self, room_code: str) -> dict[str, list[Vote]]:
        return await self.voting.get_votes(room_code)

    # ─── Room membership (store glue) ───

    async def add_participant(self, room_code: str, participant: Participant) -> Room:
        def _join(room: Room) -> None:
            if room.participant(participant.name) is not None:
                raise InvalidInputError(f"Participant '{participant.name}' already exists")
            room.participants.append(participant)

        return await self.voting.update_room(room_code, _join)

    async def set_preferences(self, room_code: str, preferences: Sequence[str]) -> Room:
        terms = unique_preferences(list(preferences))

        def _replace(room: Room) -> None:
            room.preferences = terms

        return await self.voting.update_room(room_code, _replace)

    async def remove_preference(self, room_code: str, preference: str) -> Room:
        term = normalize_preference(preference)

        def _remove(room: Room) -> None:
            if term not in room.preferences:
                raise NotFoundError(f"Preference '{preference}' not found")
            room.preferences = [p for p in room.preferences if p != term]

        return await self.voting.update_room(room_code, _remove)

    # ─── Geocoding ───

    async def geocode(self, address: str) -> GeocodeResult:
        if not address or not address.strip():
            raise InvalidInputError("Address is required")
        result = await self.provider.geocode(address.strip())
        if result is None:
            raise NotFoundError("Address not found")
        return result
