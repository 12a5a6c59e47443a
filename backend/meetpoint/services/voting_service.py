"""Voting service — vote ledger, majority detection and room finalization."""

import asyncio
import logging
import weakref
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TypeVar

from meetpoint.exceptions import (
    DuplicateVoteError,
    InvalidInputError,
    RoomCompletedError,
    StaleRoomError,
    VoteNotFoundError,
)
from meetpoint.services.recommendation.types import (
    ROOM_ACTIVE,
    ROOM_COMPLETED,
    CandidatePlace,
    Coordinate,
    Room,
    Vote,
)
from meetpoint.services.room_store import RoomStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Saves retried when another process wrote the room in between
MAX_SAVE_ATTEMPTS = 3


class VoteLedger:
    """
    Votes per place, in cast order.

    A place_id key exists only while it has at least one vote.
    """

    def __init__(self, votes: dict[str, list[Vote]] | None = None):
        self._votes: dict[str, list[Vote]] = {
            place_id: list(place_votes)
            for place_id, place_votes in (votes or {}).items()
            if place_votes
        }

    def cast(
        self,
        place_id: str,
        participant_name: str,
        participant_location: Coordinate | None = None,
        cast_at: datetime | None = None,
    ) -> Vote:
        if not place_id or not participant_name:
            raise InvalidInputError("placeId and participantName are required")
        if participant_name in self.voters_for(place_id):
            raise DuplicateVoteError(place_id, participant_name)
        vote = Vote(
            place_id=place_id,
            participant_name=participant_name,
            participant_location=participant_location,
            cast_at=cast_at or datetime.now(timezone.utc),
        )
        self._votes.setdefault(place_id, []).append(vote)
        return vote

    def retract(self, place_id: str, participant_name: str) -> Vote:
        place_votes = self._votes.get(place_id, [])
        for idx, vote in enumerate(place_votes):
            if vote.participant_name == participant_name:
                del place_votes[idx]
                if not place_votes:
                    del self._votes[place_id]
                return vote
        raise VoteNotFoundError(place_id, participant_name)

    # Read projections

    def list_votes(self, place_id: str) -> list[Vote]:
        return list(self._votes.get(place_id, []))

    def tally(self, place_id: str) -> int:
        return len(self._votes.get(place_id, []))

    def voters_for(self, place_id: str) -> set[str]:
        return {v.participant_name for v in self._votes.get(place_id, [])}

    def tallies(self) -> dict[str, int]:
        return {place_id: len(place_votes) for place_id, place_votes in self._votes.items()}

    def as_dict(self) -> dict[str, list[Vote]]:
        return {place_id: list(place_votes) for place_id, place_votes in self._votes.items()}


def has_majority(tally: int, participant_count: int) -> bool:
    """Strict majority: more than half of the room."""
    return tally > participant_count / 2


def finalize_room(room: Room, candidate: CandidatePlace) -> Room:
    """active + candidate -> completed(meeting_point=candidate)."""
    if room.status != ROOM_ACTIVE:
        raise RoomCompletedError(room.code)
    room.meeting_point = candidate
    room.status = ROOM_COMPLETED
    return room


@dataclass
class VoteOutcome:
    room_code: str
    place_id: str
    tally: int
    tallies: dict[str, int] = field(default_factory=dict)
    votes: dict[str, list[Vote]] = field(default_factory=dict)
    majority: bool = False
    finalized: bool = False
    status: str = ROOM_ACTIVE
    meeting_point: CandidatePlace | None = None


class VotingService:
    """Applies room mutations one at a time per room and finalizes on majority."""

    def __init__(self, store: RoomStore, max_save_attempts: int = MAX_SAVE_ATTEMPTS):
        self.store = store
        self.max_save_attempts = max_save_attempts
        # An entry lives only while some coroutine holds or waits on the lock
        self._locks = weakref.WeakValueDictionary()

    def _lock_for(self, room_code: str) -> asyncio.Lock:
        key = room_code.upper()
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def _apply(self, room_code: str, mutate: Callable[[Room], T]) -> tuple[Room, T]:
        """
        Load, mutate and save a room under its lock.

        The lock linearizes writers in this process. The store's version
        check catches writers in other processes; the mutation is then
        replayed on a fresh load.
        """
        async with self._lock_for(room_code):
            attempt = 1
            while True:
                room = await self.store.load_room(room_code)
                result = mutate(room)
                try:
                    await self.store.save_room(room)
                except StaleRoomError:
                    if attempt >= self.max_save_attempts:
                        raise
                    logger.info(f"Room {room.code} changed by another writer, retrying (attempt {attempt})")
                    attempt += 1
                    continue
                return room, result

    async def cast_vote(
        self,
        room_code: str,
        place_id: str,
        participant_name: str,
        participant_location: Coordinate | None = None,
        candidate: CandidatePlace | None = None,
    ) -> VoteOutcome:
        """Record a vote; finalize the room if the place now has a strict majority."""

        def _cast(room: Room) -> tuple[VoteLedger, bool, bool]:
            if room.is_completed:
                raise RoomCompletedError(room.code)

            ledger = VoteLedger(room.votes)
            ledger.cast(place_id, participant_name, participant_location)
            room.votes = ledger.as_dict()

            tally = ledger.tally(place_id)
            majority = has_majority(tally, room.participant_count)
            finalized = False
            if majority:
                final_place = candidate or room.candidates.get(place_id)
                if final_place is None:
                    logger.warning(
                        f"Room {room.code}: place {place_id} reached majority but is not on the "
                        f"shortlist; finalization deferred"
                    )
                else:
                    finalize_room(room, final_place)
                    finalized = True
                    logger.info(f"Room {room.code} finalized on {place_id} ({tally}/{room.participant_count} votes)")
            return ledger, majority, finalized

        room, (ledger, majority, finalized) = await self._apply(room_code, _cast)
        return self._outcome(room, ledger, place_id, majority, finalized)

    async def retract_vote(self, room_code: str, place_id: str, participant_name: str) -> VoteOutcome:
        def _retract(room: Room) -> VoteLedger:
            if room.is_completed:
                raise RoomCompletedError(room.code)
            ledger = VoteLedger(room.votes)
            ledger.retract(place_id, participant_name)
            room.votes = ledger.as_dict()
            return ledger

        room, ledger = await self._apply(room_code, _retract)
        return self._outcome(room, ledger, place_id, majority=False, finalized=False)

    async def finalize(self, room_code: str, candidate: CandidatePlace) -> Room:
        """Explicitly pick the final meeting point."""
        room, _ = await self._apply(room_code, lambda r: finalize_room(r, candidate))
        logger.info(f"Room {room.code} finalized on {candidate.place_id}")
        return room

    async def add_to_shortlist(self, room_code: str, places: Sequence[CandidatePlace]) -> Room:
        """
        Add places to the room shortlist.

        A newly listed place whose votes already form a strict majority
        completes the room, since its earlier finalization was deferred.
        Completed rooms are left untouched.
        """

        def _shortlist(room: Room) -> None:
            if room.is_completed:
                return
            added = [p for p in places if p.place_id not in room.candidates]
            for place in places:
                room.candidates[place.place_id] = place
            for place in added:
                tally = len(room.votes.get(place.place_id, []))
                if tally and has_majority(tally, room.participant_count):
                    finalize_room(room, place)
                    logger.info(
                        f"Room {room.code} finalized on {place.place_id} once shortlisted "
                        f"({tally}/{room.participant_count} votes)"
                    )
                    return

        room, _ = await self._apply(room_code, _shortlist)
        return room

    async def update_room(self, room_code: str, mutate: Callable[[Room], None]) -> Room:
        """Apply a non-vote mutation under the same per-room lock as votes."""
        room, _ = await self._apply(room_code, mutate)
        return room

    async def get_votes(self, room_code: str) -> dict[str, list[Vote]]:
        room = await self.store.load_room(room_code)
        return VoteLedger(room.votes).as_dict()

    @staticmethod
    def _outcome(room: Room, ledger: VoteLedger, place_id: str, majority: bool, finalized: bool) -> VoteOutcome:
        return VoteOutcome(
            room_code=room.code,
            place_id=place_id,
            tally=ledger.tally(place_id),
            tallies=ledger.tallies(),
            votes=ledger.as_dict(),
            majority=majority,
            finalized=finalized,
            status=room.status,
            meeting_point=room.meeting_point,
        )
