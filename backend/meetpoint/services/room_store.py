"""Room store — load/save room snapshots (in-memory or SQLAlchemy)."""

import copy
import logging
import secrets
import string
from abc import ABC, abstractmethod

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from meetpoint.exceptions import NotFoundError, PersistenceError, StaleRoomError
from meetpoint.models.room import CandidateRecord, ParticipantRecord, PreferenceRecord, RoomRecord, VoteRecord
from meetpoint.services.recommendation.types import (
    ROOM_ACTIVE,
    CandidatePlace,
    Coordinate,
    Participant,
    Room,
    Vote,
)

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 6


def generate_room_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


class RoomStore(ABC):
    """Persistence for rooms. Reads always see the latest completed save."""

    @abstractmethod
    async def create_room(self, name: str) -> Room: ...

    @abstractmethod
    async def load_room(self, code: str) -> Room:
        """Raises NotFoundError if no room has this code."""

    @abstractmethod
    async def save_room(self, room: Room) -> None:
        """
        Persist the room and bump room.version.

        Raises StaleRoomError if the stored room moved past room.version
        since it was loaded, PersistenceError if the store cannot be written.
        """


class InMemoryRoomStore(RoomStore):
    """Process-local store. Copies on the way in and out so callers never alias state."""

    def __init__(self):
        self._rooms: dict[str, Room] = {}

    async def create_room(self, name: str) -> Room:
        code = generate_room_code()
        while code in self._rooms:
            code = generate_room_code()
        room = Room(code=code, name=name)
        self._rooms[code] = copy.deepcopy(room)
        return room

    async def load_room(self, code: str) -> Room:
        room = self._rooms.get(code.upper())
        if room is None:
            raise NotFoundError(f"Room {code} not found")
        return copy.deepcopy(room)

    async def save_room(self, room: Room) -> None:
        key = room.code.upper()
        stored = self._rooms.get(key)
        if stored is not None and stored.version != room.version:
            raise StaleRoomError(room.code)
        room.version += 1
        self._rooms[key] = copy.deepcopy(room)


class SqlRoomStore(RoomStore):
    """SQLAlchemy-backed store; a save replaces the room's child rows in one transaction."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        if session_factory is None:
            from meetpoint.database import async_session_factory

            session_factory = async_session_factory
        self._session_factory = session_factory

    async def create_room(self, name: str) -> Room:
        try:
            async with self._session_factory() as db:
                code = generate_room_code()
                while await db.get(RoomRecord, code) is not None:
                    code = generate_room_code()
                db.add(RoomRecord(code=code, name=name, status=ROOM_ACTIVE))
                await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to create room: {e}")
            raise PersistenceError("Failed to create room") from e
        return await self.load_room(code)

    async def load_room(self, code: str) -> Room:
        code = code.upper()
        try:
            async with self._session_factory() as db:
                record = await db.get(RoomRecord, code)
                if record is None:
                    raise NotFoundError(f"Room {code} not found")

                participants = (await db.execute(
                    select(ParticipantRecord)
                    .where(ParticipantRecord.room_code == code)
                    .order_by(ParticipantRecord.position, ParticipantRecord.id)
                )).scalars().all()
                preferences = (await db.execute(
                    select(PreferenceRecord)
                    .where(PreferenceRecord.room_code == code)
                    .order_by(PreferenceRecord.position, PreferenceRecord.id)
                )).scalars().all()
                votes = (await db.execute(
                    select(VoteRecord)
                    .where(VoteRecord.room_code == code)
                    .order_by(VoteRecord.position, VoteRecord.id)
                )).scalars().all()
                candidates = (await db.execute(
                    select(CandidateRecord)
                    .where(CandidateRecord.room_code == code)
                    .order_by(CandidateRecord.position, CandidateRecord.id)
                )).scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to load room {code}: {e}")
            raise PersistenceError(f"Failed to load room {code}") from e

        vote_map: dict[str, list[Vote]] = {}
        for v in votes:
            location = None
            if v.latitude is not None and v.longitude is not None:
                location = Coordinate(v.latitude, v.longitude)
            vote_map.setdefault(v.place_id, []).append(Vote(
                place_id=v.place_id,
                participant_name=v.participant_name,
                participant_location=location,
                cast_at=v.cast_at,
            ))

        return Room(
            code=record.code,
            name=record.name,
            participants=[
                Participant(p.name, Coordinate(p.latitude, p.longitude)) for p in participants
            ],
            preferences=[p.term for p in preferences],
            votes=vote_map,
            status=record.status,
            meeting_point=CandidatePlace.from_dict(record.meeting_point) if record.meeting_point else None,
            candidates={c.place_id: CandidatePlace.from_dict(c.payload) for c in candidates},
            created_at=record.created_at,
            version=record.version,
        )

    async def save_room(self, room: Room) -> None:
        code = room.code.upper()
        try:
            async with self._session_factory() as db:
                meeting_point = room.meeting_point.to_dict() if room.meeting_point else None
                # Compare-and-set on version; the UPDATE also holds the row lock until commit
                result = await db.execute(
                    update(RoomRecord)
                    .where(RoomRecord.code == code, RoomRecord.version == room.version)
                    .values(
                        name=room.name,
                        status=room.status,
                        meeting_point=meeting_point,
                        version=room.version + 1,
                    )
                )
                if result.rowcount == 0:
                    if await db.get(RoomRecord, code) is not None:
                        raise StaleRoomError(code)
                    db.add(RoomRecord(
                        code=code,
                        name=room.name,
                        status=room.status,
                        meeting_point=meeting_point,
                        version=room.version + 1,
                    ))

                # Replace children wholesale; deletes run before inserts to respect unique keys
                for model in (ParticipantRecord, PreferenceRecord, VoteRecord, CandidateRecord):
                    await db.execute(delete(model).where(model.room_code == code))

                db.add_all(
                    ParticipantRecord(
                        room_code=code, name=p.name, position=i,
                        latitude=p.location.latitude, longitude=p.location.longitude,
                    )
                    for i, p in enumerate(room.participants)
                )
                db.add_all(
                    PreferenceRecord(room_code=code, term=term, position=i)
                    for i, term in enumerate(room.preferences)
                )
                position = 0
                for place_id, place_votes in room.votes.items():
                    for v in place_votes:
                        loc = v.participant_location
                        db.add(VoteRecord(
                            room_code=code,
                            place_id=place_id,
                            participant_name=v.participant_name,
                            latitude=loc.latitude if loc else None,
                            longitude=loc.longitude if loc else None,
                            position=position,
                            cast_at=v.cast_at,
                        ))
                        position += 1
                db.add_all(
                    CandidateRecord(room_code=code, place_id=place_id, payload=cand.to_dict(), position=i)
                    for i, (place_id, cand) in enumerate(room.candidates.items())
                )
                await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to save room {code}: {e}")
            raise PersistenceError(f"Failed to save room {code}") from e
        room.version += 1
