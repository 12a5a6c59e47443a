from meetpoint.models.room import (
    CandidateRecord,
    ParticipantRecord,
    PreferenceRecord,
    RoomRecord,
    VoteRecord,
)

__all__ = [
    "CandidateRecord",
    "ParticipantRecord",
    "PreferenceRecord",
    "RoomRecord",
    "VoteRecord",
]
