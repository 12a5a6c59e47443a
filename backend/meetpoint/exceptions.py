"""Application exceptions — each carries the HTTP status the API layer reports."""

from fastapi import status


class MeetPointError(Exception):
    """Base class for all MeetPoint errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class InvalidInputError(MeetPointError):
    """Malformed or missing input. Caller error, never retried."""

    def __init__(self, message: str):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class NotFoundError(MeetPointError):
    """Room, place or address could not be found."""

    def __init__(self, message: str = "Not found"):
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class VoteNotFoundError(NotFoundError):
    """Retracting a vote that was never cast."""

    def __init__(self, place_id: str, participant_name: str):
        super().__init__(f"No vote from '{participant_name}' for place {place_id}")
        self.place_id = place_id
        self.participant_name = participant_name


class DuplicateVoteError(MeetPointError):
    """The participant already voted for this place."""

    def __init__(self, place_id: str, participant_name: str):
        super().__init__(
            f"'{participant_name}' has already voted for place {place_id}",
            status.HTTP_409_CONFLICT,
        )
        self.place_id = place_id
        self.participant_name = participant_name


class RoomCompletedError(MeetPointError):
    """The room already has a final meeting point."""

    def __init__(self, room_code: str):
        super().__init__(f"Room {room_code} is already completed", status.HTTP_409_CONFLICT)
        self.room_code = room_code


class StaleRoomError(MeetPointError):
    """The room was saved by another writer since it was loaded."""

    def __init__(self, room_code: str):
        super().__init__(f"Room {room_code} was modified concurrently, try again", status.HTTP_409_CONFLICT)
        self.room_code = room_code


class ProviderError(MeetPointError):
    """The maps provider was unreachable or answered with a non-OK status."""

    def __init__(self, message: str = "Maps provider request failed", provider_status: str | None = None):
        super().__init__(message, status.HTTP_502_BAD_GATEWAY)
        self.provider_status = provider_status


class PersistenceError(MeetPointError):
    """The room store could not be read or written."""

    def __init__(self, message: str = "Room store unavailable"):
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE)
