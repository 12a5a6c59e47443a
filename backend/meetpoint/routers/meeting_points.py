"""Meeting point router — ad-hoc recommendations without a room."""

from fastapi import APIRouter, Depends

from meetpoint.config import settings
from meetpoint.dependencies import get_meeting_point_service
from meetpoint.exceptions import InvalidInputError
from meetpoint.schemas.meeting import (
    LocationOut,
    MeetingPointRequest,
    MeetingPointResponse,
    RankedCandidateOut,
)
from meetpoint.services.meeting_point_service import MeetingPointResult, MeetingPointService

router = APIRouter()


def resolve_top_n(top_n: int | None) -> int:
    if top_n is None:
        return settings.default_top_n
    if top_n > settings.max_top_n:
        raise InvalidInputError(f"top_n must be at most {settings.max_top_n}")
    return top_n


def to_response(result: MeetingPointResult) -> MeetingPointResponse:
    return MeetingPointResponse(
        candidates=[RankedCandidateOut.from_ranked(r) for r in result.candidates],
        center=LocationOut.from_coordinate(result.center),
        next_page_token=result.next_page_token,
        metadata=result.metadata,
    )


@router.post("/meeting-points", response_model=MeetingPointResponse)
async def find_meeting_points(
    body: MeetingPointRequest,
    service: MeetingPointService = Depends(get_meeting_point_service),
):
    """Rank places around the group's center, fairest travel first."""
    result = await service.find_meeting_points(
        [p.to_participant() for p in body.participants],
        body.preferences,
        top_n=resolve_top_n(body.top_n),
        page_token=body.page_token,
    )
    return to_response(result)
