from fastapi import APIRouter, Depends

from meetpoint.dependencies import get_meeting_point_service
from meetpoint.schemas.meeting import GeocodeRequest, GeocodeResponse
from meetpoint.services.meeting_point_service import MeetingPointService

router = APIRouter()


@router.post("/geocode", response_model=GeocodeResponse)
async def geocode(
    body: GeocodeRequest,
    service: MeetingPointService = Depends(get_meeting_point_service),
):
    """Resolve a free-text address to coordinates."""
    result = await service.geocode(body.address)
    return GeocodeResponse(
        lat=result.location.latitude,
        lng=result.location.longitude,
        formatted_address=result.formatted_address,
    )
