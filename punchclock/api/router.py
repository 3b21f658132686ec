from fastapi import APIRouter, Body, Depends, Response
from email.utils import format_datetime
from datetime import datetime, timezone
from .schemas import PunchSubmission, PunchOut, TimeOut
from ..services.punch_service import PunchService, get_punch_service, time_payload

router = APIRouter(prefix="/v1")


@router.get("/time", response_model=TimeOut)
async def get_time(response: Response, service: PunchService = Depends(get_punch_service)):
    """Authoritative server time for client clock synchronisation."""
    sample = await service.sample_clock()
    # Browsers read this header (exposed through CORS) to estimate their offset
    response.headers["Date"] = format_datetime(
        datetime.fromtimestamp(sample.epoch_ms / 1000, tz=timezone.utc), usegmt=True
    )
    return time_payload(sample)


@router.get("/punches", response_model=list[PunchOut], response_model_exclude_none=True)
async def list_punches(service: PunchService = Depends(get_punch_service)):
    return await service.list_events()


@router.post("/punches", response_model=PunchOut, response_model_exclude_none=True, status_code=201)
async def submit_punch(
    req: PunchSubmission | None = Body(default=None),
    service: PunchService = Depends(get_punch_service),
):
    """
    Record a clock-in/out punch timestamped by the server.

    approxServerMillis is honoured only within the configured skew tolerance;
    otherwise the authoritative time is used. Store failures surface as 503.
    """
    return await service.submit_event(req or PunchSubmission())
