from fastapi import APIRouter, Depends

from queue_router.api.deps import get_session_reaper
from queue_router.schemas.queue import ReapResponse
from queue_router.services.reaper import SessionReaper

router = APIRouter()


@router.post("/reap", response_model=ReapResponse)
async def trigger_reap(
    reaper: SessionReaper = Depends(get_session_reaper),
) -> ReapResponse:
    reaped = await reaper.reap_once()
    return ReapResponse(reaped=reaped)
