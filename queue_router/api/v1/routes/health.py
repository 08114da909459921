from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from queue_router.core.db import get_db_session

router = APIRouter()


@router.get("/health")
async def health(request: Request) -> dict[str, str]:
    scheduler = getattr(request.app.state, "reaper_scheduler", None)
    reaper_state = "running" if scheduler is not None and scheduler.is_running else "stopped"
    return {"status": "ok", "reaper": reaper_state}


@router.get("/health/db")
async def db_health(session: AsyncSession = Depends(get_db_session)):
    await session.execute(text("SELECT 1"))
    return {"db": "ok"}
