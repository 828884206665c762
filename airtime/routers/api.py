from fastapi import APIRouter, Depends
from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from airtime.config import settings, save_settings
from airtime.database import get_session
from airtime.models import GenerationRun
from airtime.routers.deps import get_current_user
from airtime.schemas import GenerationRunOut, SettingsUpdate

router = APIRouter()


@router.get("/runs", response_model=list[GenerationRunOut])
async def get_runs(
    limit: int = 20,
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session)
):
    """Get recent generation runs for the user."""
    result = await session.execute(
        select(GenerationRun)
        .where(GenerationRun.user_id == user_id)
        .order_by(desc(GenerationRun.started_at), desc(GenerationRun.id))
        .limit(max(1, min(limit, 100)))
    )
    return result.scalars().all()


@router.get("/settings")
async def get_settings():
    """Get runtime settings and the next nightly refresh."""
    from airtime.scheduler import get_next_run_time

    next_run = get_next_run_time()
    return {
        "refresh_hour": settings.refresh_hour,
        "refresh_minute": settings.refresh_minute,
        "generation_timeout_seconds": settings.generation_timeout_seconds,
        "next_refresh": next_run.isoformat() if next_run else None
    }


@router.put("/settings")
async def update_settings(body: SettingsUpdate):
    """Save runtime settings and reschedule the nightly refresh."""
    from airtime.scheduler import update_schedule_from_settings

    await save_settings(body.refresh_hour, body.refresh_minute, body.generation_timeout_seconds)
    update_schedule_from_settings()
    return {"status": "saved"}
