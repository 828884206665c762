from datetime import date, timedelta

from fastapi import APIRouter, Depends, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from airtime.database import get_session
from airtime.errors import InvalidRangeError, NotFoundError, ValidationError
from airtime.models import ScheduleEntry, StandingRequest
from airtime.routers.deps import get_current_user
from airtime.schemas import (
    GenerateRequest, GenerateResponse, GenerationParameters, ScheduleEntryOut,
    StandingRequestIn, StandingRequestOut
)
from airtime.services.generator import ScheduleGenerator, get_generator, validate_request

router = APIRouter()


@router.post("/generate", response_model=GenerateResponse)
async def generate_schedule(
    request: GenerateRequest,
    response: Response,
    user_id: str = Depends(get_current_user),
    generator: ScheduleGenerator = Depends(get_generator)
):
    """Generate schedule entries for a date range from the queue or a rotation group."""
    result = await generator.generate(user_id, request)

    if result.created_count:
        response.status_code = 201

    return GenerateResponse(
        created_count=result.created_count,
        schedule_entries=[ScheduleEntryOut.model_validate(e) for e in result.entries],
        skipped=result.skipped,
        warnings=result.warnings
    )


@router.get("", response_model=list[ScheduleEntryOut])
async def list_schedule(
    start_date: date,
    end_date: date,
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session)
):
    """Get the user's entries in a date range."""
    if start_date > end_date:
        raise InvalidRangeError(f"start_date {start_date} is after end_date {end_date}")

    result = await session.execute(
        select(ScheduleEntry)
        .where(
            ScheduleEntry.user_id == user_id,
            ScheduleEntry.slot_date >= start_date,
            ScheduleEntry.slot_date <= end_date
        )
        .order_by(ScheduleEntry.slot_date, ScheduleEntry.start_time, ScheduleEntry.track)
    )
    return result.scalars().all()


@router.get("/standing", response_model=StandingRequestOut)
async def get_standing_request(
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session)
):
    standing = await _get_standing(session, user_id)
    if not standing:
        raise NotFoundError(f"No standing request for {user_id}")
    return _standing_out(standing)


@router.put("/standing", response_model=StandingRequestOut)
async def save_standing_request(
    body: StandingRequestIn,
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session)
):
    """Create or replace the nightly regeneration request."""
    # Same checks a generation would run, against a window starting today
    today = date.today()
    validate_request(GenerateRequest(
        **body.parameters.model_dump(),
        start_date=today,
        end_date=today + timedelta(days=body.days_ahead - 1)
    ))

    standing = await _get_standing(session, user_id)
    if not standing:
        standing = StandingRequest(user_id=user_id)
        session.add(standing)

    standing.days_ahead = body.days_ahead
    standing.enabled = body.enabled
    standing.parameters = body.parameters.model_dump_json()

    await session.commit()
    await session.refresh(standing)
    return _standing_out(standing)


@router.delete("/standing")
async def delete_standing_request(
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session)
):
    standing = await _get_standing(session, user_id)
    if not standing:
        raise NotFoundError(f"No standing request for {user_id}")

    await session.delete(standing)
    await session.commit()
    return {"deleted": True}


@router.delete("/cursors/{content_id}")
async def reset_cursor(
    content_id: str,
    scope: str = "queue",
    user_id: str = Depends(get_current_user),
    generator: ScheduleGenerator = Depends(get_generator)
):
    """Start a content item over from its first episode."""
    if scope != "queue" and not (scope.startswith("rotation:") and len(scope) > len("rotation:")):
        raise ValidationError(f"Unknown cursor scope '{scope}'")

    reset = await generator.writer.reset_cursor(user_id, scope, content_id)
    if not reset:
        raise NotFoundError(f"No cursor for {content_id} in scope {scope}")
    return {"content_id": content_id, "scope": scope, "reset": True}


@router.get("/{slot_date}", response_model=list[ScheduleEntryOut])
async def get_schedule_for_date(
    slot_date: date,
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session)
):
    """Get the user's entries for one day."""
    result = await session.execute(
        select(ScheduleEntry)
        .where(ScheduleEntry.user_id == user_id, ScheduleEntry.slot_date == slot_date)
        .order_by(ScheduleEntry.start_time, ScheduleEntry.track)
    )
    return result.scalars().all()


async def _get_standing(session: AsyncSession, user_id: str):
    result = await session.execute(
        select(StandingRequest).where(StandingRequest.user_id == user_id)
    )
    return result.scalar_one_or_none()


def _standing_out(standing: StandingRequest) -> StandingRequestOut:
    return StandingRequestOut(
        user_id=standing.user_id,
        days_ahead=standing.days_ahead,
        enabled=standing.enabled,
        parameters=GenerationParameters.model_validate_json(standing.parameters)
    )
