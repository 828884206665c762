from datetime import date, datetime, timedelta, timezone
from typing import Optional
import logging

from sqlalchemy import select

from airtime.database import async_session
from airtime.engine.grid import offset_minutes
from airtime.errors import AirtimeError
from airtime.models import StandingRequest
from airtime.schemas import GenerateRequest, GenerationParameters
from airtime.services.generator import ScheduleGenerator

logger = logging.getLogger(__name__)


def local_today(timezone_offset: str, now: Optional[datetime] = None) -> date:
    """Today's date in the user's nominal local time."""
    now = now or datetime.now(timezone.utc)
    return (now + timedelta(minutes=offset_minutes(timezone_offset))).date()


def build_request(standing: StandingRequest, default_offset: str, now: Optional[datetime] = None) -> GenerateRequest:
    """Turn a stored standing request into a concrete request starting today."""
    parameters = GenerationParameters.model_validate_json(standing.parameters)
    start = local_today(parameters.timezone_offset or default_offset, now)
    return GenerateRequest(
        **parameters.model_dump(),
        start_date=start,
        end_date=start + timedelta(days=standing.days_ahead - 1)
    )


async def regenerate_standing_requests(
    generator: ScheduleGenerator,
    default_offset: str,
    session_factory=async_session,
    now: Optional[datetime] = None
) -> dict[str, int]:
    """Regenerate every enabled standing request; returns created counts per user."""
    async with session_factory() as session:
        result = await session.execute(
            select(StandingRequest).where(StandingRequest.enabled == True)
        )
        standing_requests = result.scalars().all()

    logger.info(f"Regenerating {len(standing_requests)} standing request(s)")

    created = {}
    for standing in standing_requests:
        try:
            request = build_request(standing, default_offset, now)
            outcome = await generator.generate(standing.user_id, request, trigger="scheduled")
            created[standing.user_id] = outcome.created_count
        except AirtimeError as e:
            logger.error(f"Standing regeneration failed for {standing.user_id}: {e.message}")
        except Exception as e:
            logger.error(f"Standing regeneration failed for {standing.user_id}: {e}")

    return created
