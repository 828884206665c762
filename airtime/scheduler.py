from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from datetime import datetime
from typing import Optional
import logging

from airtime.config import settings

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()

REFRESH_JOB_ID = "airtime_standing_refresh"


def get_next_run_time() -> Optional[datetime]:
    """Get the next scheduled run time."""
    job = scheduler.get_job(REFRESH_JOB_ID)
    if job:
        return job.next_run_time
    return None


async def scheduled_refresh():
    """Regenerate schedules for every enabled standing request."""
    from airtime.services.generator import get_generator
    from airtime.services.standing import regenerate_standing_requests

    logger.info("Starting scheduled standing request refresh")
    created = await regenerate_standing_requests(get_generator(), settings.default_timezone_offset)
    logger.info(f"Standing refresh finished for {len(created)} user(s)")


def update_schedule_from_settings():
    """Reschedule the nightly refresh from current settings."""
    scheduler.remove_all_jobs()

    trigger = CronTrigger(hour=settings.refresh_hour, minute=settings.refresh_minute)
    scheduler.add_job(scheduled_refresh, trigger, id=REFRESH_JOB_ID)
    logger.info(f"Scheduled standing refresh daily at {settings.refresh_hour:02d}:{settings.refresh_minute:02d}")


def start_scheduler():
    """Start the scheduler."""
    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started")


def stop_scheduler():
    """Stop the scheduler."""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")
