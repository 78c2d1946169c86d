"""Daily background trigger for the inactivity engine."""

import asyncio
import logging
from datetime import datetime, timedelta

from ..config import settings
from ..database.base import utcnow
from .service import InactivityEngine

logger = logging.getLogger(__name__)

RETRY_AFTER_ERROR_SECONDS = 3600


def seconds_until_next_run(now: datetime, hour: int) -> float:
    """Seconds from ``now`` to the next occurrence of ``hour``:00 (UTC)."""
    next_run = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if next_run <= now:
        next_run += timedelta(days=1)
    return (next_run - now).total_seconds()


async def start_inactivity_scheduler(engine: InactivityEngine, hour: int | None = None) -> None:
    """Run the inactivity cycle once a day until cancelled.

    The cycle itself is blocking (database and SMTP), so it runs in a worker
    thread. Overlap with a manual trigger is handled by the engine's own lock.
    """
    run_hour = settings.inactivity_schedule_hour if hour is None else hour
    logger.info("Inactivity scheduler started, daily run at %02d:00 UTC", run_hour)

    while True:
        try:
            wait = seconds_until_next_run(utcnow(), run_hour)
            logger.info("Next inactivity check in %.1f hours", wait / 3600)
            await asyncio.sleep(wait)

            report = await asyncio.to_thread(engine.run_cycle)
            logger.info("Scheduled inactivity check finished: %s", report.message)
        except asyncio.CancelledError:
            logger.info("Inactivity scheduler stopped")
            raise
        except Exception:
            logger.exception("Inactivity scheduler error, retrying in 1 hour")
            await asyncio.sleep(RETRY_AFTER_ERROR_SECONDS)
