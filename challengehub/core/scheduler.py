"""
APScheduler Setup for the Midnight Run

One cron job at 00:00 Rwanda time (Africa/Kigali, UTC+2) runs all
midnight tasks. If the runner itself fails, the whole invocation is
retried up to MIDNIGHT_RETRY_COUNT times; failures of individual tasks
are only logged.

Note: Jobs run with database connection from app context.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from challengehub.core.config import settings
from challengehub.utils.clock import Clock

logger = logging.getLogger(__name__)

MIDNIGHT_JOB_ID = "midnight_run"

# Global scheduler instance
scheduler = AsyncIOScheduler(timezone=settings.REFERENCE_TIMEZONE)

# One midnight run at a time, whether fired by cron or by the manual route
_run_lock = asyncio.Lock()

# Job status tracking
job_status: Dict[str, Any] = {
    "last_run": None,
    "midnight_run": {"runs": 0, "attempts": 0, "last_result": None, "last_error": None},
}


def is_midnight_run_in_progress() -> bool:
    return _run_lock.locked()


async def run_midnight_job(
    clock: Optional[Clock] = None,
    retry_count: Optional[int] = None,
    retry_delay: Optional[float] = None,
) -> Optional[list]:
    """
    Job: run every midnight task, retrying the whole invocation when the
    runner itself throws. Retries back off exponentially from
    `retry_delay` seconds. A call made while another run is in progress
    waits for it to finish.

    Returns the task results of the successful attempt, or None if every
    attempt failed.
    """
    from challengehub.database import Database
    from challengehub.services.scheduler.midnight_tasks import run_midnight

    db = Database.get_db()
    if db is None:
        logger.warning("[SCHEDULER] Database not connected, skipping midnight_run")
        return None

    retries = settings.MIDNIGHT_RETRY_COUNT if retry_count is None else retry_count
    delay = settings.MIDNIGHT_RETRY_DELAY_SECONDS if retry_delay is None else retry_delay

    if _run_lock.locked():
        logger.info("[SCHEDULER] midnight_run already in progress, waiting for it to finish")

    async with _run_lock:
        status = job_status["midnight_run"]
        status["runs"] += 1
        job_status["last_run"] = datetime.now(timezone.utc).isoformat()

        for attempt in range(1, retries + 2):
            status["attempts"] += 1
            try:
                results = await run_midnight(db, clock)
            except Exception as e:
                status["last_error"] = str(e)
                if attempt > retries:
                    logger.error("[SCHEDULER] midnight_run failed after %d attempts", attempt)
                    return None
                wait = delay * 2 ** (attempt - 1)
                logger.warning(
                    "[SCHEDULER] midnight_run attempt %d failed, retrying in %.0fs: %s", attempt, wait, e
                )
                await asyncio.sleep(wait)
                continue

            status["last_result"] = [r.model_dump() for r in results]
            status["last_error"] = None
            return results

    return None


def setup_scheduler():
    """
    Configure and setup all scheduled jobs.

    Job Schedule:
    - midnight_run: daily at MIDNIGHT_CRON_HOUR:MIDNIGHT_CRON_MINUTE (default 00:00)
      in the reference timezone
    """
    # Clear any existing jobs
    scheduler.remove_all_jobs()

    scheduler.add_job(
        run_midnight_job,
        CronTrigger(
            hour=settings.MIDNIGHT_CRON_HOUR,
            minute=settings.MIDNIGHT_CRON_MINUTE,
            timezone=settings.REFERENCE_TIMEZONE,
        ),
        id=MIDNIGHT_JOB_ID,
        name="Midnight Run (reminders, deadlines, prizes, stats)",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=3600,
    )

    logger.info(
        "[SCHEDULER] Midnight run scheduled daily at %02d:%02d %s",
        settings.MIDNIGHT_CRON_HOUR, settings.MIDNIGHT_CRON_MINUTE, settings.REFERENCE_TIMEZONE,
    )


def start_scheduler():
    """Start the scheduler if not already running."""
    if not scheduler.running:
        scheduler.start()
        logger.info("[SCHEDULER] Background scheduler started")


def stop_scheduler():
    """Stop the scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("[SCHEDULER] Background scheduler stopped")


def get_scheduler_status() -> dict:
    """Get current scheduler status for monitoring."""
    return {
        "running": scheduler.running,
        "jobs": [
            {
                "id": job.id,
                "name": job.name,
                "next_run": job.next_run_time.isoformat() if job.next_run_time else None
            }
            for job in scheduler.get_jobs()
        ],
        "job_status": job_status
    }
