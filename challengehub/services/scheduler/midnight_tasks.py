"""
Midnight Run

Nightly pipeline, fired at 00:00 Rwanda time (Africa/Kigali).

Order and why:
- send_reminders first: a challenge whose deadline is in N days is
  reminded while it is still active.
- process_deadlines after send_reminders: closes challenges whose
  deadline date is behind us.
- process_released_scores after process_deadlines: completes judged
  challenges before any stats are computed.
- update_stats_prev_values after both lifecycle tasks: the monthly
  baseline has to include tonight's lifecycle writes.
- calculate_public_stats last: counts completed challenges and prize
  money after completions and the rollover.

To add a task: write the service, then append a MidnightTask below with
its run_after predecessors.
"""
import logging
import time
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from challengehub.core.config import settings
from challengehub.services.challenge.deadline_processor import DeadlineProcessor
from challengehub.services.challenge.prize_distribution import PrizeDistributionService
from challengehub.services.challenge.reminders import ReminderDispatcher
from challengehub.services.notification.notification_service import NotificationService
from challengehub.services.payment.wallet_service import WalletService
from challengehub.services.scheduler.task_runner import MidnightTask, TaskResult, TaskRunner
from challengehub.services.stats.stats_roller import StatsRoller
from challengehub.services.stats.stats_service import StatsService
from challengehub.utils.clock import Clock

logger = logging.getLogger(__name__)


def build_midnight_tasks(
    db: AsyncIOMotorDatabase,
    clock: Optional[Clock] = None,
    notification_service: Optional[NotificationService] = None,
    disabled: Optional[List[str]] = None,
) -> List[MidnightTask]:
    """Wire the nightly tasks to one database, clock and notification sink"""
    clock = clock or Clock()
    notification_service = notification_service or NotificationService(db, clock)
    stats_service = StatsService(db, clock)
    disabled = set(settings.DISABLED_MIDNIGHT_TASKS if disabled is None else disabled)

    reminders = ReminderDispatcher(db, clock, notification_service)
    deadlines = DeadlineProcessor(db, clock, notification_service, stats_service)
    prizes = PrizeDistributionService(
        db, clock, notification_service, WalletService(db, clock), stats_service
    )
    roller = StatsRoller(db, clock, stats_service)

    tasks = [
        MidnightTask(
            name="send_reminders",
            description="Reminds users and teams who have not submitted, 3 days before the deadline",
            run=reminders.run,
        ),
        MidnightTask(
            name="process_deadlines",
            description="Moves expired challenges to judging, closes enrollments and teams, notifies participants",
            run=deadlines.run,
            run_after=("send_reminders",),
        ),
        MidnightTask(
            name="process_released_scores",
            description="Credits prize money for released scores, notifies participants, completes the challenge",
            run=prizes.run,
            run_after=("process_deadlines",),
        ),
        MidnightTask(
            name="update_stats_prev_values",
            description="Copies current stat values into prev for month-over-month comparison (1st of month)",
            run=roller.update_prev_values,
            run_after=("process_deadlines", "process_released_scores"),
        ),
        MidnightTask(
            name="calculate_public_stats",
            description="Recalculates landing page stats (challenges, developers, prizes)",
            run=roller.update_public_stats,
            run_after=("process_released_scores", "update_stats_prev_values"),
        ),
    ]

    for task in tasks:
        if task.name in disabled:
            task.enabled = False

    return tasks


async def run_midnight(
    db: AsyncIOMotorDatabase,
    clock: Optional[Clock] = None,
    notification_service: Optional[NotificationService] = None,
) -> List[TaskResult]:
    """
    Midnight run entry point.

    Task failures are logged and reported in the results. Only a failure
    of the runner itself propagates, so the caller can retry the whole
    invocation.
    """
    clock = clock or Clock()
    start = time.monotonic()
    logger.info("[MIDNIGHT] Midnight Run started (local time %s, %s)", clock.now().isoformat(), clock.tz.key)

    try:
        runner = TaskRunner(build_midnight_tasks(db, clock, notification_service))
        results = await runner.run_all()
    except Exception:
        logger.exception("[MIDNIGHT] Midnight Run failed catastrophically")
        raise

    successful = [r for r in results if r.success]
    failed = [r for r in results if not r.success]

    logger.info(
        "[MIDNIGHT] Midnight Run completed in %dms: total=%d successful=%d failed=%d results=%s",
        int((time.monotonic() - start) * 1000),
        len(results),
        len(successful),
        len(failed),
        [{"task": r.task_name, "success": r.success, "error": r.error} for r in results],
    )

    if failed:
        logger.warning("[MIDNIGHT] Some midnight tasks failed: %s", [r.task_name for r in failed])

    return results
