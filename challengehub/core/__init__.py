"""
Process-level infrastructure: settings, logging, the midnight cron job.
"""
from challengehub.core.scheduler import (
    scheduler,
    run_midnight_job,
    is_midnight_run_in_progress,
    setup_scheduler,
    start_scheduler,
    stop_scheduler,
    get_scheduler_status,
)

__all__ = [
    "scheduler",
    "run_midnight_job",
    "is_midnight_run_in_progress",
    "setup_scheduler",
    "start_scheduler",
    "stop_scheduler",
    "get_scheduler_status",
]
