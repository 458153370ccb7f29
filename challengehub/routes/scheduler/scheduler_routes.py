"""
Scheduler Routes
Operator endpoints for inspecting and manually triggering the midnight run
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Header, Query
from fastapi.encoders import jsonable_encoder

from challengehub.core.config import settings
from challengehub.core.scheduler import get_scheduler_status, is_midnight_run_in_progress, run_midnight_job
from challengehub.utils.clock import FixedClock
from challengehub.utils.response import (
    success_response,
    error_response,
    validation_error_response,
    unauthorized_response,
)

router = APIRouter(prefix="/scheduler", tags=["Scheduler"])


def is_admin_token_valid(token: Optional[str]) -> bool:
    """No configured token means the endpoints are open (local development)."""
    if not settings.ADMIN_API_TOKEN:
        return True
    return token == settings.ADMIN_API_TOKEN


@router.get("/status")
async def scheduler_status(x_admin_token: Optional[str] = Header(None)):
    """Scheduler state, next fire time and the last midnight run outcome."""
    if not is_admin_token_valid(x_admin_token):
        return unauthorized_response("Invalid admin token")

    return success_response(
        message="Scheduler status retrieved",
        data=jsonable_encoder(get_scheduler_status())
    )


@router.post("/midnight-run")
async def trigger_midnight_run(
    as_of: Optional[str] = Query(None, description="Run as if it were midnight of this date (YYYY-MM-DD)"),
    x_admin_token: Optional[str] = Header(None),
):
    """
    Run every midnight task now.

    With as_of, the run uses a fixed clock at local midnight of that date,
    which is how a missed night is replayed.
    """
    if not is_admin_token_valid(x_admin_token):
        return unauthorized_response("Invalid admin token")

    clock = None
    if as_of:
        try:
            clock = FixedClock.at_date(date.fromisoformat(as_of))
        except ValueError:
            return validation_error_response(
                message="Invalid as_of date",
                errors={"as_of": "Expected YYYY-MM-DD"}
            )

    if is_midnight_run_in_progress():
        return error_response(message="A midnight run is already in progress", status_code=409)

    # The operator retries by calling again; no backoff inside a request
    results = await run_midnight_job(clock=clock, retry_count=0)
    if results is None:
        return error_response(message="Midnight run did not complete", status_code=503)

    payload = [r.model_dump() for r in results]
    failed = [r.task_name for r in results if not r.success]
    if failed:
        return success_response(
            message=f"Midnight run completed with {len(failed)} failed task(s): {', '.join(failed)}",
            data=payload
        )

    return success_response(message="Midnight run completed", data=payload)
