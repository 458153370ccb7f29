"""
Midnight Task Runner

Runs an ordered list of tasks once per invocation. Tasks run one after
another; a task that raises is recorded as failed and the next task
still runs.

Each task should be:
- Idempotent (safe to run again after a partial failure)
- Self-isolating (per-entity errors caught inside the task)
- Fast (a few minutes at most)
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel

from challengehub.core.exceptions import TaskOrderError

logger = logging.getLogger(__name__)


@dataclass
class MidnightTask:
    """One unit of nightly work"""
    name: str
    description: str
    run: Callable[[], Awaitable[Any]]
    enabled: bool = True
    # Names of tasks that must complete before this one starts
    run_after: Tuple[str, ...] = field(default_factory=tuple)


class TaskResult(BaseModel):
    """Outcome of one task"""
    task_name: str
    success: bool
    duration_ms: int
    error: Optional[str] = None


def order_tasks(tasks: List[MidnightTask]) -> List[MidnightTask]:
    """
    Topologically sort tasks by run_after.

    Declaration order breaks ties, so a list that already satisfies its
    constraints comes back unchanged. Disabled tasks still count as
    ordering anchors.
    """
    by_name: Dict[str, MidnightTask] = {}
    for task in tasks:
        if task.name in by_name:
            raise TaskOrderError(f"Duplicate task name: {task.name}")
        by_name[task.name] = task

    for task in tasks:
        for predecessor in task.run_after:
            if predecessor not in by_name:
                raise TaskOrderError(f"Task {task.name} runs after unknown task {predecessor}")

    ordered: List[MidnightTask] = []
    done = set()
    remaining = list(tasks)

    while remaining:
        ready = next(
            (task for task in remaining if all(p in done for p in task.run_after)),
            None,
        )
        if ready is None:
            cycle = ", ".join(task.name for task in remaining)
            raise TaskOrderError(f"Task ordering cycle between: {cycle}")
        ordered.append(ready)
        done.add(ready.name)
        remaining.remove(ready)

    return ordered


class TaskRunner:
    """Sequential runner with per-task failure isolation"""

    def __init__(self, tasks: List[MidnightTask]):
        self.tasks = order_tasks(tasks)

    async def run_all(self) -> List[TaskResult]:
        """Run every enabled task in order and collect results"""
        results: List[TaskResult] = []
        enabled_tasks = [task for task in self.tasks if task.enabled]

        logger.info("[MIDNIGHT] Running %d of %d midnight tasks", len(enabled_tasks), len(self.tasks))

        for task in enabled_tasks:
            task_start = time.monotonic()

            try:
                logger.info("[MIDNIGHT] Starting task: %s (%s)", task.name, task.description)

                await task.run()

                duration_ms = int((time.monotonic() - task_start) * 1000)
                results.append(TaskResult(task_name=task.name, success=True, duration_ms=duration_ms))
                logger.info("[MIDNIGHT] Task completed: %s (%dms)", task.name, duration_ms)

            except Exception as e:
                duration_ms = int((time.monotonic() - task_start) * 1000)
                results.append(TaskResult(
                    task_name=task.name,
                    success=False,
                    duration_ms=duration_ms,
                    error=str(e) or type(e).__name__,
                ))
                logger.exception("[MIDNIGHT] Task failed: %s (%dms)", task.name, duration_ms)
                # Continue with other tasks even if one fails

        return results
