"""Recurring action scheduling with drift correction.

A job fires at start + n * interval rather than last_fire + interval, so
the time an action takes never accumulates into the cadence. When an
action overruns one or more slots, the missed slots are skipped rather
than fired back to back.
"""

import asyncio
import itertools
import math
import time
from typing import Any, Awaitable, Callable, List, Optional, Union

from infrastructure.logging import LoggerInterface, get_logger
from utils.task_utils import TaskManager, invoke_handler

Action = Callable[[], Union[None, Awaitable[Any]]]


class ScheduledJob:
    """Handle for one recurring action. Cancel through the job or the runner."""

    def __init__(self, job_id: str, interval_ms: int, action: Action, next_fire_at: float):
        self.job_id = job_id
        self.interval_ms = interval_ms
        self.action = action
        self.next_fire_at = next_fire_at
        self.cancelled = False

        self.fire_count = 0
        self.error_count = 0
        self.skipped_slots = 0

        self._task: Optional[asyncio.Task] = None
        self._in_action = False

    @property
    def interval(self) -> float:
        return self.interval_ms / 1000.0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def cancel(self) -> None:
        """Stop future firings. An action already running is allowed to finish."""
        if self.cancelled:
            return
        self.cancelled = True
        if self._task is not None and not self._in_action:
            self._task.cancel()

    async def wait(self) -> None:
        """Wait until the job loop has exited."""
        if self._task is not None:
            await asyncio.wait({self._task})

    def __repr__(self) -> str:
        return (f"ScheduledJob(job_id={self.job_id!r}, interval_ms={self.interval_ms}, "
                f"fire_count={self.fire_count}, cancelled={self.cancelled})")


class ScheduledOrderRunner:
    """Drives recurring actions such as periodic order placement.

    Args:
        clock: Monotonic clock in seconds
        sleep: Coroutine used to wait; replaced by a fake in tests
        logger: Injected logger
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: Optional[LoggerInterface] = None,
    ):
        self._clock = clock
        self._sleep = sleep
        self.logger = logger or get_logger('trading.scheduler')
        self._jobs: List[ScheduledJob] = []
        self._tasks = TaskManager("scheduler")
        self._ids = itertools.count(1)

    @property
    def jobs(self) -> List[ScheduledJob]:
        return [job for job in self._jobs if not job.cancelled]

    def schedule(self, interval_ms: int, action: Action, fire_immediately: bool = True) -> ScheduledJob:
        """Fire action every interval_ms until cancelled.

        Must be called from a running event loop.

        Raises:
            ValueError: interval_ms is not a positive number
        """
        if isinstance(interval_ms, bool) or not isinstance(interval_ms, (int, float)) or interval_ms <= 0:
            raise ValueError(f"interval_ms must be > 0, got {interval_ms!r}")

        start = self._clock()
        first_slot = 0 if fire_immediately else 1
        job = ScheduledJob(f"job-{next(self._ids)}", interval_ms, action,
                           next_fire_at=start + first_slot * interval_ms / 1000.0)
        job._task = self._tasks.create_task(self._run(job, start, first_slot), name=job.job_id)
        self._jobs.append(job)

        self.logger.info("Job scheduled", job_id=job.job_id, interval_ms=interval_ms)
        return job

    def cancel(self, job: ScheduledJob) -> None:
        """Stop future firings of job. Idempotent."""
        if not job.cancelled:
            job.cancel()
            self.logger.info("Job cancelled", job_id=job.job_id, fire_count=job.fire_count)

    async def shutdown(self) -> None:
        """Cancel every job and wait for in-flight actions to finish."""
        for job in list(self._jobs):
            self.cancel(job)
        await asyncio.gather(*(job.wait() for job in self._jobs))
        self._jobs.clear()

    async def _run(self, job: ScheduledJob, start: float, slot: int) -> None:
        interval = job.interval
        while not job.cancelled:
            job.next_fire_at = start + slot * interval
            delay = job.next_fire_at - self._clock()
            if delay > 0:
                await self._sleep(delay)
            if job.cancelled:
                return

            await self._fire(job)

            slot += 1
            # Skip slots that passed while the action was running
            due_slot = math.ceil((self._clock() - start) / interval)
            if due_slot > slot:
                job.skipped_slots += due_slot - slot
                self.logger.warning("Action overran its interval, skipping slots",
                                    job_id=job.job_id, skipped=due_slot - slot)
                slot = due_slot

    async def _fire(self, job: ScheduledJob) -> None:
        job._in_action = True
        try:
            await invoke_handler(job.action)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            job.error_count += 1
            self.logger.error("Scheduled action failed", job_id=job.job_id, error=repr(e))
            self.logger.counter("scheduled_action_errors", job_id=job.job_id)
        finally:
            job._in_action = False
            job.fire_count += 1
