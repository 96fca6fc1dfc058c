"""
Daily Job Scheduler
===================

Runs named jobs at most once per calendar day in the operating timezone.

- DailyTrigger: pure decision "should the job run now?" (on-time window and
  catch-up after downtime)
- DailyJob: holds the per-job checkpoint (last successful run date)
- JobScheduler: APScheduler wrapper polling every registered job on a fixed
  interval

The checkpoint lives in memory only. Running more than one process would run
each job once per process.
"""

import asyncio
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Awaitable, Callable, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from sla_service.shared.infrastructure.clock import Clock
from sla_service.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

StopCheck = Callable[[], bool]
DailyAction = Callable[[datetime, StopCheck], Awaitable[bool]]


class TriggerReason(str):
    """Why a trigger fired."""
    WINDOW = "window"
    CATCH_UP = "catch_up"


@dataclass(frozen=True)
class TriggerDecision:
    """Outcome of a trigger check."""
    should_run: bool
    reason: Optional[str] = None


class DailyTrigger:
    """
    Decides whether a daily job is due.

    A job is due when it has not completed today and either the local time is
    within ``tolerance`` of ``target`` or, with catch-up enabled, the window
    has already passed. Times are compared on the same calendar day.
    """

    def __init__(self, target: time, tolerance: timedelta, catch_up: bool = True):
        if tolerance < timedelta(0):
            raise ValueError("tolerance must not be negative")
        self.target = target
        self.tolerance = tolerance
        self.catch_up = catch_up

    @staticmethod
    def _seconds_of_day(value: time) -> float:
        return value.hour * 3600 + value.minute * 60 + value.second + value.microsecond / 1_000_000

    def evaluate(self, now: datetime, last_run_date: Optional[date]) -> TriggerDecision:
        if last_run_date == now.date():
            return TriggerDecision(False)

        current = self._seconds_of_day(now.time())
        target = self._seconds_of_day(self.target)
        tolerance = self.tolerance.total_seconds()

        if abs(current - target) <= tolerance:
            return TriggerDecision(True, TriggerReason.WINDOW)
        if self.catch_up and current > target + tolerance:
            return TriggerDecision(True, TriggerReason.CATCH_UP)
        return TriggerDecision(False)


class DailyJob:
    """
    A named daily job with its in-memory checkpoint.

    ``action(now, should_stop)`` returns True when the day's work finished.
    Only then does ``last_run_date`` advance, so a failed or interrupted run
    is retried on a later tick.
    """

    def __init__(
        self,
        name: str,
        trigger: DailyTrigger,
        action: DailyAction,
        clock: Clock
    ):
        self.name = name
        self.trigger = trigger
        self._action = action
        self._clock = clock
        self.last_run_date: Optional[date] = None
        self._stop_requested = False
        self._busy = asyncio.Lock()

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def request_stop(self) -> None:
        self._stop_requested = True

    async def wait_idle(self) -> None:
        """Wait for an in-flight run to return."""
        async with self._busy:
            pass

    async def tick(self) -> bool:
        """
        Check the trigger and run the action if due.

        Returns:
            True if the action ran to completion on this tick
        """
        if self._stop_requested or self._busy.locked():
            return False

        async with self._busy:
            now = self._clock.now()
            decision = self.trigger.evaluate(now, self.last_run_date)
            if not decision.should_run:
                return False

            logger.info(
                "Daily job starting",
                extra={"job": self.name, "reason": decision.reason, "local_time": now.isoformat()}
            )

            try:
                completed = await self._action(now, lambda: self._stop_requested)
            except Exception as e:
                logger.exception(
                    "Daily job failed, checkpoint not advanced",
                    extra={"job": self.name, "error": str(e)}
                )
                return False

            if not completed:
                logger.warning(
                    "Daily job did not complete, will retry",
                    extra={"job": self.name, "stop_requested": self._stop_requested}
                )
                return False

            self.last_run_date = now.date()
            logger.info(
                "Daily job completed",
                extra={"job": self.name, "run_date": self.last_run_date.isoformat()}
            )
            return True


class JobScheduler:
    """
    Wrapper for APScheduler polling daily jobs.

    Each job gets an interval trigger; the first tick happens right after
    start so a service restarted after the target time catches up at once.
    """

    def __init__(self, poll_seconds: int = 60):
        self.poll_seconds = poll_seconds
        self._jobs: Dict[str, DailyJob] = {}
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def jobs(self) -> Dict[str, DailyJob]:
        return dict(self._jobs)

    def register(self, job: DailyJob) -> None:
        if job.name in self._jobs:
            raise ValueError(f"job '{job.name}' already registered")
        self._jobs[job.name] = job

    async def start(self) -> None:
        """Start polling all registered jobs."""
        if self._running:
            logger.warning("Job scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()
        first_tick = datetime.now().astimezone()

        for job in self._jobs.values():
            self._scheduler.add_job(
                job.tick,
                "interval",
                seconds=self.poll_seconds,
                id=job.name,
                name=f"Daily job: {job.name}",
                next_run_time=first_tick,
                misfire_grace_time=self.poll_seconds,
                coalesce=True,
                max_instances=1,
                replace_existing=True
            )

        self._scheduler.start()
        self._running = True

        logger.info(
            "Job scheduler started",
            extra={"poll_seconds": self.poll_seconds, "jobs": sorted(self._jobs)}
        )

    async def stop(self) -> None:
        """Signal jobs to stop at the next request boundary and wait for them."""
        if not self._running:
            return

        for job in self._jobs.values():
            job.request_stop()

        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        await asyncio.gather(*(job.wait_idle() for job in self._jobs.values()))
        self._running = False
        logger.info("Job scheduler stopped")
