"""
Daily light schedule.

Two fixed jobs run alongside the Discord buttons:

    00:00  turn the light off
    17:00  turn the light on (auto-off disabled)

Jobs are fired by APScheduler's asyncio scheduler; every firing runs as its
own task on the bot's event loop, so a slow or failing kasa call never holds
up the other job or the button handlers.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from .controller import LightController
from .executor import CommandError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduledJob:
    name: str
    cron: str      # second minute hour day month day_of_week
    action: str    # LightController method name


DAILY_JOBS = (
    ScheduledJob(name="midnight-off", cron="0 0 0 * * *", action="turn_off"),
    ScheduledJob(name="evening-on", cron="0 0 17 * * *", action="turn_on"),
)


def cron_trigger(expression: str, timezone: str | None = None) -> CronTrigger:
    """
    Build a CronTrigger from a six-field expression.

        "0 30 7 * * *" → every day at 07:30:00

    Note that APScheduler counts day_of_week from Monday (0 = mon); use names
    ("mon-fri") when the field is not "*".
    """
    fields = expression.split()
    if len(fields) != 6:
        raise ValueError(
            f"Cron expression must have 6 fields, got {len(fields)}: {expression!r}"
        )
    second, minute, hour, day, month, day_of_week = fields
    return CronTrigger(
        second=second,
        minute=minute,
        hour=hour,
        day=day,
        month=month,
        day_of_week=day_of_week,
        timezone=timezone,
    )


class LightScheduler:
    """Owns the APScheduler instance for the lifetime of the process."""

    def __init__(
        self,
        controller: LightController,
        timezone: str | None = None,
        scheduler: AsyncIOScheduler | None = None,
        jobs: tuple[ScheduledJob, ...] = DAILY_JOBS,
    ) -> None:
        self._controller = controller
        self._timezone = timezone
        self._jobs = jobs
        if scheduler is None:
            scheduler = AsyncIOScheduler(timezone=timezone) if timezone else AsyncIOScheduler()
        self._scheduler = scheduler
        self._started = False

    @property
    def running(self) -> bool:
        return self._started

    @property
    def jobs(self) -> tuple[ScheduledJob, ...]:
        return self._jobs

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        Register every job and start firing.

        Every job's action and cron expression is checked before anything is
        registered.  Raises ValueError for a bad job, or whatever APScheduler
        raises when a job cannot be added; in that case nothing is started.
        """
        if self._started:
            logger.debug("Scheduler already running")
            return

        self._log_clock()
        prepared = [
            (job, self._resolve(job), cron_trigger(job.cron, self._timezone))
            for job in self._jobs
        ]
        for job, action, trigger in prepared:
            self._scheduler.add_job(
                self.run_job,
                trigger,
                args=[job, action],
                id=job.name,
                name=job.name,
                replace_existing=True,
            )
            logger.info("Registered job %s (%s)", job.name, job.cron)

        self._scheduler.start()
        self._started = True
        logger.info("Scheduler started with %d jobs", len(self._jobs))

    def shutdown(self) -> None:
        if not self._started:
            return
        self._scheduler.shutdown(wait=False)
        self._started = False
        logger.info("Scheduler stopped")

    def _resolve(self, job: ScheduledJob) -> Callable[[], Awaitable[None]]:
        action = getattr(self._controller, job.action, None)
        if not callable(action):
            raise ValueError(f"Job {job.name} has unknown action {job.action!r}")
        return action

    def _log_clock(self) -> None:
        now = datetime.now(dt_timezone.utc)
        logger.info("Current time - UTC: %s", now)
        logger.info("Current time - Local: %s", now.astimezone())
        if self._timezone:
            logger.info(
                "Current time - %s: %s",
                self._timezone, now.astimezone(self._scheduler.timezone),
            )

    # ------------------------------------------------------------------
    # Job body
    # ------------------------------------------------------------------

    async def run_job(
        self,
        job: ScheduledJob,
        action: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        logger.info("Running %s job at %s", job.name, datetime.now().astimezone())
        if action is None:
            action = self._resolve(job)
        try:
            await action()
        except CommandError as exc:
            logger.error("Scheduled job %s failed: %s", job.name, exc)
            return
        logger.info("Scheduled job %s succeeded", job.name)
