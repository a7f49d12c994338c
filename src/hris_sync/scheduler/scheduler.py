"""
Cron-like scheduling of sync passes.
"""

import logging
from collections.abc import Callable
from typing import Any

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)

# Named frequencies, all at midnight
FREQUENCIES = {
    "daily": {"hour": 0, "minute": 0},
    "weekly": {"day_of_week": "sun", "hour": 0, "minute": 0},
    "monthly": {"day": 1, "hour": 0, "minute": 0},
}


class SyncScheduler:
    """
    Runs sync jobs on a schedule.

    ``start`` blocks the calling thread until the scheduler is stopped.
    """

    def __init__(self, scheduler: Any | None = None):
        self.scheduler = scheduler or BlockingScheduler()
        self.jobs = []

    def _add(self, job_func: Callable, trigger: Any, job_id: str, kwargs: dict[str, Any]) -> None:
        job = self.scheduler.add_job(
            job_func,
            trigger=trigger,
            id=job_id,
            kwargs=kwargs,
            replace_existing=True,
        )
        self.jobs = [j for j in self.jobs if j.id != job_id] + [job]

    def add_frequency_job(self, job_func: Callable, frequency: str, job_id: str, **kwargs) -> None:
        """
        Add a job on a named frequency

        Args:
            job_func: Function to execute
            frequency: "daily" (every midnight), "weekly" (Sunday midnight)
                or "monthly" (midnight on the 1st)
            job_id: Unique identifier for the job
            **kwargs: Additional arguments to pass to job_func
        """
        try:
            fields = FREQUENCIES[frequency]
        except KeyError:
            raise ValueError(
                f"Unknown frequency {frequency!r}; expected one of {', '.join(FREQUENCIES)}"
            ) from None

        self._add(job_func, CronTrigger(**fields), job_id, kwargs)
        logger.info(f"Added {frequency} job '{job_id}'")

    def add_interval_job(self, job_func: Callable, interval_seconds: int, job_id: str, **kwargs) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._add(job_func, IntervalTrigger(seconds=interval_seconds), job_id, kwargs)
        logger.info(f"Added interval job '{job_id}' with interval {interval_seconds}s")

    def add_cron_job(self, job_func: Callable, cron_expression: str, job_id: str, **kwargs) -> None:
        """
        Add a job that runs on a cron schedule

        Args:
            job_func: Function to execute
            cron_expression: Five fields, minute hour day month day_of_week
            job_id: Unique identifier for the job
            **kwargs: Additional arguments to pass to job_func
        """
        parts = cron_expression.split()

        if len(parts) != 5:
            raise ValueError(
                "Cron expression must have 5 parts: minute hour day month day_of_week"
            )

        minute, hour, day, month, day_of_week = parts
        trigger = CronTrigger(
            minute=minute,
            hour=hour,
            day=day,
            month=month,
            day_of_week=day_of_week,
        )

        self._add(job_func, trigger, job_id, kwargs)
        logger.info(f"Added cron job '{job_id}' with schedule '{cron_expression}'")

    def remove_job(self, job_id: str) -> None:
        self.scheduler.remove_job(job_id)
        self.jobs = [job for job in self.jobs if job.id != job_id]
        logger.info(f"Removed job '{job_id}'")

    def start(self) -> None:
        logger.info(f"Starting sync scheduler with {len(self.jobs)} job(s)")
        try:
            self.scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            logger.info("Scheduler stopped by user")
            self.stop()

    def stop(self) -> None:
        self.scheduler.shutdown()
        logger.info("Scheduler stopped")

    def list_jobs(self) -> list[dict[str, Any]]:
        job_list = []
        for job in self.scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            job_list.append({
                "id": job.id,
                "name": job.name,
                "next_run_time": next_run.isoformat() if next_run else None,
                "trigger": str(job.trigger),
            })
        return job_list
