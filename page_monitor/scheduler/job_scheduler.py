"""Interval job scheduling for automatic page checks."""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger


logger = structlog.get_logger(__name__)


class JobScheduler:
    """Manages scheduled jobs using APScheduler's asyncio scheduler."""

    def __init__(self):
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.jobs: Dict[str, Dict[str, Any]] = {}
        self.running = False

    def start(self):
        """Start the job scheduler on the running event loop."""
        if self.running:
            logger.warning("Scheduler already running")
            return

        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.scheduler.start()
        self.running = True
        logger.info("Job scheduler started")

    def stop(self):
        """Stop the job scheduler. Safe to call when it is not running."""
        if not self.running or self.scheduler is None:
            return

        self.scheduler.shutdown(wait=False)
        self.scheduler = None
        self.jobs.clear()
        self.running = False
        logger.info("Job scheduler stopped")

    def add_interval_job(
        self,
        job_id: str,
        func: Callable,
        seconds: float,
        args: Optional[tuple] = None,
        kwargs: Optional[Dict[str, Any]] = None,
        description: Optional[str] = None,
    ):
        """Add an interval-based job. The scheduler must be running."""
        if self.scheduler is None:
            raise RuntimeError("Scheduler is not running")

        if job_id in self.jobs:
            logger.warning("Job already exists, replacing", job_id=job_id)
            self.remove_job(job_id)

        job = self.scheduler.add_job(
            func=func,
            trigger=IntervalTrigger(seconds=seconds),
            id=job_id,
            args=args or (),
            kwargs=kwargs or {},
            name=description or job_id,
            coalesce=True,
        )

        self.jobs[job_id] = {
            "job": job,
            "type": "interval",
            "seconds": seconds,
            "description": description,
            "added_at": datetime.now(timezone.utc),
        }

        logger.info("Added interval job", job_id=job_id, interval_seconds=seconds, description=description)

    def remove_job(self, job_id: str) -> bool:
        """Remove a scheduled job."""
        if job_id not in self.jobs or self.scheduler is None:
            logger.warning("Job not found", job_id=job_id)
            return False

        self.scheduler.remove_job(job_id)
        del self.jobs[job_id]
        logger.info("Removed job", job_id=job_id)
        return True

    def get_job_status(self, job_id: str) -> Optional[Dict[str, Any]]:
        """Get status information for a job."""
        if job_id not in self.jobs or self.scheduler is None:
            return None

        job_info = self.jobs[job_id]
        scheduler_job = self.scheduler.get_job(job_id)
        if scheduler_job is None:
            return None

        return {
            "job_id": job_id,
            "name": scheduler_job.name,
            "type": job_info["type"],
            "seconds": job_info["seconds"],
            "next_run": scheduler_job.next_run_time.isoformat() if scheduler_job.next_run_time else None,
            "added_at": job_info["added_at"].isoformat(),
            "description": job_info.get("description"),
        }
