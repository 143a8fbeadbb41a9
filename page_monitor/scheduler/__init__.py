"""Scheduler module for automatic page checks."""

from .job_scheduler import JobScheduler

__all__ = ["JobScheduler"]
