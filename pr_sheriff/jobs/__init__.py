"""Scheduled batch jobs."""

from .blame import BlameResult, run_blame
from .common import JobContext
from .reminders import ReminderResult, run_reminders

__all__ = ["BlameResult", "JobContext", "ReminderResult", "run_blame", "run_reminders"]
