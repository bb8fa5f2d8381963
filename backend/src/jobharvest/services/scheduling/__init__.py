"""Planification: timers de démarrage / arrêt et triggers cron récurrents."""

from .cron import CronFields, RunWindow, ScheduleType, build_cron_fields, compute_run_window
from .scheduler import CronJob, JobState, RecurringTrigger, SchedulePayload, Scheduler, Timer

__all__ = [
    "CronFields",
    "RunWindow",
    "ScheduleType",
    "build_cron_fields",
    "compute_run_window",
    "CronJob",
    "JobState",
    "RecurringTrigger",
    "SchedulePayload",
    "Scheduler",
    "Timer",
]
