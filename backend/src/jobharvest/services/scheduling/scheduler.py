"""
Scheduler — gestion du cycle de vie des cron-jobs (APScheduler).

Chaque cron-job se compose de:
- un timer de démarrage (date job) qui démarre le trigger récurrent et exécute le job une fois
- un timer d'arrêt optionnel (date job) qui met le trigger en pause à end_date
- un trigger récurrent (cron job APScheduler, ajouté en pause) sauf pour les jobs 'once'

États par id: pending-start -> (active <-> stopped) -> détruit.
Les jobs 'once' sont retirés après leur unique exécution.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import partial
from typing import Callable, Dict, Optional, Tuple
from zoneinfo import ZoneInfo

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

from jobharvest.core.exceptions import JobNotFoundError
from jobharvest.core.settings import settings
from .cron import CronFields, RunWindow, ScheduleType, build_cron_fields, compute_run_window

logger = logging.getLogger(__name__)

TaskFn = Callable[[str], object]


class JobState(str, Enum):
    PENDING_START = "pending-start"
    ACTIVE = "active"
    STOPPED = "stopped"


class Timer:
    """One-shot timer backed by an APScheduler date job."""

    def __init__(self, backend, job_id: str, run_date: datetime, callback: Callable[[], None]):
        self.job_id = job_id
        self.run_date = run_date
        self.cancelled = False
        self._backend = backend
        # misfire_grace_time=None: un déclenchement en retard n'est jamais abandonné
        backend.add_job(
            callback,
            trigger=DateTrigger(run_date=run_date),
            id=job_id,
            misfire_grace_time=None,
            replace_existing=True,
        )

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        try:
            self._backend.remove_job(self.job_id)
        except JobLookupError:
            # APScheduler retire lui-même les date jobs déjà exécutés
            logger.debug(f"Timer {self.job_id} already fired")


class RecurringTrigger:
    """Recurring cron trigger, created paused, started by the start timer."""

    def __init__(self, backend, job_id: str, fields: CronFields, callback: Callable[[], None], timezone):
        self.job_id = job_id
        self.expression = fields.expression
        self.started = False
        self.destroyed = False
        self._backend = backend
        backend.add_job(
            callback,
            trigger=fields.to_trigger(timezone),
            id=job_id,
            next_run_time=None,
            coalesce=True,
            replace_existing=True,
        )

    def start(self) -> None:
        self._backend.resume_job(self.job_id)
        self.started = True

    def stop(self) -> None:
        if self.destroyed:
            return
        self._backend.pause_job(self.job_id)
        self.started = False

    def destroy(self) -> None:
        if self.destroyed:
            return
        self.destroyed = True
        self.started = False
        try:
            self._backend.remove_job(self.job_id)
        except JobLookupError:
            logger.debug(f"Trigger {self.job_id} already removed")


@dataclass(eq=False)
class CronJob:
    """Un cron-job en mémoire: au plus une paire timers/trigger vivante par id."""
    id: str
    name: str
    type: ScheduleType
    start_date: datetime
    end_date: Optional[datetime] = None
    cron_expression: Optional[str] = None
    trigger: Optional[RecurringTrigger] = None
    start_timer: Optional[Timer] = None
    stop_timer: Optional[Timer] = None
    state: JobState = JobState.PENDING_START

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "cron_expression": self.cron_expression,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "state": self.state.value,
        }


@dataclass
class SchedulePayload:
    id: str
    name: str
    type: str
    start_date: datetime
    end_date: Optional[datetime] = None
    # Référence temporelle du calcul des délais (injectable pour des tests déterministes)
    now: Optional[datetime] = None
    task_fn: Optional[TaskFn] = field(default=None, repr=False)


class Scheduler:
    """
    Owns every timer and recurring trigger of the process.

    Construct once at startup and inject it where needed; ``task_fn`` is the
    default callback fired with the job id (normally
    ``Delegator.delegate_scheduled_job``).
    """

    def __init__(self, task_fn: Optional[TaskFn] = None, backend=None, timezone=None):
        tz = timezone or settings.SCHEDULER_TIMEZONE
        self._tz = ZoneInfo(tz) if isinstance(tz, str) else tz
        self._backend = backend if backend is not None else BackgroundScheduler(timezone=self._tz)
        self._default_task_fn = task_fn
        self._cron_jobs: Dict[str, CronJob] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Backend lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if not self._backend.running:
            self._backend.start()
            logger.info("⏳ Scheduler started")

    def shutdown(self, wait: bool = False) -> None:
        if self._backend.running:
            self._backend.shutdown(wait=wait)
            logger.info("Scheduler shutdown.")

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def schedule(self, payload: SchedulePayload) -> CronJob:
        """
        Schedules a new cron-job or replaces an existing one with the same id.

        The previous trigger is destroyed and its timers cleared before the
        replacement is created, so an id never owns two live timer/trigger pairs.
        """
        task_fn = payload.task_fn or self._default_task_fn
        if task_fn is None:
            raise ValueError("No task function given for the scheduled job")

        schedule_type = ScheduleType(payload.type)
        is_once = schedule_type == ScheduleType.ONCE
        start_date = self._localize(payload.start_date)
        end_date = self._localize(payload.end_date) if payload.end_date else None
        now = self._localize(payload.now) if payload.now else datetime.now(self._tz)

        with self._lock:
            existing = self._cron_jobs.pop(payload.id, None)
            if existing is not None:
                self._teardown(existing)
                logger.info(f"Replacing cron-job with id '{payload.id}'")

            cron_job = CronJob(
                id=payload.id,
                name=payload.name,
                type=schedule_type,
                start_date=start_date,
                end_date=end_date,
            )

            if not is_once:
                fields = build_cron_fields(schedule_type, start_date)
                cron_job.cron_expression = fields.expression
                cron_job.trigger = RecurringTrigger(
                    self._backend,
                    f"{payload.id}:trigger",
                    fields,
                    partial(self._on_trigger, cron_job, task_fn),
                    self._tz,
                )

            # Délai mesuré par rapport à `now`, rejoué sur l'horloge réelle
            wall_now = datetime.now(self._tz)
            cron_job.start_timer = Timer(
                self._backend,
                f"{payload.id}:start",
                wall_now + (start_date - now),
                partial(self._on_start, cron_job, task_fn),
            )

            if end_date and not is_once:
                cron_job.stop_timer = Timer(
                    self._backend,
                    f"{payload.id}:stop",
                    wall_now + (end_date - now),
                    partial(self._on_stop, cron_job),
                )

            self._cron_jobs[payload.id] = cron_job

        if is_once:
            logger.info(f"Scheduled once job to execute at {start_date.isoformat()}: {payload.name}")
        else:
            logger.info(
                f"Scheduled cron-job to start at {start_date.isoformat()}: {payload.name} "
                f"with expression: {cron_job.cron_expression}"
            )
            if end_date:
                logger.info(f"Scheduled cron-job to stop at {end_date.isoformat()}: {payload.name}")

        return cron_job

    def delete(self, job_id: str) -> None:
        """
        Clears both timers, destroys the trigger and forgets the job.

        Raises:
            JobNotFoundError: if the job is not in memory
        """
        with self._lock:
            cron_job = self._cron_jobs.pop(job_id, None)
            if cron_job is None:
                raise JobNotFoundError(job_id)
            self._teardown(cron_job)

        logger.info(f"Deleted cron-job with id '{job_id}'")

    def stop(self, job_id: str) -> None:
        """
        Clears both timers and pauses the trigger, keeping the job in memory.
        A later schedule() with the same id resumes it.

        Raises:
            JobNotFoundError: if the job is not in memory
        """
        with self._lock:
            cron_job = self._cron_jobs.get(job_id)
            if cron_job is None:
                raise JobNotFoundError(job_id)

            self._clear_timers(cron_job)
            if cron_job.trigger:
                cron_job.trigger.stop()
            cron_job.state = JobState.STOPPED

        logger.info(f"Stopped cron-job with id '{job_id}'")

    def stop_all(self) -> int:
        """Stops every job in memory (shutdown). Returns how many were stopped."""
        stopped = 0
        for cron_job in self.all_jobs:
            try:
                self.stop(cron_job.id)
                stopped += 1
            except JobNotFoundError:
                # Supprimé entre la capture et l'arrêt
                logger.debug(f"Cron-job '{cron_job.id}' vanished before stop")
        return stopped

    # ------------------------------------------------------------------
    # Read-only queries
    # ------------------------------------------------------------------

    @property
    def all_jobs(self) -> Tuple[CronJob, ...]:
        with self._lock:
            return tuple(self._cron_jobs.values())

    def get_next_and_previous_run(self, job_id: str, now: Optional[datetime] = None) -> RunWindow:
        """Never raises: any failure is logged and yields an empty RunWindow."""
        with self._lock:
            cron_job = self._cron_jobs.get(job_id)

        if cron_job is None:
            logger.error(f"Cannot compute runs: cron-job '{job_id}' not found", extra={"job_id": job_id})
            return RunWindow()

        now = self._localize(now) if now else datetime.now(self._tz)

        if cron_job.cron_expression is None:
            # Job 'once': une seule exécution, à start_date
            upcoming = cron_job.start_date if cron_job.start_date > now else None
            return RunWindow(next_run=upcoming)

        try:
            return compute_run_window(cron_job.cron_expression, cron_job.start_date, cron_job.end_date, now)
        except ValueError as e:
            logger.error(
                f"Cannot compute runs for cron-job '{job_id}': {e}",
                extra={"job_id": job_id, "cron_expression": cron_job.cron_expression},
            )
            return RunWindow()

    # ------------------------------------------------------------------
    # Timer / trigger callbacks (threads APScheduler)
    # ------------------------------------------------------------------

    def _on_start(self, cron_job: CronJob, task_fn: TaskFn) -> None:
        with self._lock:
            if self._cron_jobs.get(cron_job.id) is not cron_job:
                return
            cron_job.start_timer = None

            if cron_job.type == ScheduleType.ONCE:
                del self._cron_jobs[cron_job.id]
            else:
                cron_job.trigger.start()
                cron_job.state = JobState.ACTIVE

        if cron_job.type == ScheduleType.ONCE:
            logger.info(f"Executing once job: {cron_job.name} at scheduled time")
        else:
            logger.info(
                f"Started cron-job: {cron_job.name} with expression: {cron_job.cron_expression} "
                f"(type: {cron_job.type.value})"
            )
        self._invoke(cron_job, task_fn)

    def _on_trigger(self, cron_job: CronJob, task_fn: TaskFn) -> None:
        with self._lock:
            if self._cron_jobs.get(cron_job.id) is not cron_job:
                return
        self._invoke(cron_job, task_fn)

    def _on_stop(self, cron_job: CronJob) -> None:
        with self._lock:
            if self._cron_jobs.get(cron_job.id) is not cron_job:
                return
            cron_job.stop_timer = None
            cron_job.trigger.stop()
            cron_job.state = JobState.STOPPED

        logger.info(f"Stopped cron-job with name '{cron_job.name}' and id '{cron_job.id}' (end time reached)")

    def _invoke(self, cron_job: CronJob, task_fn: TaskFn) -> None:
        try:
            task_fn(cron_job.id)
        except Exception:
            logger.exception(f"❌ Task failed for cron-job '{cron_job.id}'", extra={"job_id": cron_job.id})

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _clear_timers(self, cron_job: CronJob) -> None:
        for timer in (cron_job.start_timer, cron_job.stop_timer):
            if timer:
                timer.cancel()
        cron_job.start_timer = None
        cron_job.stop_timer = None

    def _teardown(self, cron_job: CronJob) -> None:
        self._clear_timers(cron_job)
        if cron_job.trigger:
            cron_job.trigger.destroy()

    def _localize(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=self._tz)
        return value.astimezone(self._tz)
