"""
Cron helpers — fonctions pures, indépendantes du scheduler.

- build_cron_fields: {type, date} -> champs cron (minute heure jour mois jour_semaine)
- compute_run_window: prochaine / précédente exécution bornées par [start, end]
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional

from apscheduler.triggers.cron import CronTrigger
from croniter import croniter

# Crontab: 0 = dimanche
_WEEKDAY_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


class ScheduleType(str, Enum):
    """Types de récurrence supportés."""
    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


@dataclass(frozen=True)
class CronFields:
    """Champs d'une expression cron standard à 5 positions."""
    minute: str
    hour: str
    day: str = "*"
    month: str = "*"
    day_of_week: str = "*"

    @property
    def expression(self) -> str:
        return f"{self.minute} {self.hour} {self.day} {self.month} {self.day_of_week}"

    def to_trigger(self, timezone) -> CronTrigger:
        """
        Build the APScheduler trigger for these fields.

        APScheduler numbers weekdays from Monday, crontab from Sunday, so the
        weekday is passed by name.
        """
        day_of_week = self.day_of_week
        if day_of_week != "*":
            day_of_week = _WEEKDAY_NAMES[int(day_of_week) % 7]

        return CronTrigger(
            minute=self.minute,
            hour=self.hour,
            day=self.day,
            month=self.month,
            day_of_week=day_of_week,
            timezone=timezone,
        )


def build_cron_fields(schedule_type, start_date: datetime) -> CronFields:
    """
    Formats the cron fields for a recurring job from its start date.

    Args:
        schedule_type: daily, weekly, monthly or yearly
        start_date: Date providing time-of-day / weekday / day-of-month / month

    Returns:
        CronFields ("minute hour day-of-month month day-of-week")

    Raises:
        ValueError: for 'once' (no recurrence) or an unknown type
    """
    schedule_type = ScheduleType(schedule_type)
    minute = str(start_date.minute)
    hour = str(start_date.hour)

    if schedule_type == ScheduleType.DAILY:
        return CronFields(minute, hour)

    if schedule_type == ScheduleType.WEEKLY:
        # datetime.weekday(): lundi = 0 ; crontab: dimanche = 0
        return CronFields(minute, hour, day_of_week=str((start_date.weekday() + 1) % 7))

    if schedule_type == ScheduleType.MONTHLY:
        return CronFields(minute, hour, day=str(start_date.day))

    if schedule_type == ScheduleType.YEARLY:
        # Date calendaire précise, pas de règle sur le jour de semaine
        return CronFields(minute, hour, day=str(start_date.day), month=str(start_date.month))

    raise ValueError(f"'{schedule_type.value}' jobs have no cron expression")


@dataclass(frozen=True)
class RunWindow:
    """Prochaine et précédente exécution d'un job (None si inconnue)."""
    next_run: Optional[datetime] = None
    previous_run: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "next_run": self.next_run.isoformat() if self.next_run else None,
            "previous_run": self.previous_run.isoformat() if self.previous_run else None,
        }


def compute_run_window(
    expression: str,
    start_date: datetime,
    end_date: Optional[datetime],
    now: datetime,
) -> RunWindow:
    """
    Derives next / previous fire times bounded by [max(now, start_date), end_date].

    A side falling outside the bounds is None.

    Raises:
        ValueError: unparsable expression or start_date after end_date
    """
    if end_date is not None and start_date > end_date:
        raise ValueError(f"start_date {start_date.isoformat()} is after end_date {end_date.isoformat()}")

    if not croniter.is_valid(expression):
        raise ValueError(f"Invalid cron expression: {expression!r}")

    current = max(now, start_date)

    # croniter.get_next() est strict : on recule d'une seconde pour inclure start_date
    next_base = current - timedelta(seconds=1) if current == start_date else current
    next_run = croniter(expression, next_base).get_next(datetime)
    if end_date is not None and next_run > end_date:
        next_run = None

    # Après end_date, la dernière exécution possible est au plus end_date (inclus)
    prev_base = current
    if end_date is not None and current > end_date:
        prev_base = min(current, end_date + timedelta(seconds=1))
    previous_run = croniter(expression, prev_base).get_prev(datetime)
    if previous_run < start_date:
        previous_run = None

    return RunWindow(next_run=next_run, previous_run=previous_run)
