from datetime import datetime, timezone

import pytest

from jobharvest.services.scheduling.cron import (
    CronFields,
    RunWindow,
    ScheduleType,
    build_cron_fields,
    compute_run_window,
)

UTC = timezone.utc


# Mercredi 3 janvier 2024, 09:30
START = datetime(2024, 1, 3, 9, 30, tzinfo=UTC)


@pytest.mark.parametrize("schedule_type, expected", [
    ("daily", "30 9 * * *"),
    ("weekly", "30 9 * * 3"),
    ("monthly", "30 9 3 * *"),
    ("yearly", "30 9 3 1 *"),
])
def test_build_cron_fields(schedule_type, expected):
    assert build_cron_fields(schedule_type, START).expression == expected


def test_weekly_sunday_is_zero():
    sunday = datetime(2024, 1, 7, 8, 0, tzinfo=UTC)
    assert build_cron_fields(ScheduleType.WEEKLY, sunday).day_of_week == "0"


def test_once_has_no_cron_fields():
    with pytest.raises(ValueError):
        build_cron_fields("once", START)


def test_unknown_type_rejected():
    with pytest.raises(ValueError):
        build_cron_fields("hourly", START)


def test_weekly_trigger_fires_on_same_weekday():
    trigger = build_cron_fields("weekly", START).to_trigger(UTC)
    after = datetime(2024, 1, 4, 0, 0, tzinfo=UTC)

    next_fire = trigger.get_next_fire_time(None, after)

    assert next_fire == datetime(2024, 1, 10, 9, 30, tzinfo=UTC)
    assert next_fire.weekday() == START.weekday()


def test_trigger_keeps_plain_fields():
    trigger = CronFields("0", "6").to_trigger(UTC)
    next_fire = trigger.get_next_fire_time(None, datetime(2024, 1, 1, 7, 0, tzinfo=UTC))
    assert next_fire == datetime(2024, 1, 2, 6, 0, tzinfo=UTC)


def test_run_window_between_runs():
    now = datetime(2024, 1, 5, 12, 0, tzinfo=UTC)

    window = compute_run_window("30 9 * * *", START, None, now)

    assert window.next_run == datetime(2024, 1, 6, 9, 30, tzinfo=UTC)
    assert window.previous_run == datetime(2024, 1, 5, 9, 30, tzinfo=UTC)


def test_run_window_before_start():
    now = datetime(2023, 12, 1, tzinfo=UTC)

    window = compute_run_window("30 9 * * *", START, None, now)

    # start_date lui-même est la prochaine exécution, rien avant
    assert window.next_run == START
    assert window.previous_run is None


def test_run_window_next_after_end_is_none():
    end = datetime(2024, 1, 5, 10, 0, tzinfo=UTC)
    now = datetime(2024, 1, 5, 12, 0, tzinfo=UTC)

    window = compute_run_window("30 9 * * *", START, end, now)

    assert window.next_run is None
    assert window.previous_run == datetime(2024, 1, 5, 9, 30, tzinfo=UTC)


@pytest.mark.parametrize("end, expected_previous", [
    (datetime(2024, 1, 5, 10, 0, tzinfo=UTC), datetime(2024, 1, 5, 9, 30, tzinfo=UTC)),
    # end_date tombe pile sur une exécution: elle compte
    (datetime(2024, 1, 5, 9, 30, tzinfo=UTC), datetime(2024, 1, 5, 9, 30, tzinfo=UTC)),
    (datetime(2024, 1, 5, 9, 0, tzinfo=UTC), datetime(2024, 1, 4, 9, 30, tzinfo=UTC)),
])
def test_run_window_long_after_end_keeps_last_run_inside_window(end, expected_previous):
    now = datetime(2024, 1, 10, 12, 0, tzinfo=UTC)

    window = compute_run_window("30 9 * * *", START, end, now)

    assert window.next_run is None
    assert window.previous_run == expected_previous


def test_run_window_rejects_inverted_dates():
    with pytest.raises(ValueError):
        compute_run_window("30 9 * * *", START, datetime(2023, 1, 1, tzinfo=UTC), START)


def test_run_window_rejects_bad_expression():
    with pytest.raises(ValueError):
        compute_run_window("not a cron", START, None, START)


def test_run_window_to_dict():
    assert RunWindow().to_dict() == {"next_run": None, "previous_run": None}
    assert RunWindow(next_run=START).to_dict()["next_run"] == START.isoformat()
