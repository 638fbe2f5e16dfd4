from datetime import datetime, timezone

import pytest

from app.modules.workshops.display import (
    enrollment_deadline_passed,
    format_clock_time,
    format_workshop_date,
    format_workshop_time,
    get_display_status,
    plan_reminders,
    workshop_end,
    workshop_start,
)


def at(day, hour, minute=0):
    return datetime(2024, 1, day, hour, minute, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "moment, expected",
    [
        (at(10, 12), "Upcoming"),
        (at(15, 14), "In Progress"),
        (at(15, 15, 30), "In Progress"),
        (at(15, 16), "In Progress"),
        (at(15, 16, 1), "Ended"),
    ],
)
def test_display_status_follows_the_clock(make_workshop, moment, expected):
    assert get_display_status(make_workshop(), moment) == expected


def test_terminal_states_win_over_the_clock(make_workshop):
    assert get_display_status(make_workshop(status="cancelled"), at(10, 12)) == "Cancelled"
    assert get_display_status(make_workshop(status="completed"), at(10, 12)) == "Completed"


def test_unscheduled_workshop_falls_back_to_persisted_status(make_workshop):
    workshop = make_workshop(scheduledDate="", status="draft")

    assert get_display_status(workshop, at(10, 12)) == "draft"


def test_start_uses_workshop_timezone(make_workshop):
    workshop = make_workshop(timezone="America/New_York")

    assert workshop_start(workshop) == at(15, 19)
    assert get_display_status(workshop, at(15, 18)) == "Upcoming"


def test_unknown_timezone_means_utc(make_workshop):
    assert workshop_start(make_workshop(timezone="Mars/Olympus")) == at(15, 14)


def test_end_falls_back_to_duration(make_workshop):
    workshop = make_workshop(endTime="", duration=90)

    assert workshop_end(workshop) == at(15, 15, 30)
    assert get_display_status(workshop, at(15, 15, 31)) == "Ended"


def test_enrollment_deadline(make_workshop):
    workshop = make_workshop(enrollmentDeadline="2024-01-12")

    assert enrollment_deadline_passed(workshop, at(11, 23)) is False
    assert enrollment_deadline_passed(workshop, at(12, 0, 1)) is True
    assert enrollment_deadline_passed(make_workshop(), at(20, 0)) is False


def test_date_and_time_formatting(make_workshop):
    workshop = make_workshop(startTime="14:00", endTime="16:30")

    assert format_workshop_date(workshop) == "Monday, January 15, 2024"
    assert format_workshop_time(workshop) == "2:00 PM - 4:30 PM"
    assert format_workshop_time(make_workshop(endTime="")) == "Time TBD"
    assert format_workshop_date(make_workshop(scheduledDate="")) == "Date TBD"


@pytest.mark.parametrize(
    "value, expected",
    [("00:15", "12:15 AM"), ("09:05", "9:05 AM"), ("12:00", "12:00 PM"), ("23:59", "11:59 PM"), ("9", "9:00 AM")],
)
def test_clock_time_formatting(value, expected):
    assert format_clock_time(value) == expected


def test_reminders_only_in_the_future(make_workshop):
    workshop = make_workshop()

    assert [kind for kind, _ in plan_reminders(workshop, at(10, 12))] == [
        "workshop_reminder_24h",
        "workshop_reminder_1h",
        "workshop_starting_now",
    ]
    assert plan_reminders(workshop, at(15, 13, 30)) == [("workshop_starting_now", at(15, 14))]
    assert plan_reminders(workshop, at(15, 15)) == []


def test_seconds_are_dropped_from_clock_times(make_workshop):
    workshop = make_workshop(startTime="14:30:00", endTime="16:00:00")

    assert format_clock_time("14:30:00") == "2:30 PM"
    assert format_workshop_time(workshop) == "2:30 PM - 4:00 PM"
