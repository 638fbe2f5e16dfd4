"""Clock-dependent and presentational helpers for workshops. No I/O."""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.modules.workshops.models import DisplayStatus, WorkshopStatus
from app.modules.workshops.normalization import parse_timestamp
from app.modules.workshops.schemas import Workshop

logger = logging.getLogger(__name__)


def _workshop_zone(workshop: Workshop) -> timezone | ZoneInfo:
    if workshop.timezone:
        try:
            return ZoneInfo(workshop.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.debug(f"Unknown timezone {workshop.timezone!r} for workshop {workshop.id}, using UTC")
    return timezone.utc


def _scheduled_day(workshop: Workshop) -> Optional[date]:
    if not workshop.scheduled_date:
        return None
    try:
        return date.fromisoformat(workshop.scheduled_date[:10])
    except ValueError:
        return None


def parse_clock(value: str) -> Optional[Tuple[int, int]]:
    """Parse "HH:MM" (or "HH") into (hour, minute)."""
    if not value:
        return None
    parts = value.strip().split(":")
    try:
        hour = int(parts[0])
        minute = int(parts[1]) if len(parts) > 1 and parts[1] else 0
    except ValueError:
        return None
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return hour, minute


def local_instant(workshop: Workshop, clock_value: str) -> Optional[datetime]:
    day = _scheduled_day(workshop)
    clock = parse_clock(clock_value)
    if day is None or clock is None:
        return None
    local = datetime(day.year, day.month, day.day, clock[0], clock[1], tzinfo=_workshop_zone(workshop))
    return local.astimezone(timezone.utc)


def workshop_start(workshop: Workshop) -> Optional[datetime]:
    return local_instant(workshop, workshop.start_time)


def workshop_end(workshop: Workshop) -> Optional[datetime]:
    end = local_instant(workshop, workshop.end_time)
    if end is not None:
        return end
    start = workshop_start(workshop)
    if start is None:
        return None
    return start + timedelta(minutes=workshop.duration)


def has_started(workshop: Workshop, now: datetime) -> bool:
    start = workshop_start(workshop)
    return start is not None and now >= start


def enrollment_deadline_passed(workshop: Workshop, now: datetime) -> bool:
    deadline = parse_timestamp(workshop.enrollment_deadline)
    return deadline is not None and now > deadline


def get_display_status(workshop: Workshop, now: datetime) -> str:
    """Display status from persisted terminal states or the clock. Recompute on every render."""
    if workshop.status == WorkshopStatus.CANCELLED:
        return DisplayStatus.CANCELLED.value
    if workshop.status == WorkshopStatus.COMPLETED:
        return DisplayStatus.COMPLETED.value

    start = workshop_start(workshop)
    end = workshop_end(workshop)
    if start is not None and now < start:
        return DisplayStatus.UPCOMING.value
    if start is not None and end is not None and start <= now <= end:
        return DisplayStatus.IN_PROGRESS.value
    if end is not None and now > end:
        return DisplayStatus.ENDED.value
    return workshop.status.value


def format_workshop_date(workshop: Workshop) -> str:
    """e.g. "Monday, January 15, 2024"."""
    day = _scheduled_day(workshop)
    if day is None:
        return workshop.scheduled_date or "Date TBD"
    return f"{day.strftime('%A')}, {day.strftime('%B')} {day.day}, {day.year}"


def format_clock_time(value: str) -> str:
    """"14:30" (or "14:30:00") -> "2:30 PM"."""
    parts = value.split(":")[:2]
    hour = int(parts[0])
    minutes = parts[1] if len(parts) > 1 and parts[1] else "00"
    suffix = "PM" if hour >= 12 else "AM"
    display_hour = hour - 12 if hour > 12 else (12 if hour == 0 else hour)
    return f"{display_hour}:{minutes} {suffix}"


def format_workshop_time(workshop: Workshop) -> str:
    if not workshop.start_time or not workshop.end_time:
        return "Time TBD"
    try:
        return f"{format_clock_time(workshop.start_time)} - {format_clock_time(workshop.end_time)}"
    except ValueError:
        return f"{workshop.start_time or 'TBD'} - {workshop.end_time or 'TBD'}"


def plan_reminders(workshop: Workshop, now: datetime) -> List[Tuple[str, datetime]]:
    """Reminder instants (24h, 1h, start) that are still in the future."""
    start = workshop_start(workshop)
    if start is None:
        return []
    candidates = [
        ("workshop_reminder_24h", start - timedelta(hours=24)),
        ("workshop_reminder_1h", start - timedelta(hours=1)),
        ("workshop_starting_now", start),
    ]
    return [(kind, moment) for kind, moment in candidates if moment > now]
