"""Edit-form processing: text fields to lists, duration, and the changed-field diff sent on update."""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic.alias_generators import to_camel

from app.modules.workshops.display import local_instant, parse_clock
from app.modules.workshops.models import WorkshopStatus
from app.modules.workshops.schemas import Workshop

LINE_LIST_FIELDS = ("prerequisites", "learningObjectives", "requirements", "requiredTools")


def split_lines(text: str) -> List[str]:
    return [item.strip() for item in text.split("\n") if item.strip()]


def split_tags(text: str) -> List[str]:
    return [tag.strip() for tag in text.split(",") if tag.strip()]


def calculate_duration(start_time: str, end_time: str) -> int:
    """Minutes between two "HH:MM" clock times on the same day; 0 when either is missing."""
    start = parse_clock(start_time)
    end = parse_clock(end_time)
    if start is None or end is None:
        return 0
    return (end[0] * 60 + end[1]) - (start[0] * 60 + start[1])


def calculate_end_time(start_time: str, duration: int) -> str:
    start = parse_clock(start_time)
    if start is None:
        return ""
    total = (start[0] * 60 + start[1] + duration) % (24 * 60)
    return f"{total // 60:02d}:{total % 60:02d}"


def _field_name(name: str) -> str:
    # Form values may arrive as snake_case attribute names or camelCase aliases
    return to_camel(name) if "_" in name else name


def _camel_keys(values: Dict[str, Any]) -> Dict[str, Any]:
    return {_field_name(key): value for key, value in values.items()}


def _encoded(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def process_edit(original: Workshop, edited: Dict[str, Any]) -> Dict[str, Any]:
    """Turn submitted form values into workshop field values."""
    processed = _camel_keys(edited)
    for field in LINE_LIST_FIELDS:
        if isinstance(processed.get(field), str):
            processed[field] = split_lines(processed[field])
    if isinstance(processed.get("tags"), str):
        processed["tags"] = split_tags(processed["tags"])
    start_time = processed.get("startTime", original.start_time)
    end_time = processed.get("endTime", original.end_time)
    if parse_clock(start_time) is not None and parse_clock(end_time) is not None:
        processed["duration"] = calculate_duration(start_time, end_time)
    return processed


def validate_edit(original: Workshop, processed: Dict[str, Any], now: datetime) -> Optional[str]:
    """First problem with the submitted values, or None."""
    if not str(processed.get("title", original.title)).strip():
        return "Please enter a workshop title"
    if not str(processed.get("description", original.description)).strip():
        return "Please enter a workshop description"
    if not processed.get("learningObjectives", original.learning_objectives):
        return "Please enter at least one learning objective"
    if not processed.get("scheduledDate", original.scheduled_date):
        return "Please select a workshop date"
    if original.status == WorkshopStatus.DRAFT:
        candidate = original.model_copy(
            update={
                "scheduled_date": processed.get("scheduledDate", original.scheduled_date),
                "start_time": processed.get("startTime", original.start_time),
            }
        )
        start = local_instant(candidate, candidate.start_time)
        if start is None or start <= now:
            return "Workshop date and time must be in the future"
    return None


def diff_workshop_updates(
    original: Workshop, edited: Dict[str, Any], touched: Optional[List[str]] = None
) -> Tuple[Dict[str, Any], List[str]]:
    """Fields whose JSON encoding differs from ``original``, plus the touched field names.

    The touched names become the change labels of the update notification.
    The diff is against the caller's copy of the workshop; a concurrent edit
    made by someone else is not detected.
    """
    processed = process_edit(original, edited)
    current = original.model_dump(by_alias=True, mode="json")
    updates = {
        key: value
        for key, value in processed.items()
        if _encoded(value) != _encoded(current.get(key))
    }
    return updates, list(dict.fromkeys(_field_name(name) for name in (touched or [])))
