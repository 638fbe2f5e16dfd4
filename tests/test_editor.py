from datetime import datetime, timezone

from app.modules.workshops.editor import (
    calculate_duration,
    calculate_end_time,
    diff_workshop_updates,
    split_lines,
    split_tags,
    validate_edit,
    process_edit,
)


def test_text_splitting():
    assert split_lines("Python\n\n  SQL  \n") == ["Python", "SQL"]
    assert split_tags("data, pandas ,,") == ["data", "pandas"]


def test_duration_and_end_time():
    assert calculate_duration("14:00", "16:30") == 150
    assert calculate_duration("", "16:30") == 0
    assert calculate_end_time("23:30", 60) == "00:30"
    assert calculate_end_time("09:15", 45) == "10:00"


def test_only_changed_fields_are_sent(make_workshop):
    original = make_workshop(prerequisites=["Python"], tags=["data"])

    updates, changes = diff_workshop_updates(
        original,
        {
            "title": "Intro to Pandas",
            "prerequisites": "Python\nSQL\n",
            "tags": "data, pandas",
            "startTime": "14:00",
            "end_time": "16:30",
        },
        ["prerequisites", "tags", "end_time", "tags"],
    )

    assert updates == {
        "prerequisites": ["Python", "SQL"],
        "tags": ["data", "pandas"],
        "endTime": "16:30",
        "duration": 150,
    }
    assert changes == ["prerequisites", "tags", "endTime"]


def test_unchanged_form_yields_no_updates(make_workshop):
    original = make_workshop()

    updates, changes = diff_workshop_updates(original, {"title": original.title, "tags": "data"})

    assert updates == {}
    assert changes == []


def test_validation_messages(make_workshop):
    now = datetime(2024, 1, 10, 12, tzinfo=timezone.utc)
    published = make_workshop()
    draft = make_workshop(status="draft")

    assert validate_edit(published, process_edit(published, {"title": "  "}), now) == "Please enter a workshop title"
    assert validate_edit(published, process_edit(published, {"learningObjectives": ""}), now) == (
        "Please enter at least one learning objective"
    )
    assert validate_edit(draft, process_edit(draft, {"scheduledDate": "2024-01-09"}), now) == (
        "Workshop date and time must be in the future"
    )
    assert validate_edit(published, process_edit(published, {"scheduledDate": "2024-01-09"}), now) is None
    assert validate_edit(draft, process_edit(draft, {"title": "Better title"}), now) is None


def test_duration_kept_when_end_time_is_missing(make_workshop):
    original = make_workshop(endTime="", duration=90)

    updates, _ = diff_workshop_updates(original, {"title": "Pandas in Practice"}, ["title"])

    assert updates == {"title": "Pandas in Practice"}
