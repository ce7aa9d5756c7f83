"""
Payload validation for task create and update requests.

All checks are pure: they read the payload, append human-readable messages to
an error list and never raise for bad input. Callers decide whether a failed
``ValidationResult`` becomes an error condition.

Payload keys may be snake_case or camelCase; ``normalize_payload`` maps them
to snake_case before any rule runs.
"""

import math
from enum import Enum
from typing import Any, Dict, List, Mapping, Type

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_snake

from tasktrack.tasks.models import (
    DESCRIPTION_MAX_LENGTH,
    DESCRIPTION_MIN_LENGTH,
    TITLE_MAX_LENGTH,
    TITLE_MIN_LENGTH,
    BugSeverity,
    TaskKind,
    TaskPriority,
    TaskStatus,
    parse_datetime,
)

_MISSING = object()

NUMERIC_FIELDS = (
    ("estimated_hours", "Estimated hours"),
    ("actual_hours", "Actual hours"),
    ("fix_hours", "Fix hours"),
)


class ValidationResult(BaseModel):
    """Outcome of a payload check"""

    success: bool = Field(..., description="True when no rule failed")
    errors: List[str] = Field(default_factory=list, description="Messages of every failed rule")


def normalize_payload(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``data`` with camelCase keys mapped to snake_case"""
    return {to_snake(key) if isinstance(key, str) else key: value for key, value in data.items()}


def _choices(enum_cls: Type[Enum]) -> str:
    return ", ".join(member.value for member in enum_cls)


def is_enum_value(value: Any, enum_cls: Type[Enum]) -> bool:
    """True when ``value`` is a member of ``enum_cls`` or one of its values"""
    if isinstance(value, enum_cls):
        return True
    if not isinstance(value, str):
        return False
    return any(member.value == value for member in enum_cls)


# ============================================================================
# FIELD RULES
# ============================================================================


def _validate_text(
    value: Any,
    label: str,
    min_length: int,
    max_length: int,
    required: bool,
    errors: List[str],
) -> None:
    if value is _MISSING:
        if required:
            errors.append(f"{label} is required and must be a string")
        return

    if not isinstance(value, str):
        if required:
            errors.append(f"{label} is required and must be a string")
        else:
            errors.append(f"{label} must be a string")
        return

    trimmed = value.strip()
    if not value and required:
        errors.append(f"{label} is required and must be a string")
    elif not trimmed:
        errors.append(f"{label} cannot be empty")
    elif len(trimmed) < min_length:
        errors.append(f"{label} must be at least {min_length} characters long")
    elif len(trimmed) > max_length:
        errors.append(f"{label} must be no more than {max_length} characters long")


def validate_title(value: Any, required: bool, errors: List[str]) -> None:
    _validate_text(value, "Title", TITLE_MIN_LENGTH, TITLE_MAX_LENGTH, required, errors)


def validate_description(value: Any, required: bool, errors: List[str]) -> None:
    _validate_text(
        value, "Description", DESCRIPTION_MIN_LENGTH, DESCRIPTION_MAX_LENGTH, required, errors
    )


def validate_priority(value: Any, required: bool, errors: List[str]) -> None:
    if value is _MISSING and not required:
        return
    if not is_enum_value(value, TaskPriority):
        errors.append(f"Priority must be one of: {_choices(TaskPriority)}")


def validate_status(value: Any, errors: List[str]) -> None:
    if value is _MISSING:
        return
    if not is_enum_value(value, TaskStatus):
        errors.append(f"Status must be one of: {_choices(TaskStatus)}")


def validate_task_type(value: Any, errors: List[str]) -> None:
    if not is_enum_value(value, TaskKind):
        errors.append(f"Type must be one of: {_choices(TaskKind)}")


def validate_assignee(value: Any, errors: List[str]) -> None:
    if value is _MISSING or value is None:
        return
    if not isinstance(value, str):
        errors.append("Assignee must be a string")
    elif not value.strip():
        errors.append("Assignee cannot be an empty string")


def _validate_date_string(value: Any, label: str, errors: List[str]) -> None:
    if not isinstance(value, str):
        errors.append(f"{label} must be a string")
        return
    if not value.strip():
        errors.append(f"{label} cannot be an empty string")
        return
    try:
        parse_datetime(value)
    except ValueError:
        errors.append(f"{label} must be a valid date string")


def validate_deadline(value: Any, errors: List[str]) -> None:
    if value is _MISSING or value is None:
        return
    _validate_date_string(value, "Deadline", errors)


def validate_target_date(value: Any, errors: List[str]) -> None:
    if value is _MISSING or value is None:
        return
    if hasattr(value, "isoformat"):
        return
    _validate_date_string(value, "Target date", errors)


def _is_finite(value: float) -> bool:
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def validate_numeric_field(value: Any, label: str, errors: List[str]) -> None:
    if value is _MISSING or value is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        errors.append(f"{label} must be a number")
    elif value < 0:
        errors.append(f"{label} cannot be negative")
    elif not _is_finite(value):
        errors.append(f"{label} must be a finite number")


def _validate_text_list(value: Any, required_message: str, empty_message: str, item_label: str, errors: List[str]) -> None:
    if not isinstance(value, (list, tuple)):
        errors.append(required_message)
    elif len(value) == 0:
        errors.append(empty_message)
    else:
        for index, item in enumerate(value, start=1):
            if not isinstance(item, str) or not item.strip():
                errors.append(f"{item_label} {index} must be a non-empty string")


def _validate_shared_fields(data: Mapping[str, Any], required: bool, errors: List[str]) -> None:
    validate_title(data.get("title", _MISSING), required, errors)
    validate_description(data.get("description", _MISSING), required, errors)
    validate_priority(data.get("priority", _MISSING), required, errors)
    validate_assignee(data.get("assignee", _MISSING), errors)
    validate_deadline(data.get("deadline", _MISSING), errors)
    for field_name, label in NUMERIC_FIELDS:
        validate_numeric_field(data.get(field_name, _MISSING), label, errors)


# ============================================================================
# TYPE-SPECIFIC RULES
# ============================================================================


def _validate_subtask(data: Mapping[str, Any], errors: List[str]) -> None:
    parent_task_id = data.get("parent_task_id")
    if not parent_task_id or not isinstance(parent_task_id, str):
        errors.append("Parent task ID is required for subtasks")
    elif not parent_task_id.strip():
        errors.append("Parent task ID cannot be empty")


def _validate_bug(data: Mapping[str, Any], errors: List[str]) -> None:
    if not is_enum_value(data.get("severity"), BugSeverity):
        errors.append(
            f"Severity is required for bugs and must be one of: {_choices(BugSeverity)}"
        )

    _validate_text_list(
        data.get("steps_to_reproduce"),
        "Steps to reproduce is required for bugs and must be a list",
        "Steps to reproduce cannot be empty for bugs",
        "Step",
        errors,
    )

    environment = data.get("environment")
    if not environment or not isinstance(environment, str):
        errors.append("Environment is required for bugs and must be a string")
    elif not environment.strip():
        errors.append("Environment cannot be empty for bugs")


def _validate_story(data: Mapping[str, Any], errors: List[str]) -> None:
    _validate_text_list(
        data.get("acceptance_criteria"),
        "Acceptance criteria is required for stories and must be a list",
        "Acceptance criteria cannot be empty for stories",
        "Acceptance criteria",
        errors,
    )

    # Type and sign of story points are covered by the shared numeric rules.
    if data.get("story_points") is None:
        errors.append("Story points is required for stories")

    if "sprint_id" in data and data["sprint_id"] is not None:
        if not isinstance(data["sprint_id"], str) or not data["sprint_id"].strip():
            errors.append("Sprint ID must be a non-empty string")


def _validate_epic(data: Mapping[str, Any], errors: List[str]) -> None:
    stories = data.get("stories")
    if stories is not None:
        if not isinstance(stories, (list, tuple)):
            errors.append("Stories must be a list")
        else:
            for index, story in enumerate(stories, start=1):
                if not isinstance(story, str) or not story.strip():
                    errors.append(f"Story {index} must be a non-empty string")
    validate_target_date(data.get("target_date", _MISSING), errors)


def validate_type_specific_fields(data: Mapping[str, Any], errors: List[str]) -> None:
    kind = data.get("type")
    if not is_enum_value(kind, TaskKind):
        return
    kind = TaskKind(kind)

    if kind is TaskKind.SUBTASK:
        _validate_subtask(data, errors)
    elif kind is TaskKind.BUG:
        _validate_bug(data, errors)
    elif kind is TaskKind.STORY:
        _validate_story(data, errors)
    elif kind is TaskKind.EPIC:
        _validate_epic(data, errors)


# ============================================================================
# ENTRY POINTS
# ============================================================================


def validate_create(data: Mapping[str, Any]) -> ValidationResult:
    """Check a payload for creating a task of any variant"""
    data = normalize_payload(data)
    errors: List[str] = []

    task_id = data.get("id")
    if task_id is not None and (not isinstance(task_id, str) or not task_id.strip()):
        errors.append("Task ID must be a non-empty string")

    _validate_shared_fields(data, required=True, errors=errors)
    validate_numeric_field(data.get("story_points", _MISSING), "Story points", errors)
    validate_task_type(data.get("type"), errors)
    validate_type_specific_fields(data, errors)

    return ValidationResult(success=not errors, errors=errors)


def validate_update(data: Mapping[str, Any]) -> ValidationResult:
    """Check a partial update payload"""
    data = normalize_payload(data)
    errors: List[str] = []

    if "id" in data:
        errors.append("Task ID cannot be changed")
    if "type" in data:
        errors.append("Task type cannot be changed")

    _validate_shared_fields(data, required=False, errors=errors)
    validate_status(data.get("status", _MISSING), errors)

    sprint_id = data.get("sprint_id")
    if sprint_id is not None and (not isinstance(sprint_id, str) or not sprint_id.strip()):
        errors.append("Sprint ID must be a non-empty string")
    validate_target_date(data.get("target_date", _MISSING), errors)

    return ValidationResult(success=not errors, errors=errors)
