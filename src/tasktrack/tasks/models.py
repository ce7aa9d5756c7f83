"""
Task Models for tasktrack

Five work item variants share one base field set and are discriminated by
their ``type`` tag:

- Task: plain unit of work with optional hour tracking
- Subtask: Task that points at a parent task
- Bug: defect report with severity, reproduction steps and environment
- Story: user story with acceptance criteria and story points
- Epic: container of story ids with an optional target date

``TaskVariant`` is the closed union over the five models. Code that needs
variant-specific behaviour looks the tag up in a kind-keyed table instead of
relying on method overrides.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Any, Callable, Dict, Iterable, List, Literal, Mapping, Optional, Type, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from tasktrack.exceptions import ValidationError

TITLE_MIN_LENGTH = 5
TITLE_MAX_LENGTH = 100
DESCRIPTION_MIN_LENGTH = 10
DESCRIPTION_MAX_LENGTH = 1000

UNASSIGNED = "Unassigned"


class TaskStatus(str, Enum):
    """Task lifecycle status"""
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    IN_REVIEW = "IN_REVIEW"
    DONE = "DONE"
    CANCELLED = "CANCELLED"


class TaskPriority(str, Enum):
    """Task priority levels"""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


# Bugs grade severity on the same scale as priority.
BugSeverity = TaskPriority


class TaskKind(str, Enum):
    """Discriminator values of the task variants"""
    TASK = "Task"
    SUBTASK = "Subtask"
    BUG = "Bug"
    STORY = "Story"
    EPIC = "Epic"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_task_id() -> str:
    return f"task_{uuid4().hex}"


def parse_datetime(value: Union[str, date, datetime]) -> datetime:
    """
    Parse an ISO-8601 date or datetime into an aware UTC datetime.

    Date-only strings resolve to midnight UTC. Naive values are taken as UTC.

    Raises:
        ValueError: If the string is empty, not ISO-8601 or out of range in UTC
        TypeError: If the value is not a string, date or datetime
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("Date string is empty")
        if text[-1] in ("Z", "z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    else:
        raise TypeError(f"Cannot parse {type(value).__name__} as a date")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError as e:
        raise ValueError("Date out of range") from e


def _check_text_items(items: List[str], label: str) -> List[str]:
    for index, item in enumerate(items, start=1):
        if not item.strip():
            raise ValueError(f"{label} {index} must be a non-empty string")
    return items


NonNegativeHours = Annotated[float, Field(ge=0, allow_inf_nan=False)]


class BaseTask(BaseModel):
    """
    Fields shared by every task variant.

    Never instantiated directly; use one of the variants or
    ``create_task_instance``.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        validate_assignment=True,
        extra="ignore",
    )

    # Core Identity
    id: str = Field(default_factory=generate_task_id, min_length=1, frozen=True, description="Unique task identifier")
    title: str = Field(..., min_length=TITLE_MIN_LENGTH, max_length=TITLE_MAX_LENGTH, description="Task title")
    description: str = Field(..., min_length=DESCRIPTION_MIN_LENGTH, max_length=DESCRIPTION_MAX_LENGTH, description="Task description")

    # Classification
    status: TaskStatus = Field(default=TaskStatus.TODO, description="Current task status")
    priority: TaskPriority = Field(..., description="Task priority")

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow, frozen=True, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=utcnow, description="Last update timestamp")

    # Ownership and scheduling
    assignee: Optional[str] = Field(None, min_length=1, description="Task assignee")
    deadline: Optional[str] = Field(None, min_length=1, description="ISO date the task is due")

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def coerce_timestamp(cls, v: Any) -> Any:
        if isinstance(v, (str, datetime)):
            return parse_datetime(v)
        return v

    @field_validator("deadline")
    @classmethod
    def validate_deadline_parses(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            try:
                parse_datetime(v)
            except (TypeError, ValueError):
                raise ValueError("Deadline must be a valid date string")
        return v

    @property
    def kind(self) -> TaskKind:
        return TaskKind(self.type)

    # ============================================================================
    # MUTATION
    # ============================================================================

    def touch(self, now: Optional[datetime] = None) -> None:
        """Refresh updated_at, never moving it before created_at"""
        self.updated_at = max(now or utcnow(), self.created_at)

    def set_title(self, title: str) -> None:
        self.title = title
        self.touch()

    def set_description(self, description: str) -> None:
        self.description = description
        self.touch()

    def set_status(self, status: TaskStatus) -> None:
        self.status = status
        self.touch()

    def set_priority(self, priority: TaskPriority) -> None:
        self.priority = priority
        self.touch()

    def set_assignee(self, assignee: Optional[str]) -> None:
        self.assignee = assignee
        self.touch()

    def set_deadline(self, deadline: Optional[str]) -> None:
        self.deadline = deadline
        self.touch()

    def apply_changes(self, changes: Mapping[str, Any], now: Optional[datetime] = None) -> None:
        """
        Assign several fields and touch once.

        All values are validated on a copy first so a bad value leaves the
        task unchanged.
        """
        candidate = self.model_copy(deep=True)
        try:
            for field_name, value in changes.items():
                setattr(candidate, field_name, value)
        except PydanticValidationError as e:
            raise ValidationError(format_validation_errors(e)) from e

        for field_name in changes:
            setattr(self, field_name, getattr(candidate, field_name))
        self.touch(now)

    # ============================================================================
    # QUERIES
    # ============================================================================

    def effective_deadline(self) -> Optional[datetime]:
        """Deadline used for overdue and due-soon checks"""
        if self.deadline:
            return parse_datetime(self.deadline)
        if self.kind is TaskKind.EPIC:
            return self.target_date
        return None

    def task_info(self) -> str:
        """Human-readable multi-line summary of the task"""
        lines = [
            f"{self.kind.value.upper()} DETAILS",
            "━" * 40,
            f"ID: {self.id}",
            f"Title: {self.title}",
            f"Description: {self.description}",
            f"Status: {self.status.value}",
            f"Priority: {self.priority.value}",
            f"Assignee: {self.assignee or UNASSIGNED}",
            f"Created: {_format_date(self.created_at)}",
            f"Updated: {_format_date(self.updated_at)}",
            f"Deadline: {self.deadline or 'No deadline set'}",
        ]
        lines.extend(_DETAIL_RENDERERS[self.kind](self))
        return "\n".join(lines)


class TimeTrackedTask(BaseTask):
    """Base for variants that log estimated and actual hours"""

    estimated_hours: Optional[NonNegativeHours] = None
    actual_hours: Optional[NonNegativeHours] = None

    def set_estimated_hours(self, hours: Optional[float]) -> None:
        self.estimated_hours = hours
        self.touch()

    def set_actual_hours(self, hours: Optional[float]) -> None:
        self.actual_hours = hours
        self.touch()

    def progress_percentage(self) -> Optional[int]:
        if self.estimated_hours and self.actual_hours:
            return round(self.actual_hours / self.estimated_hours * 100)
        return None


class Task(TimeTrackedTask):
    type: Literal["Task"] = Field(default="Task", frozen=True)


class Subtask(TimeTrackedTask):
    type: Literal["Subtask"] = Field(default="Subtask", frozen=True)
    parent_task_id: str = Field(..., min_length=1, description="Id of the parent task")

    def set_parent_task_id(self, parent_task_id: str) -> None:
        self.parent_task_id = parent_task_id
        self.touch()


class Bug(BaseTask):
    type: Literal["Bug"] = Field(default="Bug", frozen=True)
    severity: BugSeverity = Field(..., description="Impact of the defect")
    steps_to_reproduce: List[str] = Field(..., min_length=1, description="Ordered reproduction steps")
    environment: str = Field(..., min_length=1, description="Where the defect occurs")
    fix_hours: Optional[NonNegativeHours] = None

    @field_validator("steps_to_reproduce")
    @classmethod
    def validate_steps(cls, v: List[str]) -> List[str]:
        return _check_text_items(v, "Step")

    def set_severity(self, severity: BugSeverity) -> None:
        self.severity = severity
        self.touch()

    def set_steps_to_reproduce(self, steps: List[str]) -> None:
        self.steps_to_reproduce = steps
        self.touch()

    def set_environment(self, environment: str) -> None:
        self.environment = environment
        self.touch()

    def set_fix_hours(self, hours: Optional[float]) -> None:
        self.fix_hours = hours
        self.touch()


class Story(BaseTask):
    type: Literal["Story"] = Field(default="Story", frozen=True)
    acceptance_criteria: List[str] = Field(..., min_length=1, description="Completion criteria")
    story_points: float = Field(..., ge=0, allow_inf_nan=False, description="Relative effort")
    sprint_id: Optional[str] = Field(None, min_length=1, description="Sprint the story is planned in")

    @field_validator("acceptance_criteria")
    @classmethod
    def validate_criteria(cls, v: List[str]) -> List[str]:
        return _check_text_items(v, "Acceptance criteria")

    def set_acceptance_criteria(self, criteria: List[str]) -> None:
        self.acceptance_criteria = criteria
        self.touch()

    def set_story_points(self, points: float) -> None:
        self.story_points = points
        self.touch()

    def set_sprint_id(self, sprint_id: Optional[str]) -> None:
        self.sprint_id = sprint_id
        self.touch()


class Epic(BaseTask):
    type: Literal["Epic"] = Field(default="Epic", frozen=True)
    stories: List[str] = Field(default_factory=list, description="Story ids, no duplicates")
    target_date: Optional[datetime] = Field(None, description="Deadline fallback")

    @field_validator("stories")
    @classmethod
    def dedupe_stories(cls, v: List[str]) -> List[str]:
        _check_text_items(v, "Story")
        return list(dict.fromkeys(v))

    @field_validator("target_date", mode="before")
    @classmethod
    def coerce_target_date(cls, v: Any) -> Any:
        if isinstance(v, (str, date)):
            return parse_datetime(v)
        return v

    def add_story(self, story_id: str) -> bool:
        """Append a story id; returns False when it was already present"""
        if story_id in self.stories:
            return False
        self.stories = [*self.stories, story_id]
        self.touch()
        return True

    def remove_story(self, story_id: str) -> bool:
        if story_id not in self.stories:
            return False
        self.stories = [s for s in self.stories if s != story_id]
        self.touch()
        return True

    def set_target_date(self, target_date: Optional[Union[str, datetime]]) -> None:
        self.target_date = target_date
        self.touch()


TaskVariant = Annotated[Union[Task, Subtask, Bug, Story, Epic], Field(discriminator="type")]

TASK_MODELS: Dict[TaskKind, Type[BaseTask]] = {
    TaskKind.TASK: Task,
    TaskKind.SUBTASK: Subtask,
    TaskKind.BUG: Bug,
    TaskKind.STORY: Story,
    TaskKind.EPIC: Epic,
}

# Fields a partial update may change beyond the shared base fields.
UPDATABLE_FIELDS: Dict[TaskKind, tuple] = {
    TaskKind.TASK: ("estimated_hours", "actual_hours"),
    TaskKind.SUBTASK: ("estimated_hours", "actual_hours"),
    TaskKind.BUG: ("fix_hours",),
    TaskKind.STORY: ("sprint_id",),
    TaskKind.EPIC: ("target_date",),
}

BASE_UPDATABLE_FIELDS = ("title", "description", "status", "priority", "assignee", "deadline")


def format_validation_errors(error: PydanticValidationError) -> List[str]:
    """Flatten a pydantic error into ``field: message`` strings"""
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        message = item["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        messages.append(f"{location}: {message}" if location else message)
    return messages


def create_task_instance(payload: Mapping[str, Any]) -> BaseTask:
    """
    Build the variant named by ``payload["type"]``.

    Required fields and constraints are checked again by the model, so
    payloads that skipped the validator (e.g. records read from storage)
    are still rejected when malformed.

    Raises:
        ValidationError: Unknown type or any field constraint failure
    """
    raw_type = payload.get("type")
    try:
        kind = TaskKind(raw_type)
    except (TypeError, ValueError):
        raise ValidationError([f"Invalid task type: {raw_type}"])

    data = dict(payload)
    data["type"] = kind.value
    try:
        task = TASK_MODELS[kind].model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(format_validation_errors(e)) from e

    if task.updated_at < task.created_at:
        raise ValidationError(["updatedAt cannot be earlier than createdAt"])
    return task


# ============================================================================
# SUMMARY RENDERING
# ============================================================================


def _format_date(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d") if value else ""


def _format_hours(value: Optional[float], missing: str) -> str:
    if value is None:
        return missing
    return f"{value:g}"


def _numbered(items: Iterable[str], empty: str) -> List[str]:
    lines = [f"  {index}. {item}" for index, item in enumerate(items, start=1)]
    return lines or [f"  {empty}"]


def _time_tracked_details(task: TimeTrackedTask) -> List[str]:
    progress = task.progress_percentage()
    return [
        f"Estimated Hours: {_format_hours(task.estimated_hours, 'Not estimated')}",
        f"Actual Hours: {_format_hours(task.actual_hours, 'Not logged')}",
        f"Progress: {f'{progress}%' if progress is not None else 'N/A'}",
    ]


def _subtask_details(task: Subtask) -> List[str]:
    return [f"Parent Task: {task.parent_task_id}"] + _time_tracked_details(task)


def _bug_details(task: Bug) -> List[str]:
    return [
        f"Severity: {task.severity.value}",
        f"Environment: {task.environment}",
        f"Fix Hours: {_format_hours(task.fix_hours, 'Not estimated')}",
        "",
        "Steps to Reproduce:",
        *_numbered(task.steps_to_reproduce, "No steps recorded"),
    ]


def _story_details(task: Story) -> List[str]:
    return [
        f"Story Points: {task.story_points:g}",
        f"Sprint: {task.sprint_id or 'No sprint assigned'}",
        "",
        "Acceptance Criteria:",
        *_numbered(task.acceptance_criteria, "No criteria recorded"),
    ]


def _epic_details(task: Epic) -> List[str]:
    target = _format_date(task.target_date) if task.target_date else "No target date set"
    return [
        f"Target Date: {target}",
        f"Stories Count: {len(task.stories)}",
        "",
        "Associated Stories:",
        *_numbered(task.stories, "No stories assigned yet"),
    ]


_DETAIL_RENDERERS: Dict[TaskKind, Callable[[Any], List[str]]] = {
    TaskKind.TASK: _time_tracked_details,
    TaskKind.SUBTASK: _subtask_details,
    TaskKind.BUG: _bug_details,
    TaskKind.STORY: _story_details,
    TaskKind.EPIC: _epic_details,
}
