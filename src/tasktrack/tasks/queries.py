"""
Task Query Engine - Filtering, Deadlines and Statistics

Read-only views over a ``TaskRepository``:

- Conjunctive filtering on status, priority, assignee, type, creation range
  and effective deadline range
- Case-insensitive text search over title and description
- Deadline status of a single task
- Overdue and due-soon listings
- Aggregate counts by status, priority, type and assignee

"Now" comes from an injectable clock so deadline math can be tested against a
fixed instant.
"""

import math
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from tasktrack.tasks.models import (
    UNASSIGNED,
    BaseTask,
    TaskKind,
    TaskPriority,
    TaskStatus,
    parse_datetime,
    utcnow,
)
from tasktrack.tasks.repository import TaskRepository

SECONDS_PER_DAY = 24 * 60 * 60
DEFAULT_DUE_SOON_DAYS = 7


class TaskFilters(BaseModel):
    """Filter criteria; every field that is set must match"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assignee: Optional[str] = None
    type: Optional[TaskKind] = None
    created_after: Optional[datetime] = None
    created_before: Optional[datetime] = None
    deadline_after: Optional[datetime] = None
    deadline_before: Optional[datetime] = None

    @field_validator("created_after", "created_before", "deadline_after", "deadline_before", mode="before")
    @classmethod
    def coerce_bound(cls, v: Any) -> Any:
        if v is None or v == "":
            return None
        try:
            return parse_datetime(v)
        except TypeError as e:
            raise ValueError(str(e)) from e


class DeadlineStatus(BaseModel):
    """Deadline evaluation of one task at a given instant"""

    task: Any = Field(..., description="Evaluated task")
    deadline: Optional[datetime] = Field(None, description="Effective deadline")
    days_until_deadline: Optional[int] = Field(None, description="Whole days left, negative when late")
    is_overdue: bool = Field(default=False, description="Deadline has passed")
    is_completed_on_time: Optional[bool] = Field(None, description="DONE and not overdue")


class TaskStatistics(BaseModel):
    total: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    by_priority: Dict[str, int] = Field(default_factory=dict)
    by_type: Dict[str, int] = Field(default_factory=dict)


class EnhancedTaskStatistics(TaskStatistics):
    by_assignee: Dict[str, int] = Field(default_factory=dict)
    overdue: int = 0
    due_soon: int = 0


class TaskQueryEngine:
    """
    Read-only query and aggregation over a task repository
    """

    def __init__(
        self,
        repository: TaskRepository,
        clock: Optional[Callable[[], datetime]] = None,
        due_soon_days: int = DEFAULT_DUE_SOON_DAYS,
    ):
        self.repository = repository
        self._clock = clock or utcnow
        self.due_soon_days = due_soon_days

    def now(self) -> datetime:
        return self._clock()

    # ============================================================================
    # FILTERING AND SEARCH
    # ============================================================================

    def filter(self, criteria: Union[TaskFilters, Mapping[str, Any], None] = None) -> List[BaseTask]:
        """Tasks matching every criterion that is set"""
        if criteria is None:
            criteria = TaskFilters()
        elif not isinstance(criteria, TaskFilters):
            criteria = TaskFilters.model_validate(dict(criteria))

        return [task for task in self.repository.get_all() if self._matches(task, criteria)]

    def search(self, query: str) -> List[BaseTask]:
        """Case-insensitive substring match on title or description"""
        needle = query.lower()
        return [
            task for task in self.repository.get_all()
            if needle in task.title.lower() or needle in task.description.lower()
        ]

    @staticmethod
    def _matches(task: BaseTask, criteria: TaskFilters) -> bool:
        if criteria.status is not None and task.status != criteria.status:
            return False
        if criteria.priority is not None and task.priority != criteria.priority:
            return False
        if criteria.assignee is not None and task.assignee != criteria.assignee:
            return False
        if criteria.type is not None and task.kind is not criteria.type:
            return False
        if criteria.created_after is not None and task.created_at < criteria.created_after:
            return False
        if criteria.created_before is not None and task.created_at > criteria.created_before:
            return False

        if criteria.deadline_after is not None or criteria.deadline_before is not None:
            deadline = task.effective_deadline()
            if deadline is None:
                return False
            if criteria.deadline_after is not None and deadline < criteria.deadline_after:
                return False
            if criteria.deadline_before is not None and deadline > criteria.deadline_before:
                return False

        return True

    # ============================================================================
    # DEADLINES
    # ============================================================================

    def check_deadline(self, task_id: str) -> DeadlineStatus:
        """
        Evaluate a task's effective deadline against now.

        Raises:
            TaskNotFoundError: No task with this id
        """
        task = self.repository.require(task_id)
        deadline = task.effective_deadline()
        if deadline is None:
            return DeadlineStatus(task=task)

        now = self.now()
        days_until = math.ceil((deadline - now).total_seconds() / SECONDS_PER_DAY)
        is_overdue = now > deadline

        return DeadlineStatus(
            task=task,
            deadline=deadline,
            days_until_deadline=days_until,
            is_overdue=is_overdue,
            is_completed_on_time=task.status == TaskStatus.DONE and not is_overdue,
        )

    def get_overdue(self) -> List[BaseTask]:
        """Open tasks whose effective deadline has passed"""
        now = self.now()
        return [
            task for task in self.repository.get_all()
            if task.status != TaskStatus.DONE
            and _deadline_before(task, now)
        ]

    def get_due_soon(self, days: Optional[float] = None) -> List[BaseTask]:
        """Open tasks due between now and ``days`` from now, inclusive"""
        if days is None:
            days = self.due_soon_days
        now = self.now()
        horizon = now + timedelta(days=days)

        due_soon = []
        for task in self.repository.get_all():
            if task.status == TaskStatus.DONE:
                continue
            deadline = task.effective_deadline()
            if deadline is not None and now <= deadline <= horizon:
                due_soon.append(task)
        return due_soon

    # ============================================================================
    # STATISTICS
    # ============================================================================

    def get_statistics(self) -> TaskStatistics:
        tasks = self.repository.get_all()
        return TaskStatistics(
            total=len(tasks),
            by_status=_count(task.status.value for task in tasks),
            by_priority=_count(task.priority.value for task in tasks),
            by_type=_count(task.kind.value for task in tasks),
        )

    def get_enhanced_statistics(self) -> EnhancedTaskStatistics:
        base = self.get_statistics()
        tasks = self.repository.get_all()
        return EnhancedTaskStatistics(
            **base.model_dump(),
            by_assignee=_count(task.assignee or UNASSIGNED for task in tasks),
            overdue=len(self.get_overdue()),
            due_soon=len(self.get_due_soon()),
        )


def _deadline_before(task: BaseTask, moment: datetime) -> bool:
    deadline = task.effective_deadline()
    return deadline is not None and moment > deadline


def _count(values: Iterable[str]) -> Dict[str, int]:
    return dict(Counter(values))
