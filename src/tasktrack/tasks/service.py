"""
Task Management Service Layer - Public API

Wraps the repository, query engine and storage port behind one object:

- Loads the stored collection once, at construction
- Saves the whole collection after every successful mutation
- Converts domain errors into result objects instead of raising

A failed save is reported through the result but does not roll back the
in-memory change; ``save()`` can be called again to retry.

The service only reads ``config.storage_path`` and ``config.due_soon_days``.
Logging is process-wide; callers that want ``config.logging`` applied call
``tasktrack.logging.configure_logging(config.logging)`` themselves.
"""

from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional, Union

import structlog
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from tasktrack.config import TaskTrackConfig
from tasktrack.exceptions import PersistenceError, TaskTrackError, ValidationError
from tasktrack.tasks.models import BaseTask, TaskPriority, TaskStatus, format_validation_errors
from tasktrack.tasks.queries import TaskFilters, TaskQueryEngine
from tasktrack.tasks.repository import TaskRepository
from tasktrack.tasks.storage import (
    JsonFileStorage,
    SaveResult,
    TaskStoragePort,
    records_to_tasks,
    tasks_to_records,
)
from tasktrack.tasks.validation import is_enum_value

logger = structlog.get_logger(__name__)


# ============================================================================
# RESULT MODELS
# ============================================================================


class TaskOperationResult(BaseModel):
    """Outcome of a create or update"""

    success: bool
    task: Optional[Any] = Field(None, description="Affected task")
    errors: List[str] = Field(default_factory=list)


class TaskDeleteResult(BaseModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None


class TaskDetailsResult(BaseModel):
    success: bool
    task: Optional[Any] = None
    error: Optional[str] = None


class TaskDeadlineResult(BaseModel):
    """Deadline status of one task, flattened for callers"""

    success: bool
    task: Optional[Any] = None
    deadline: Optional[datetime] = None
    days_until_deadline: Optional[int] = None
    is_overdue: bool = False
    is_completed_on_time: Optional[bool] = None
    error: Optional[str] = None


class TaskFilterResult(BaseModel):
    success: bool
    tasks: List[Any] = Field(default_factory=list)
    count: int = 0
    error: Optional[str] = None


class ApiResponse(BaseModel):
    """Generic read result"""

    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None


class InitializeResult(BaseModel):
    success: bool
    message: str
    count: int = 0


def _error_messages(error: TaskTrackError) -> List[str]:
    if isinstance(error, ValidationError):
        return error.errors
    return [error.message]


class TaskService:
    """
    High-level task management service

    Every mutating call validates, applies the change in memory and then
    persists the full collection through the storage port.
    """

    def __init__(
        self,
        storage: Optional[TaskStoragePort] = None,
        config: Optional[TaskTrackConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or TaskTrackConfig()
        self.storage = storage or JsonFileStorage(self.config.storage_path)
        self._repository = TaskRepository(clock=clock)
        self._queries = TaskQueryEngine(
            self._repository, clock=clock, due_soon_days=self.config.due_soon_days
        )

        self.initialize_tasks()

    @property
    def repository(self) -> TaskRepository:
        return self._repository

    @property
    def queries(self) -> TaskQueryEngine:
        return self._queries

    # ============================================================================
    # PERSISTENCE
    # ============================================================================

    def initialize_tasks(self) -> InitializeResult:
        """Replace the in-memory collection with the stored one"""
        try:
            records = self.storage.load()
        except PersistenceError as e:
            logger.error("Failed to load tasks", error=e.message)
            self._repository.clear()
            return InitializeResult(success=False, message=e.message)

        count = self._repository.replace_all(records_to_tasks(records))
        logger.info("Tasks loaded", count=count, records=len(records))
        return InitializeResult(success=True, message=f"Successfully loaded {count} tasks", count=count)

    def save(self) -> SaveResult:
        """Write the whole collection; safe to call again after a failure"""
        return self.storage.save(tasks_to_records(self._repository.get_all()))

    def _persist(self, task: Optional[BaseTask] = None) -> TaskOperationResult:
        result = self.save()
        if not result.success:
            return TaskOperationResult(success=False, task=task, errors=[result.error or "Error saving tasks"])
        return TaskOperationResult(success=True, task=task)

    # ============================================================================
    # MUTATIONS
    # ============================================================================

    def create_task(self, data: Mapping[str, Any]) -> TaskOperationResult:
        try:
            task = self._repository.create(data)
        except TaskTrackError as e:
            logger.debug("Task creation rejected", errors=_error_messages(e))
            return TaskOperationResult(success=False, errors=_error_messages(e))
        return self._persist(task)

    def update_task(self, task_id: str, data: Mapping[str, Any]) -> TaskOperationResult:
        try:
            task = self._repository.update(task_id, data)
        except TaskTrackError as e:
            return TaskOperationResult(success=False, errors=_error_messages(e))
        return self._persist(task)

    def change_task_status(self, task_id: str, status: Union[TaskStatus, str]) -> TaskOperationResult:
        return self.update_task(task_id, {"status": status})

    def add_story_to_epic(self, epic_id: str, story_id: str) -> TaskOperationResult:
        try:
            epic = self._repository.add_story_to_epic(epic_id, story_id)
        except TaskTrackError as e:
            return TaskOperationResult(success=False, errors=_error_messages(e))
        return self._persist(epic)

    def remove_story_from_epic(self, epic_id: str, story_id: str) -> TaskOperationResult:
        try:
            epic = self._repository.remove_story_from_epic(epic_id, story_id)
        except TaskTrackError as e:
            return TaskOperationResult(success=False, errors=_error_messages(e))
        return self._persist(epic)

    def delete_task(self, task_id: str) -> TaskDeleteResult:
        try:
            task = self._repository.delete(task_id)
        except TaskTrackError as e:
            return TaskDeleteResult(success=False, error=e.message)

        saved = self.save()
        if not saved.success:
            return TaskDeleteResult(success=False, error=saved.error)
        return TaskDeleteResult(
            success=True,
            message=f'Task "{task.title}" (ID: {task.id}) successfully deleted',
        )

    def clear_all_tasks(self) -> ApiResponse:
        """Remove every task and save the empty collection"""
        removed = self._repository.count()
        self._repository.clear()
        logger.info("All tasks cleared", count=removed)

        saved = self.save()
        if not saved.success:
            return ApiResponse(success=False, data=removed, error=saved.error)
        return ApiResponse(success=True, data=removed)

    # ============================================================================
    # READS
    # ============================================================================

    def get_task_details(self, task_id: str) -> TaskDetailsResult:
        task = self._repository.get(task_id)
        if task is None:
            return TaskDetailsResult(success=False, error=f"Task with ID {task_id} not found")
        return TaskDetailsResult(success=True, task=task)

    def get_all_tasks(self) -> ApiResponse:
        return ApiResponse(success=True, data=self._repository.get_all())

    def get_task_count(self) -> ApiResponse:
        return ApiResponse(success=True, data=self._repository.count())

    def get_tasks_by_status(self, status: Union[TaskStatus, str]) -> ApiResponse:
        if not is_enum_value(status, TaskStatus):
            return ApiResponse(success=False, error=f"Invalid status: {status}")
        return ApiResponse(success=True, data=self._repository.get_by_status(TaskStatus(status)))

    def get_tasks_by_priority(self, priority: Union[TaskPriority, str]) -> ApiResponse:
        if not is_enum_value(priority, TaskPriority):
            return ApiResponse(success=False, error=f"Invalid priority: {priority}")
        return ApiResponse(success=True, data=self._repository.get_by_priority(TaskPriority(priority)))

    def get_tasks_by_assignee(self, assignee: str) -> ApiResponse:
        return ApiResponse(success=True, data=self._repository.get_by_assignee(assignee))

    def get_tasks_by_sprint(self, sprint_id: str) -> ApiResponse:
        return ApiResponse(success=True, data=self._repository.get_by_sprint(sprint_id))

    def get_subtasks_by_parent_id(self, parent_id: str) -> ApiResponse:
        return ApiResponse(success=True, data=self._repository.get_subtasks_by_parent_id(parent_id))

    def search_tasks(self, query: str) -> ApiResponse:
        return ApiResponse(success=True, data=self._queries.search(query))

    def filter_tasks(self, criteria: Union[TaskFilters, Mapping[str, Any], None] = None) -> TaskFilterResult:
        try:
            tasks = self._queries.filter(criteria)
        except PydanticValidationError as e:
            return TaskFilterResult(success=False, error="; ".join(format_validation_errors(e)))
        return TaskFilterResult(success=True, tasks=tasks, count=len(tasks))

    def check_task_deadline(self, task_id: str) -> TaskDeadlineResult:
        try:
            status = self._queries.check_deadline(task_id)
        except TaskTrackError as e:
            return TaskDeadlineResult(success=False, error=e.message)
        return TaskDeadlineResult(success=True, **status.model_dump(exclude={"task"}), task=status.task)

    def get_overdue_tasks(self) -> ApiResponse:
        return ApiResponse(success=True, data=self._queries.get_overdue())

    def get_tasks_due_soon(self, days: Optional[float] = None) -> ApiResponse:
        return ApiResponse(success=True, data=self._queries.get_due_soon(days))

    def get_statistics(self) -> ApiResponse:
        return ApiResponse(success=True, data=self._queries.get_statistics())

    def get_enhanced_statistics(self) -> ApiResponse:
        return ApiResponse(success=True, data=self._queries.get_enhanced_statistics())
