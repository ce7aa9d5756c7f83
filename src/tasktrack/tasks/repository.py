"""
Task Repository Layer - In-Memory Store

Holds the authoritative, insertion-ordered collection of tasks and enforces
the invariants that span more than one task:

- ids are unique across the store
- a Subtask can only be created under an existing parent
- a task cannot be deleted while Subtasks still reference it

Persistence is not handled here; the service layer saves after each
mutation.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

import structlog

from tasktrack.exceptions import (
    DependentSubtasksError,
    DuplicateTaskError,
    ParentNotFoundError,
    TaskNotFoundError,
    TaskTypeError,
    ValidationError,
)
from tasktrack.tasks.models import (
    BASE_UPDATABLE_FIELDS,
    UPDATABLE_FIELDS,
    BaseTask,
    Epic,
    Story,
    Subtask,
    TaskKind,
    TaskPriority,
    TaskStatus,
    create_task_instance,
    generate_task_id,
    utcnow,
)
from tasktrack.tasks.validation import normalize_payload, validate_create, validate_update

logger = structlog.get_logger(__name__)


class TaskRepository:
    """
    In-memory repository for task variants

    Lookups are by id; iteration follows insertion order.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._tasks: Dict[str, BaseTask] = {}
        self._clock = clock or utcnow

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    # ============================================================================
    # CREATE
    # ============================================================================

    def create(self, data: Mapping[str, Any]) -> BaseTask:
        """
        Validate, construct and append a new task.

        A caller-supplied ``id`` is kept when it is free; otherwise an id is
        generated. Status always starts at TODO.

        Raises:
            ValidationError: Payload failed field or type rules
            DuplicateTaskError: Supplied id already in use
            ParentNotFoundError: Subtask parent does not exist
        """
        validation = validate_create(data)
        if not validation.success:
            raise ValidationError(validation.errors)

        payload = normalize_payload(data)
        task_id = (payload.get("id") or "").strip() or generate_task_id()
        if task_id in self._tasks:
            raise DuplicateTaskError(task_id)

        if TaskKind(payload["type"]) is TaskKind.SUBTASK:
            parent_task_id = payload["parent_task_id"].strip()
            if parent_task_id not in self._tasks:
                raise ParentNotFoundError(parent_task_id)

        now = self._clock()
        payload.update(
            id=task_id,
            status=TaskStatus.TODO,
            created_at=now,
            updated_at=now,
        )
        task = create_task_instance(payload)
        self._tasks[task.id] = task

        logger.info("Task created", task_id=task.id, type=task.type, title=task.title)
        return task

    # ============================================================================
    # READ
    # ============================================================================

    def get(self, task_id: str) -> Optional[BaseTask]:
        return self._tasks.get(task_id)

    def require(self, task_id: str) -> BaseTask:
        """Get a task or raise TaskNotFoundError"""
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def get_all(self) -> List[BaseTask]:
        """All tasks in insertion order, as a new list"""
        return list(self._tasks.values())

    def count(self) -> int:
        return len(self._tasks)

    def get_by_status(self, status: TaskStatus) -> List[BaseTask]:
        return [task for task in self._tasks.values() if task.status == status]

    def get_by_priority(self, priority: TaskPriority) -> List[BaseTask]:
        return [task for task in self._tasks.values() if task.priority == priority]

    def get_by_assignee(self, assignee: str) -> List[BaseTask]:
        return [task for task in self._tasks.values() if task.assignee == assignee]

    def get_by_sprint(self, sprint_id: str) -> List[Story]:
        return [
            task for task in self._tasks.values()
            if task.kind is TaskKind.STORY and task.sprint_id == sprint_id
        ]

    def get_subtasks_by_parent_id(self, parent_id: str) -> List[Subtask]:
        return [
            task for task in self._tasks.values()
            if task.kind is TaskKind.SUBTASK and task.parent_task_id == parent_id
        ]

    # ============================================================================
    # UPDATE
    # ============================================================================

    def update(self, task_id: str, data: Mapping[str, Any]) -> BaseTask:
        """
        Apply a partial update.

        Only keys present in ``data`` are changed; keys that do not belong to
        the task's variant are ignored. ``updated_at`` is always refreshed.

        Raises:
            TaskNotFoundError: No task with this id
            ValidationError: Update payload failed validation
        """
        task = self.require(task_id)

        validation = validate_update(data)
        if not validation.success:
            raise ValidationError(validation.errors)

        payload = normalize_payload(data)
        allowed = BASE_UPDATABLE_FIELDS + UPDATABLE_FIELDS[task.kind]
        changes = {name: payload[name] for name in allowed if name in payload}

        task.apply_changes(changes, now=self._clock())

        logger.debug("Task updated", task_id=task_id, fields=sorted(changes))
        return task

    def change_status(self, task_id: str, status: TaskStatus) -> BaseTask:
        return self.update(task_id, {"status": status})

    def add_story_to_epic(self, epic_id: str, story_id: str) -> Epic:
        """
        Link an existing Story to an Epic; linking twice is a no-op.

        Raises:
            TaskNotFoundError: Epic or story missing
            TaskTypeError: Either id names the wrong variant
        """
        epic = self._require_kind(epic_id, TaskKind.EPIC)
        self._require_kind(story_id, TaskKind.STORY)

        if epic.add_story(story_id):
            epic.touch(self._clock())
            logger.debug("Story linked to epic", epic_id=epic_id, story_id=story_id)
        return epic

    def remove_story_from_epic(self, epic_id: str, story_id: str) -> Epic:
        epic = self._require_kind(epic_id, TaskKind.EPIC)
        if epic.remove_story(story_id):
            epic.touch(self._clock())
            logger.debug("Story unlinked from epic", epic_id=epic_id, story_id=story_id)
        return epic

    # ============================================================================
    # DELETE
    # ============================================================================

    def delete(self, task_id: str) -> BaseTask:
        """
        Remove a task and return it.

        Raises:
            TaskNotFoundError: No task with this id
            DependentSubtasksError: Subtasks still point at this task
        """
        task = self.require(task_id)

        subtasks = self.get_subtasks_by_parent_id(task_id)
        if subtasks:
            raise DependentSubtasksError(task_id, [subtask.id for subtask in subtasks])

        del self._tasks[task_id]
        logger.info("Task deleted", task_id=task_id, type=task.type)
        return task

    def clear(self) -> None:
        self._tasks.clear()

    def replace_all(self, tasks: Iterable[BaseTask]) -> int:
        """
        Swap the whole collection, e.g. after loading from storage.

        The first task wins when ids repeat. Returns the number kept.
        """
        self._tasks = {}
        for task in tasks:
            if task.id in self._tasks:
                logger.error("Duplicate task id skipped", task_id=task.id)
                continue
            self._tasks[task.id] = task
        return len(self._tasks)

    # ============================================================================
    # HELPERS
    # ============================================================================

    def _require_kind(self, task_id: str, kind: TaskKind) -> Any:
        task = self.require(task_id)
        if task.kind is not kind:
            raise TaskTypeError(task_id, expected=kind.value, actual=task.kind.value)
        return task
