"""
Custom exceptions for tasktrack.

Exception hierarchy:
- TaskTrackError (base)
  ├── ValidationError
  ├── TaskNotFoundError
  ├── ConflictError
  │   ├── DuplicateTaskError
  │   ├── ParentNotFoundError
  │   ├── DependentSubtasksError
  │   └── TaskTypeError
  ├── PersistenceError
  └── ConfigurationError
"""

from typing import Any, Dict, List, Optional


class TaskTrackError(Exception):
    """Base exception for all tasktrack errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}

    def __str__(self) -> str:
        base_msg = self.message
        if self.error_code:
            base_msg = f"[{self.error_code}] {base_msg}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg = f"{base_msg} (Context: {context_str})"
        return base_msg


class ValidationError(TaskTrackError):
    """One or more field rules were violated."""

    def __init__(self, errors: List[str], **kwargs: Any) -> None:
        self.errors = list(errors)
        message = f"Validation failed: {', '.join(self.errors)}"
        kwargs.setdefault("error_code", "VALIDATION")
        super().__init__(message, **kwargs)


class TaskNotFoundError(TaskTrackError):
    """An operation referenced a task id that is not in the store."""

    def __init__(self, task_id: str, message: Optional[str] = None, **kwargs: Any) -> None:
        self.task_id = task_id
        context = kwargs.pop("context", {})
        context["task_id"] = task_id
        kwargs.setdefault("error_code", "NOT_FOUND")
        super().__init__(message or f"Task with ID {task_id} not found", context=context, **kwargs)


class ConflictError(TaskTrackError):
    """A structural invariant of the store would be violated."""

    def __init__(
        self,
        message: str,
        task_id: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        self.task_id = task_id
        context = kwargs.pop("context", {})
        if task_id:
            context["task_id"] = task_id
        kwargs.setdefault("error_code", "CONFLICT")
        super().__init__(message, context=context, **kwargs)


class DuplicateTaskError(ConflictError):
    """A task with the requested id already exists."""

    def __init__(self, task_id: str, **kwargs: Any) -> None:
        super().__init__(f"Task with ID {task_id} already exists", task_id=task_id, **kwargs)


class ParentNotFoundError(ConflictError):
    """A subtask references a parent that does not exist."""

    def __init__(self, parent_task_id: str, **kwargs: Any) -> None:
        self.parent_task_id = parent_task_id
        context = kwargs.pop("context", {})
        context["parent_task_id"] = parent_task_id
        super().__init__("Parent task not found", context=context, **kwargs)


class DependentSubtasksError(ConflictError):
    """Delete blocked because subtasks still reference the task."""

    def __init__(self, task_id: str, subtask_ids: List[str], **kwargs: Any) -> None:
        self.subtask_ids = list(subtask_ids)
        context = kwargs.pop("context", {})
        context["subtasks"] = len(self.subtask_ids)
        super().__init__(
            "Cannot delete task with existing subtasks",
            task_id=task_id,
            context=context,
            **kwargs,
        )


class TaskTypeError(ConflictError):
    """Operation applied to the wrong task variant."""

    def __init__(self, task_id: str, expected: str, actual: str, **kwargs: Any) -> None:
        context = kwargs.pop("context", {})
        context["expected"] = expected
        context["actual"] = actual
        super().__init__(
            f"Task with ID {task_id} is a {actual}, expected {expected}",
            task_id=task_id,
            context=context,
            **kwargs,
        )


class PersistenceError(TaskTrackError):
    """Reading or writing the external task file failed."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.pop("context", {})
        if path:
            context["path"] = path
        kwargs.setdefault("error_code", "PERSISTENCE")
        super().__init__(message, context=context, **kwargs)


class ConfigurationError(TaskTrackError):
    """Configuration could not be loaded."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_file: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.pop("context", {})
        if config_key:
            context["config_key"] = config_key
        if config_file:
            context["config_file"] = config_file
        super().__init__(message, context=context, **kwargs)
