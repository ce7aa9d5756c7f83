"""
tasktrack - polymorphic task tracking with JSON persistence.
"""

__version__ = "0.1.0"

from tasktrack.config import TaskTrackConfig
from tasktrack.exceptions import (
    ConfigurationError,
    ConflictError,
    DependentSubtasksError,
    DuplicateTaskError,
    ParentNotFoundError,
    PersistenceError,
    TaskNotFoundError,
    TaskTrackError,
    TaskTypeError,
    ValidationError,
)
from tasktrack.logging import configure_logging, get_logger
from tasktrack.tasks import TaskService

__all__ = [
    "__version__",
    "TaskTrackConfig",
    "TaskService",
    "configure_logging",
    "get_logger",
    "TaskTrackError",
    "ValidationError",
    "TaskNotFoundError",
    "ConflictError",
    "DuplicateTaskError",
    "ParentNotFoundError",
    "DependentSubtasksError",
    "TaskTypeError",
    "PersistenceError",
    "ConfigurationError",
]
