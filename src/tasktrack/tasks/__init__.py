"""
tasktrack Task Management

Key Components:
- Task, Subtask, Bug, Story, Epic: the five task variants
- TaskRepository: in-memory store enforcing cross-task invariants
- JsonFileStorage / InMemoryStorage: storage port implementations
- TaskQueryEngine: filters, search, deadlines and statistics
- TaskService: public API with save-after-mutate and result objects
"""

from .models import (
    # Core Models
    BaseTask,
    Task,
    Subtask,
    Bug,
    Story,
    Epic,
    TaskVariant,

    # Enums
    TaskStatus,
    TaskPriority,
    BugSeverity,
    TaskKind,

    # Helpers
    create_task_instance,
    generate_task_id,
    parse_datetime,
)

from .validation import (
    ValidationResult,
    validate_create,
    validate_update,
)

from .repository import TaskRepository

from .storage import (
    TaskStoragePort,
    JsonFileStorage,
    InMemoryStorage,
    SaveResult,
    task_to_record,
    record_to_task,
    records_to_tasks,
)

from .queries import (
    TaskQueryEngine,
    TaskFilters,
    DeadlineStatus,
    TaskStatistics,
    EnhancedTaskStatistics,
)

from .service import (
    TaskService,
    TaskOperationResult,
    TaskDeleteResult,
    TaskDetailsResult,
    TaskDeadlineResult,
    TaskFilterResult,
    ApiResponse,
    InitializeResult,
)

__all__ = [
    # Models
    "BaseTask",
    "Task",
    "Subtask",
    "Bug",
    "Story",
    "Epic",
    "TaskVariant",
    "TaskStatus",
    "TaskPriority",
    "BugSeverity",
    "TaskKind",
    "create_task_instance",
    "generate_task_id",
    "parse_datetime",

    # Validation
    "ValidationResult",
    "validate_create",
    "validate_update",

    # Store and persistence
    "TaskRepository",
    "TaskStoragePort",
    "JsonFileStorage",
    "InMemoryStorage",
    "SaveResult",
    "task_to_record",
    "record_to_task",
    "records_to_tasks",

    # Queries
    "TaskQueryEngine",
    "TaskFilters",
    "DeadlineStatus",
    "TaskStatistics",
    "EnhancedTaskStatistics",

    # Service
    "TaskService",
    "TaskOperationResult",
    "TaskDeleteResult",
    "TaskDetailsResult",
    "TaskDeadlineResult",
    "TaskFilterResult",
    "ApiResponse",
    "InitializeResult",
]
