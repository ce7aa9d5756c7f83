"""
Task Storage Layer - JSON Persistence

Converts the task collection to and from plain records and moves those
records through a storage port.

Key Features:
- ``TaskStoragePort`` protocol: ``load()`` and ``save(records)``
- ``JsonFileStorage``: whole-file JSON array, replaced atomically on save
- ``InMemoryStorage``: port implementation without a file
- Per-record reconstruction: a bad record is logged with its index and
  skipped, the rest still load

Records use camelCase keys and ISO-8601 timestamps, e.g.::

    {"id": "task_...", "type": "Bug", "title": "...", "createdAt": "2024-12-01T00:00:00Z", ...}
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Union

import structlog
from pydantic import BaseModel, Field

from tasktrack.exceptions import PersistenceError, ValidationError
from tasktrack.tasks.models import BaseTask, TaskKind, TaskPriority, create_task_instance
from tasktrack.tasks.validation import is_enum_value, normalize_payload

logger = structlog.get_logger(__name__)

TaskRecord = Dict[str, Any]


class SaveResult(BaseModel):
    """Outcome of writing the collection"""

    success: bool = Field(..., description="True when the write completed")
    error: Optional[str] = Field(None, description="Failure reason")


class TaskStoragePort(Protocol):
    """Where the task collection lives between runs."""

    def load(self) -> List[TaskRecord]: ...

    def save(self, records: Sequence[TaskRecord]) -> SaveResult: ...


# ============================================================================
# RECORD CONVERSION
# ============================================================================


def task_to_record(task: BaseTask) -> TaskRecord:
    """Serialize one task; unset optional fields are left out"""
    return task.model_dump(mode="json", by_alias=True, exclude_none=True)


def tasks_to_records(tasks: Iterable[BaseTask]) -> List[TaskRecord]:
    return [task_to_record(task) for task in tasks]


def record_to_task(record: Any) -> BaseTask:
    """
    Rebuild a task from a stored record.

    Raises:
        ValidationError: Record is not an object, misses required fields or
            carries an unknown type or priority
    """
    if not isinstance(record, Mapping):
        raise ValidationError([f"Record must be an object, got {type(record).__name__}"])

    data = normalize_payload(record)
    errors: List[str] = []

    for required in ("id", "created_at"):
        if not data.get(required):
            errors.append(f"Record is missing {required}")
    if not is_enum_value(data.get("type"), TaskKind):
        errors.append(f"Unknown task type: {data.get('type')!r}")
    if not is_enum_value(data.get("priority"), TaskPriority):
        errors.append(f"Unknown priority: {data.get('priority')!r}")
    if errors:
        raise ValidationError(errors)

    if not data.get("updated_at"):
        data["updated_at"] = data["created_at"]

    return create_task_instance(data)


def records_to_tasks(records: Iterable[Any]) -> List[BaseTask]:
    """Rebuild every valid record; invalid ones are logged and skipped"""
    tasks: List[BaseTask] = []
    for index, record in enumerate(records):
        try:
            tasks.append(record_to_task(record))
        except ValidationError as e:
            logger.error(
                "Skipping invalid task record",
                index=index,
                errors=e.errors,
            )
    return tasks


# ============================================================================
# STORAGE ADAPTERS
# ============================================================================


class JsonFileStorage:
    """
    Task collection stored as a JSON array in a single file.

    A missing, unreadable or malformed file loads as an empty collection.
    Saves overwrite the whole file.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> List[TaskRecord]:
        if not self.path.exists():
            logger.info("Task file not found, starting empty", path=str(self.path))
            return []

        try:
            content = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Task file unreadable, starting empty", path=str(self.path), error=str(e))
            return []

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.warning("Task file is not valid JSON, starting empty", path=str(self.path), error=str(e))
            return []

        if not isinstance(data, list):
            logger.warning(
                "Task file does not hold an array, starting empty",
                path=str(self.path),
                found=type(data).__name__,
            )
            return []

        return data

    def save(self, records: Sequence[TaskRecord]) -> SaveResult:
        try:
            self._write(records)
        except PersistenceError as e:
            logger.error("Failed to save tasks", path=str(self.path), error=e.message)
            return SaveResult(success=False, error=e.message)

        logger.debug("Tasks saved", path=str(self.path), count=len(records))
        return SaveResult(success=True)

    def _write(self, records: Sequence[TaskRecord]) -> None:
        try:
            content = json.dumps(list(records), indent=2, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Tasks are not JSON serializable: {e}", path=str(self.path)) from e

        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceError(f"Error saving tasks: {e}", path=str(self.path)) from e


class InMemoryStorage:
    """Storage port that keeps records in a list; used for tests and embedding"""

    def __init__(self, records: Optional[Iterable[TaskRecord]] = None):
        self.records: List[TaskRecord] = list(records or [])
        self.save_count = 0

    def load(self) -> List[TaskRecord]:
        return [dict(record) if isinstance(record, Mapping) else record for record in self.records]

    def save(self, records: Sequence[TaskRecord]) -> SaveResult:
        self.records = [dict(record) for record in records]
        self.save_count += 1
        return SaveResult(success=True)
