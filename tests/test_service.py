# tests/test_service.py

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import structlog
from structlog.testing import capture_logs

from tasktrack.config import TaskTrackConfig
from tasktrack.tasks.models import Epic, TaskStatus
from tasktrack.tasks.service import TaskService
from tasktrack.tasks.storage import InMemoryStorage, JsonFileStorage, tasks_to_records

from .conftest import FixedClock
from .factories import bug_payload, epic_payload, story_payload, subtask_payload, task_payload


class TestLifecycle:
    def test_starts_empty(self, service: TaskService) -> None:
        assert service.get_task_count().data == 0

    def test_initialize_reports_loaded_count(self, memory_storage: InMemoryStorage, service: TaskService) -> None:
        service.create_task(task_payload())
        service.create_task(bug_payload())

        result = service.initialize_tasks()

        assert result.success
        assert result.message == "Successfully loaded 2 tasks"
        assert result.count == 2

    def test_every_mutation_saves(self, memory_storage: InMemoryStorage, service: TaskService) -> None:
        task = service.create_task(task_payload()).task
        service.update_task(task.id, {"assignee": "Ann"})
        service.change_task_status(task.id, "IN_PROGRESS")
        service.delete_task(task.id)

        assert memory_storage.save_count == 4
        assert memory_storage.records == []

    def test_failed_operations_do_not_save(self, memory_storage: InMemoryStorage, service: TaskService) -> None:
        service.create_task(task_payload(title="Fix"))
        service.update_task("task_nope", {"title": "Whatever title"})
        service.delete_task("task_nope")

        assert memory_storage.save_count == 0

    def test_round_trip_through_json_file(self, config: TaskTrackConfig, clock: FixedClock) -> None:
        first = TaskService(config=config, clock=clock)
        parent = first.create_task(task_payload(assignee="Ann", deadline="2024-12-31")).task
        first.create_task(subtask_payload(parent.id))
        first.create_task(bug_payload())
        story = first.create_task(story_payload()).task
        epic = first.create_task(epic_payload()).task
        first.add_story_to_epic(epic.id, story.id)

        second = TaskService(config=config, clock=clock)

        before = [task.model_dump() for task in first.get_all_tasks().data]
        after = [task.model_dump() for task in second.get_all_tasks().data]
        assert after == before
        assert isinstance(second.repository.get(epic.id), Epic)

    def test_malformed_record_is_skipped_on_load(self, service: TaskService) -> None:
        for payload in (task_payload(), bug_payload(), story_payload(), epic_payload()):
            service.create_task(payload)
        records = tasks_to_records(service.repository.get_all())
        records.insert(1, {"id": "task_broken", "type": "Story", "title": "x"})

        with capture_logs() as logs:
            reloaded = TaskService(storage=InMemoryStorage(records), config=service.config)

        assert reloaded.get_task_count().data == 4
        skipped = [entry for entry in logs if entry["event"] == "Skipping invalid task record"]
        assert [entry["index"] for entry in skipped] == [1]
        assert reloaded.get_task_details("task_broken").success is False

    def test_out_of_range_record_does_not_abort_load(self, service: TaskService) -> None:
        good = tasks_to_records([service.create_task(task_payload()).task])[0]
        far_past = "0001-01-01T00:00:00+05:00"
        bad = dict(good, id="task_far_past", createdAt=far_past, updatedAt=far_past)

        reloaded = TaskService(storage=InMemoryStorage([bad, good]), config=service.config)

        assert reloaded.get_task_count().data == 1
        assert reloaded.get_task_details(good["id"]).success

    def test_logging_is_left_to_the_caller(self, config: TaskTrackConfig) -> None:
        structlog.reset_defaults()

        TaskService(storage=InMemoryStorage(), config=config)

        assert structlog.is_configured() is False

    def test_corrupt_file_starts_empty(self, json_path: Path, config: TaskTrackConfig) -> None:
        json_path.write_text("[{", encoding="utf-8")

        service = TaskService(config=config)

        assert service.get_task_count().data == 0


class TestMutations:
    def test_create_success(self, service: TaskService, clock: FixedClock) -> None:
        result = service.create_task(task_payload())

        assert result.success
        assert result.errors == []
        assert result.task.status is TaskStatus.TODO
        assert result.task.created_at == result.task.updated_at == clock.now

    def test_create_validation_failure(self, service: TaskService) -> None:
        result = service.create_task(task_payload(title="Fix"))

        assert not result.success
        assert result.task is None
        assert result.errors == ["Title must be at least 5 characters long"]

    def test_create_with_deadline_beyond_utc_range(self, service: TaskService) -> None:
        result = service.create_task(task_payload(deadline="9999-12-31T23:59:59-05:00"))

        assert not result.success
        assert result.errors == ["Deadline must be a valid date string"]
        assert service.get_task_count().data == 0

    def test_create_duplicate_id(self, service: TaskService) -> None:
        service.create_task(task_payload(id="task_fixed"))
        result = service.create_task(task_payload(id="task_fixed"))

        assert result.errors == ["Task with ID task_fixed already exists"]

    def test_subtask_parent_checks(self, service: TaskService) -> None:
        missing = service.create_task(subtask_payload("task_nope"))
        assert missing.errors == ["Parent task not found"]

        parent = service.create_task(task_payload()).task
        created = service.create_task(subtask_payload(parent.id))

        assert created.success
        assert service.get_subtasks_by_parent_id(parent.id).data == [created.task]

    def test_update_missing(self, service: TaskService) -> None:
        result = service.update_task("task_nope", {"title": "Whatever title"})
        assert result.errors == ["Task with ID task_nope not found"]

    def test_update_refreshes_timestamp(self, service: TaskService, clock: FixedClock) -> None:
        task = service.create_task(task_payload()).task
        clock.advance(hours=3)

        result = service.update_task(task.id, {"priority": "CRITICAL"})

        assert result.success
        assert result.task.updated_at == clock.now
        assert result.task.created_at != clock.now

    def test_change_status_invalid(self, service: TaskService) -> None:
        task = service.create_task(task_payload()).task
        result = service.change_task_status(task.id, "BLOCKED")
        assert not result.success
        assert task.status is TaskStatus.TODO

    def test_delete_messages(self, service: TaskService) -> None:
        parent = service.create_task(task_payload()).task
        subtask = service.create_task(subtask_payload(parent.id)).task

        blocked = service.delete_task(parent.id)
        assert not blocked.success
        assert blocked.error == "Cannot delete task with existing subtasks"

        service.delete_task(subtask.id)
        deleted = service.delete_task(parent.id)

        assert deleted.success
        assert deleted.message == f'Task "Write release notes" (ID: {parent.id}) successfully deleted'

        missing = service.delete_task(parent.id)
        assert missing.error == f"Task with ID {parent.id} not found"

    def test_epic_story_links(self, service: TaskService) -> None:
        epic = service.create_task(epic_payload()).task
        story = service.create_task(story_payload()).task

        linked = service.add_story_to_epic(epic.id, story.id)
        assert linked.success
        assert linked.task.stories == [story.id]

        wrong = service.add_story_to_epic(story.id, epic.id)
        assert not wrong.success

        assert service.remove_story_from_epic(epic.id, story.id).task.stories == []

    def test_clear_all_tasks(self, memory_storage: InMemoryStorage, service: TaskService) -> None:
        service.create_task(task_payload())
        service.create_task(bug_payload())

        result = service.clear_all_tasks()

        assert result.success
        assert result.data == 2
        assert service.get_task_count().data == 0
        assert memory_storage.records == []

    def test_save_failure_keeps_memory_change(self, tmp_path: Path, clock: FixedClock) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        storage = JsonFileStorage(blocker / "tasks.json")
        service = TaskService(storage=storage, clock=clock)

        result = service.create_task(task_payload())

        assert not result.success
        assert result.errors[0].startswith("Error saving tasks")
        assert result.task is not None
        assert service.get_task_count().data == 1
        assert not service.save().success


class TestReads:
    def test_task_details(self, service: TaskService) -> None:
        task = service.create_task(bug_payload()).task

        assert service.get_task_details(task.id).task is task
        missing = service.get_task_details("task_nope")
        assert missing.success is False
        assert missing.error == "Task with ID task_nope not found"

    def test_lookups(self, service: TaskService) -> None:
        service.create_task(task_payload(assignee="Ann"))
        bug = service.create_task(bug_payload(assignee="Ann")).task
        story = service.create_task(story_payload(sprintId="sprint-1")).task

        assert len(service.get_tasks_by_assignee("Ann").data) == 2
        assert service.get_tasks_by_priority("HIGH").data == [bug]
        assert len(service.get_tasks_by_status(TaskStatus.TODO).data) == 3
        assert service.get_tasks_by_sprint("sprint-1").data == [story]
        assert service.search_tasks("login").data == [bug]

    def test_invalid_lookup_values(self, service: TaskService) -> None:
        assert service.get_tasks_by_status("BLOCKED").success is False
        assert service.get_tasks_by_priority("URGENT").success is False

    def test_filter_tasks(self, service: TaskService) -> None:
        service.create_task(task_payload(priority="HIGH"))
        service.create_task(bug_payload(priority="HIGH"))
        service.create_task(story_payload(priority="LOW"))

        result = service.filter_tasks({"priority": "HIGH"})

        assert result.success
        assert result.count == 2
        assert len(result.tasks) == 2

    def test_filter_tasks_invalid_criteria(self, service: TaskService) -> None:
        result = service.filter_tasks({"priority": "URGENT"})
        assert not result.success
        assert result.count == 0
        assert result.error

    def test_deadline_check(self, service: TaskService, clock: FixedClock) -> None:
        task = service.create_task(task_payload(deadline="2024-12-31")).task

        upcoming = service.check_task_deadline(task.id)
        assert upcoming.success
        assert upcoming.days_until_deadline == 30
        assert upcoming.is_overdue is False
        assert upcoming.task is task

        clock.set(datetime(2025, 1, 15, tzinfo=timezone.utc))
        late = service.check_task_deadline(task.id)
        assert late.is_overdue is True
        assert late.days_until_deadline < 0

        assert service.check_task_deadline("task_nope").error == "Task with ID task_nope not found"

    def test_overdue_and_due_soon(self, service: TaskService) -> None:
        late = service.create_task(task_payload(deadline="2024-11-01")).task
        soon = service.create_task(bug_payload(deadline="2024-12-04")).task

        assert service.get_overdue_tasks().data == [late]
        assert service.get_tasks_due_soon().data == [soon]
        assert service.get_tasks_due_soon(days=1).data == []

    def test_statistics(self, service: TaskService) -> None:
        service.create_task(task_payload(assignee="Ann"))
        service.create_task(bug_payload(assignee="Ann"))
        service.create_task(story_payload())

        basic = service.get_statistics().data
        enhanced = service.get_enhanced_statistics().data

        assert basic.total == 3
        assert enhanced.by_assignee == {"Ann": 2, "Unassigned": 1}
        assert enhanced.by_type == {"Task": 1, "Bug": 1, "Story": 1}
