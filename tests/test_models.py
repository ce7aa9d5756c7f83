# tests/test_models.py

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from tasktrack.exceptions import ValidationError
from tasktrack.tasks.models import (
    Bug,
    Epic,
    Story,
    Subtask,
    Task,
    TaskKind,
    TaskPriority,
    TaskStatus,
    TaskVariant,
    create_task_instance,
    generate_task_id,
    parse_datetime,
)

from .factories import bug_payload, epic_payload, story_payload, subtask_payload, task_payload

UTC = timezone.utc


class TestParseDatetime:
    def test_date_only_is_midnight_utc(self) -> None:
        assert parse_datetime("2024-12-31") == datetime(2024, 12, 31, tzinfo=UTC)

    def test_zulu_suffix(self) -> None:
        assert parse_datetime("2024-12-31T10:30:00Z") == datetime(2024, 12, 31, 10, 30, tzinfo=UTC)

    def test_offset_is_converted_to_utc(self) -> None:
        assert parse_datetime("2024-12-31T12:00:00+02:00") == datetime(2024, 12, 31, 10, tzinfo=UTC)

    def test_naive_datetime_taken_as_utc(self) -> None:
        assert parse_datetime(datetime(2024, 1, 1)).tzinfo == UTC

    @pytest.mark.parametrize("value", ["", "   ", "tomorrow", "2024-13-01"])
    def test_invalid_strings(self, value: str) -> None:
        with pytest.raises(ValueError):
            parse_datetime(value)


    @pytest.mark.parametrize("value", ["9999-12-31T23:59:59-05:00", "0001-01-01T00:00:00+05:00"])
    def test_out_of_range_after_utc_conversion(self, value: str) -> None:
        with pytest.raises(ValueError, match="Date out of range"):
            parse_datetime(value)

    def test_latest_utc_instant_is_accepted(self) -> None:
        assert parse_datetime("9999-12-31T23:59:59Z").year == 9999


class TestFactory:
    def test_dispatches_on_type(self) -> None:
        assert isinstance(create_task_instance(task_payload()), Task)
        assert isinstance(create_task_instance(subtask_payload("task_parent")), Subtask)
        assert isinstance(create_task_instance(bug_payload()), Bug)
        assert isinstance(create_task_instance(story_payload()), Story)
        assert isinstance(create_task_instance(epic_payload()), Epic)

    def test_unknown_type(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            create_task_instance(task_payload(type="Chore"))
        assert exc_info.value.errors == ["Invalid task type: Chore"]

    def test_model_rechecks_constraints(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            create_task_instance(bug_payload(stepsToReproduce=[]))
        assert len(exc_info.value.errors) == 1

    def test_negative_hours_rejected_by_model(self) -> None:
        with pytest.raises(ValidationError):
            create_task_instance(task_payload(estimatedHours=-1))

    def test_updated_before_created_rejected(self) -> None:
        with pytest.raises(ValidationError):
            create_task_instance(
                task_payload(createdAt="2024-12-02T00:00:00Z", updatedAt="2024-12-01T00:00:00Z")
            )

    def test_defaults(self) -> None:
        task = create_task_instance(task_payload())

        assert task.id.startswith("task_")
        assert task.status is TaskStatus.TODO
        assert task.priority is TaskPriority.MEDIUM
        assert task.kind is TaskKind.TASK
        assert task.assignee is None

    def test_generated_ids_are_unique(self) -> None:
        assert len({generate_task_id() for _ in range(100)}) == 100

    def test_discriminated_union(self) -> None:
        adapter = TypeAdapter(TaskVariant)
        story = adapter.validate_python(story_payload())
        assert isinstance(story, Story)
        assert story.story_points == 5


class TestMutation:
    def test_type_and_id_are_immutable(self) -> None:
        task = create_task_instance(task_payload())
        with pytest.raises(PydanticValidationError):
            task.id = "task_other"
        with pytest.raises(PydanticValidationError):
            task.type = "Bug"

    def test_setters_touch_updated_at(self) -> None:
        created = datetime(2020, 1, 1, tzinfo=UTC)
        task = create_task_instance(task_payload(createdAt=created, updatedAt=created))

        task.set_title("A brand new title")

        assert task.title == "A brand new title"
        assert task.updated_at > created
        assert task.created_at == created

    def test_touch_never_moves_before_created(self) -> None:
        task = create_task_instance(task_payload())
        task.touch(task.created_at - timedelta(days=1))
        assert task.updated_at == task.created_at

    def test_apply_changes_is_all_or_nothing(self) -> None:
        task = create_task_instance(task_payload())
        with pytest.raises(ValidationError):
            task.apply_changes({"title": "Another valid title", "estimated_hours": -5})
        assert task.title == "Write release notes"
        assert task.estimated_hours is None

    def test_epic_add_story_is_idempotent(self) -> None:
        epic = create_task_instance(epic_payload())

        assert epic.add_story("task_story") is True
        assert epic.add_story("task_story") is False
        assert epic.stories == ["task_story"]

        assert epic.remove_story("task_story") is True
        assert epic.remove_story("task_story") is False

    def test_epic_stories_deduplicated(self) -> None:
        epic = create_task_instance(epic_payload(stories=["a_story", "b_story", "a_story"]))
        assert epic.stories == ["a_story", "b_story"]


class TestEffectiveDeadline:
    def test_deadline_wins(self) -> None:
        epic = create_task_instance(epic_payload(deadline="2025-01-15"))
        assert epic.effective_deadline() == datetime(2025, 1, 15, tzinfo=UTC)

    def test_epic_falls_back_to_target_date(self) -> None:
        epic = create_task_instance(epic_payload())
        assert epic.effective_deadline() == datetime(2025, 3, 1, tzinfo=UTC)

    def test_no_deadline(self) -> None:
        assert create_task_instance(task_payload()).effective_deadline() is None


class TestTaskInfo:
    def test_task_progress(self) -> None:
        task = create_task_instance(task_payload(estimatedHours=10, actualHours=5))
        info = task.task_info()

        assert info.splitlines()[0] == "TASK DETAILS"
        assert "Progress: 50%" in info
        assert "Assignee: Unassigned" in info

    def test_bug_details(self) -> None:
        info = create_task_instance(bug_payload(assignee="Ann")).task_info()

        assert info.startswith("BUG DETAILS")
        assert "Severity: CRITICAL" in info
        assert "Assignee: Ann" in info
        assert "  1. Open the landing page" in info
        assert "  2. Click login" in info

    def test_story_details(self) -> None:
        info = create_task_instance(story_payload()).task_info()
        assert "Story Points: 5" in info
        assert "Sprint: No sprint assigned" in info

    def test_epic_details(self) -> None:
        info = create_task_instance(epic_payload()).task_info()
        assert "Target Date: 2025-03-01" in info
        assert "No stories assigned yet" in info

    def test_subtask_names_parent(self) -> None:
        info = create_task_instance(subtask_payload("task_parent")).task_info()
        assert "Parent Task: task_parent" in info
