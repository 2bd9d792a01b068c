"""
Distribution tests - fanning a template workload out to a grade.
"""

import uuid

import pytest

from studyloop.exceptions import NotFoundError, StoreError
from studyloop.models.enums import TaskStatus, TaskType
from studyloop.schemas import StudentRef
from studyloop.services.distribution import distribute_task
from studyloop.services.planner import plan_split_workload
from studyloop.store import MemoryTaskStore, TaskFilter

from conftest import split_request


class FlakyStore(MemoryTaskStore):
    """Fails every insert for one assignee, after their parent row is written."""

    def __init__(self, failing_assignee: str):
        super().__init__()
        self.failing_assignee = failing_assignee

    async def create_task(self, spec):
        if spec.assigned_to == self.failing_assignee and spec.parent_task_id is not None:
            raise StoreError("create_task", RuntimeError("connection reset"))
        return await super().create_task(spec)


def roster(store, grade_id, count):
    return [
        store.add_student(grade_id, f"s{i}", f"Student {i}")
        for i in range(count)
    ]


async def subtasks_of(store, parent_id):
    return await store.list_tasks(TaskFilter(parent_task_id=parent_id))


class TestDistributeTask:

    @pytest.mark.asyncio
    async def test_every_student_gets_a_copy(self, store, make_workload):
        template = await make_workload(assigned_to="instructor-1")
        students = roster(store, "g7", 3)

        report = await distribute_task(store, template.parent.id, "g7")

        assert report.success_count == 3
        assert report.error_count == 0
        assert report.errors == []
        assert set(report.created_parent_ids) == {s.id for s in students}

        for student in students:
            parent = await store.get_task(report.created_parent_ids[student.id])
            assert parent.assigned_to == student.id
            assert parent.task_type == TaskType.PARENT
            assert parent.is_shared
            assert parent.grade_id == "g7"

            copies = await subtasks_of(store, parent.id)
            assert [t.due_date for t in copies] == [t.due_date for t in template.subtasks]
            assert [t.title for t in copies] == [t.title for t in template.subtasks]

    @pytest.mark.asyncio
    async def test_copies_start_fresh(self, store, make_workload):
        template = await make_workload(assigned_to="instructor-1")
        await store.update_task(template.subtasks[0].id, {
            "status": TaskStatus.COMPLETED,
            "completed_units": 4,
        })
        roster(store, "g7", 1)

        report = await distribute_task(store, template.parent.id, "g7")

        copies = await subtasks_of(store, report.created_parent_ids["s0"])
        assert all(t.status == TaskStatus.NOT_STARTED for t in copies)
        assert all(t.completed_units == 0 for t in copies)

    @pytest.mark.asyncio
    async def test_explicit_targets_override_roster(self, store, make_workload):
        template = await make_workload(assigned_to="instructor-1")
        roster(store, "g7", 5)

        report = await distribute_task(
            store,
            template.parent.id,
            "g7",
            targets=[StudentRef(id="guest", display_name="Guest")],
        )

        assert report.success_count == 1
        assert list(report.created_parent_ids) == ["guest"]

    @pytest.mark.asyncio
    async def test_one_failing_student_is_isolated(self):
        """
        Scenario: 4 students, student s2 is engineered to fail
        Expected: 3 successes with complete copies, 1 error naming s2
        """
        store = FlakyStore(failing_assignee="s2")
        template = await plan_split_workload(store, split_request(assigned_to="instructor-1"))
        students = roster(store, "g7", 4)

        report = await distribute_task(store, template.parent.id, "g7", concurrency=2)

        assert report.success_count == 3
        assert report.error_count == 1
        assert report.failed_assignee_ids == ["s2"]
        assert len(report.errors) == 1
        assert report.errors[0].startswith("Student 2:")
        assert "connection reset" in report.errors[0]

        for student in students:
            if student.id == "s2":
                continue
            copies = await subtasks_of(store, report.created_parent_ids[student.id])
            assert len(copies) == len(template.subtasks)

        # The failing student's parent row stays behind
        orphans = await store.list_tasks(TaskFilter(assigned_to="s2"))
        assert len(orphans) == 1

    @pytest.mark.asyncio
    async def test_empty_grade(self, store, make_workload):
        template = await make_workload()

        report = await distribute_task(store, template.parent.id, "empty-grade")

        assert report.success_count == 0
        assert report.error_count == 0
        assert report.errors == ["No students found for grade empty-grade"]

    @pytest.mark.asyncio
    async def test_missing_template(self, store):
        with pytest.raises(NotFoundError):
            await distribute_task(store, uuid.uuid4(), "g7")
