"""
Completion flow tests - completing tasks, progress and mistakes end to end.
"""

import uuid
from datetime import date, timedelta, timezone

import pytest

from studyloop.exceptions import NotFoundError, StoreError
from studyloop.models.enums import LearningStage, TaskStatus
from studyloop.services.completion import (
    complete_task,
    complete_task_with_mistakes,
    delete_task,
    record_mistakes_and_regenerate,
    update_progress,
)
from studyloop.services.finalization import FinalizationState
from studyloop.services.planner import plan_split_workload
from studyloop.store import MemoryTaskStore, TaskFilter

from conftest import split_request

TODAY = date(2024, 5, 2)


class UnlinkableStore(MemoryTaskStore):
    """Store whose relationship inserts always fail."""

    async def create_relationship(self, *args, **kwargs):
        raise StoreError("create_relationship", RuntimeError("connection reset"))


class TestCompleteTask:

    @pytest.mark.asyncio
    async def test_marks_completed(self, store, make_workload):
        planned = await make_workload()

        result = await complete_task(store, planned.subtasks[0].id, actual_time=25)

        assert result.task.status == TaskStatus.COMPLETED
        assert result.task.completed_units == result.task.total_units
        assert result.task.actual_time == 25
        assert result.task.completed_at is not None
        assert result.task.completed_at.tzinfo == timezone.utc
        assert result.task.updated_at.tzinfo == timezone.utc
        assert result.finalization.state == FinalizationState.INCOMPLETE

    @pytest.mark.asyncio
    async def test_unknown_task(self, store):
        with pytest.raises(NotFoundError):
            await complete_task(store, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_last_subtask_finalizes(self, store, make_workload):
        planned = await make_workload(total_units=8)

        first = await complete_task(store, planned.subtasks[0].id)
        last = await complete_task(store, planned.subtasks[1].id)

        assert first.finalization.state == FinalizationState.INCOMPLETE
        assert last.finalization.state == FinalizationState.FINALIZED
        assert last.finalization.created

    @pytest.mark.asyncio
    async def test_completing_final_check_skips_watcher(self, store, make_workload):
        planned = await make_workload(total_units=4)
        result = await complete_task(store, planned.subtasks[0].id)

        final = await complete_task(store, result.finalization.final_task_id)

        assert final.task.status == TaskStatus.COMPLETED
        assert final.finalization is None
        assert len(store.tasks) == 3


class TestUpdateProgress:

    @pytest.mark.asyncio
    async def test_partial_progress_starts_task(self, store, make_workload):
        planned = await make_workload()

        result = await update_progress(store, planned.subtasks[0].id, 2)

        assert result.task.status == TaskStatus.IN_PROGRESS
        assert result.task.completed_units == 2
        assert result.finalization is None

    @pytest.mark.asyncio
    async def test_progress_clamped_to_total(self, store, make_workload):
        planned = await make_workload()

        result = await update_progress(store, planned.subtasks[0].id, 99)

        assert result.task.status == TaskStatus.COMPLETED
        assert result.task.completed_units == 4

    @pytest.mark.asyncio
    async def test_lowering_completed_progress_reopens(self, store, make_workload):
        planned = await make_workload()
        task_id = planned.subtasks[0].id
        await complete_task(store, task_id)

        result = await update_progress(store, task_id, 1)

        assert result.task.status == TaskStatus.IN_PROGRESS
        assert result.task.completed_units == 1
        assert result.task.completed_at is None
        assert result.finalization is None

        # Reaching the total again completes it again
        again = await update_progress(store, task_id, 4)
        assert again.task.status == TaskStatus.COMPLETED
        assert again.task.completed_at is not None

    @pytest.mark.asyncio
    async def test_unit_by_unit_round_trip_finalizes_once(self, store, make_workload):
        """
        Scenario: every subtask of a planned workload is completed one unit at a time
        Expected: exactly one final check, due two days after the parent
        """
        planned = await make_workload(total_units=10, daily_units=3)
        outcomes = []

        for subtask in planned.subtasks:
            for done in range(1, subtask.total_units + 1):
                result = await update_progress(store, subtask.id, done)
                if result.finalization is not None:
                    outcomes.append(result.finalization)

        created = [o for o in outcomes if o.created]
        assert len(created) == 1
        final = await store.get_task(created[0].final_task_id)
        assert final.cycle_number == 3
        assert final.learning_stage == LearningStage.PERFECT
        assert final.due_date == planned.parent.due_date + timedelta(days=2)

        finals = await store.list_tasks(TaskFilter(parent_task_id=planned.parent.id, cycle_number=3))
        assert len(finals) == 1


class TestMistakes:

    @pytest.mark.asyncio
    async def test_mistakes_on_a_with_b_and_c_open(self, store, make_workload):
        """
        Scenario: parent with 3 subtasks; A is completed with 2 mistaken pages
        Expected: 2 cycle-2 review tasks exist, and the watcher does not
        finalize because B and C are still open
        """
        planned = await make_workload(total_units=12)
        a, b, c = planned.subtasks

        result, reviews = await complete_task_with_mistakes(store, a.id, [2, 3], today=TODAY)

        assert len(reviews) == 2
        assert all(r.cycle_number == 2 for r in reviews)
        assert all(r.parent_task_id == planned.parent.id for r in reviews)
        assert result.finalization.state == FinalizationState.INCOMPLETE

        mistakes = await store.list_mistakes(a.id)
        assert [m.unit_number for m in mistakes] == [2, 3]

    @pytest.mark.asyncio
    async def test_reviews_hold_back_finalization(self, store, make_workload):
        planned = await make_workload(total_units=8)
        a, b = planned.subtasks

        _, reviews = await complete_task_with_mistakes(store, a.id, [1], today=TODAY)
        after_b = await complete_task(store, b.id)

        # B was the last cycle-1 slice, but the review task is still open
        assert after_b.finalization.state == FinalizationState.INCOMPLETE

        after_review = await complete_task(store, reviews[0].id)
        assert after_review.finalization.state == FinalizationState.FINALIZED
        assert after_review.finalization.created

    @pytest.mark.asyncio
    async def test_last_slice_with_mistakes_not_finalized(self, store, make_workload):
        planned = await make_workload(total_units=4)

        result, reviews = await complete_task_with_mistakes(
            store, planned.subtasks[0].id, [4], today=TODAY,
        )

        assert len(reviews) == 1
        assert result.finalization.state == FinalizationState.INCOMPLETE

    @pytest.mark.asyncio
    async def test_record_and_regenerate_repaces_queue(self, store, make_workload):
        planned = await make_workload()
        task = planned.subtasks[0]

        new_tasks = await record_mistakes_and_regenerate(
            store, task.id, [1, 2, 3, 4], 1, "student-1", "midterm", daily_pages=2, today=TODAY,
        )

        assert [t.due_date for t in new_tasks] == [
            TODAY + timedelta(days=1),
            TODAY + timedelta(days=1),
            TODAY + timedelta(days=2),
            TODAY + timedelta(days=2),
        ]

    @pytest.mark.asyncio
    async def test_failed_edge_insert_propagates(self):
        """
        Scenario: the relationship insert fails after the review tasks were written
        Expected: the StoreError reaches the caller and the review rows stay behind
        """
        store = UnlinkableStore()
        planned = await plan_split_workload(store, split_request())
        task_id = planned.subtasks[0].id

        with pytest.raises(StoreError) as exc_info:
            await record_mistakes_and_regenerate(
                store, task_id, [2, 3], 1, "student-1", "midterm", today=TODAY,
            )

        assert "connection reset" in str(exc_info.value.cause)
        reviews = await store.list_tasks(TaskFilter(parent_task_id=planned.parent.id, cycle_number=2))
        assert len(reviews) == 2
        assert store.relationships == []
        assert len(await store.list_mistakes(task_id)) == 2

    @pytest.mark.asyncio
    async def test_no_units_creates_nothing(self, store, make_workload):
        planned = await make_workload()
        before = len(store.tasks)

        new_tasks = await record_mistakes_and_regenerate(
            store, planned.subtasks[0].id, [], 1, "student-1", "midterm",
        )

        assert new_tasks == []
        assert len(store.tasks) == before


class TestDeleteTask:

    @pytest.mark.asyncio
    async def test_cascades_to_subtasks_and_records(self, store, make_workload):
        planned = await make_workload()
        other = await make_workload(title="Biology")
        await complete_task_with_mistakes(store, planned.subtasks[0].id, [1], today=TODAY)

        await delete_task(store, planned.parent.id)

        assert set(store.tasks) == {other.parent.id} | {t.id for t in other.subtasks}
        assert store.mistakes == []
        assert store.relationships == []

    @pytest.mark.asyncio
    async def test_unknown_task(self, store):
        with pytest.raises(NotFoundError):
            await delete_task(store, uuid.uuid4())
