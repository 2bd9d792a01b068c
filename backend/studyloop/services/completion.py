"""
Completion flow: the learner-facing entry points of the engine.

- complete_task: mark done, then run the finalization watcher
- update_progress: record units done; reaching the total completes the task
- record_mistakes_and_regenerate: mistakes -> review tasks -> grouping pass
- complete_task_with_mistakes: all of the above in the order that lets the
  new review tasks exist before the watcher looks at the parent
"""

import uuid
from dataclasses import dataclass
from datetime import date

from studyloop.exceptions import NotFoundError
from studyloop.logging_config import get_logger
from studyloop.models import Task
from studyloop.models.task import utcnow
from studyloop.models.enums import FINAL_CYCLE, LearningStage, TaskStatus
from studyloop.services.finalization import FinalizationOutcome, check_and_finalize
from studyloop.services.review import (
    generate_review_tasks,
    group_review_tasks,
    record_mistakes,
)
from studyloop.store.base import TaskStore

logger = get_logger(__name__)


@dataclass
class CompletionResult:
    task: Task
    finalization: FinalizationOutcome | None = None  # None when the check was skipped


def is_final_check(task: Task) -> bool:
    return task.cycle_number == FINAL_CYCLE and task.learning_stage == LearningStage.PERFECT


async def _get_or_raise(store: TaskStore, task_id: uuid.UUID) -> Task:
    task = await store.get_task(task_id)
    if task is None:
        raise NotFoundError("Task", str(task_id))
    return task


async def _mark_completed(
    store: TaskStore,
    task: Task,
    actual_time: int | None,
) -> Task:
    fields = {
        "status": TaskStatus.COMPLETED,
        "completed_at": utcnow(),
    }
    if task.total_units is not None:
        fields["completed_units"] = task.total_units
    if actual_time is not None:
        fields["actual_time"] = actual_time
    await store.update_task(task.id, fields)
    logger.info(f"Completed task {task.id}: '{task.title}'")
    return await _get_or_raise(store, task.id)


async def _run_watcher(store: TaskStore, task: Task) -> FinalizationOutcome | None:
    # Completing the final check itself must not re-enter the watcher
    if is_final_check(task):
        return None
    outcome = await check_and_finalize(store, task.id)
    logger.debug(f"Finalization after {task.id}: {outcome.state.value}")
    return outcome


async def complete_task(
    store: TaskStore,
    task_id: uuid.UUID,
    actual_time: int | None = None,
) -> CompletionResult:
    """
    Mark a task completed and run the finalization watcher.

    The watcher never fails this call; its outcome is returned for reporting.

    Raises:
        NotFoundError: Task does not exist
        StoreError: The status update itself failed
    """
    task = await _get_or_raise(store, task_id)
    task = await _mark_completed(store, task, actual_time)
    return CompletionResult(task=task, finalization=await _run_watcher(store, task))


async def update_progress(
    store: TaskStore,
    task_id: uuid.UUID,
    completed_units: int,
) -> CompletionResult:
    """
    Record how many units of a task are done.

    Progress is clamped to [0, total_units]. The first progress moves the task
    to in_progress; reaching total_units completes it (and runs the watcher).
    Dropping a completed task below total_units reopens it as in_progress.
    """
    task = await _get_or_raise(store, task_id)
    units = max(0, completed_units)
    fields = {}
    if task.total_units is not None:
        units = min(units, task.total_units)
        if units == task.total_units and task.status != TaskStatus.COMPLETED:
            return await complete_task(store, task_id)
        if units < task.total_units and task.status == TaskStatus.COMPLETED:
            fields["status"] = TaskStatus.IN_PROGRESS
            fields["completed_at"] = None
            logger.info(f"Reopened task {task_id} at {units}/{task.total_units} units")

    fields["completed_units"] = units
    if task.status == TaskStatus.NOT_STARTED and units > 0:
        fields["status"] = TaskStatus.IN_PROGRESS
    await store.update_task(task_id, fields)
    return CompletionResult(task=await _get_or_raise(store, task_id))


async def record_mistakes_and_regenerate(
    store: TaskStore,
    task_id: uuid.UUID,
    units: list[int],
    cycle_number: int,
    assignee_id: str,
    context_id: str | None,
    daily_pages: int | None = None,
    today: date | None = None,
) -> list[Task]:
    """
    Record mistakes on a task and turn them into cycle-2 review tasks.

    The review tasks hang off the task's parent (or the task itself when it
    has none), and the learner's whole review queue is re-paced afterwards.
    Errors propagate: this is a primary user action.

    Returns:
        The newly created review tasks with their re-paced due dates
    """
    task = await _get_or_raise(store, task_id)
    if not units:
        return []

    await record_mistakes(store, task_id, units, cycle_number)

    parent_id = task.parent_task_id or task.id
    new_tasks = await generate_review_tasks(
        store,
        parent_id,
        units,
        assignee_id,
        context_id,
        daily_pages=daily_pages,
        today=today,
    )
    groups = await group_review_tasks(
        store,
        assignee_id,
        context_id,
        daily_pages=daily_pages,
        today=today,
    )

    repaced = {t.id: t for group in groups for t in group}
    return [repaced.get(t.id, t) for t in new_tasks]


async def complete_task_with_mistakes(
    store: TaskStore,
    task_id: uuid.UUID,
    units: list[int],
    actual_time: int | None = None,
    today: date | None = None,
) -> tuple[CompletionResult, list[Task]]:
    """
    Complete a task and report its mistakes in one step.

    The review tasks are generated before the watcher runs, so a workload whose
    last slice came back with mistakes is not finalized until they are done.

    Returns:
        (completion result, new review tasks)
    """
    task = await _get_or_raise(store, task_id)
    task = await _mark_completed(store, task, actual_time)

    review_tasks = []
    if units and not is_final_check(task):
        review_tasks = await record_mistakes_and_regenerate(
            store,
            task.id,
            units,
            task.cycle_number,
            task.assigned_to,
            task.test_period_id,
            today=today,
        )

    finalization = await _run_watcher(store, task)
    return CompletionResult(task=task, finalization=finalization), review_tasks


async def delete_task(store: TaskStore, task_id: uuid.UUID) -> None:
    """Delete a task together with its subtasks, mistakes and relationship edges."""
    await _get_or_raise(store, task_id)
    await store.delete_task(task_id)
    logger.info(f"Deleted task {task_id}")
