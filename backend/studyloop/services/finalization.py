"""
Finalization watcher.

Runs after a subtask is completed. When every subtask of a workload parent
is done, it creates the single cycle-3 "final check" task for that parent.

States of a parent, driven only by completion events:

    INCOMPLETE -> ALL_SUBTASKS_DONE -> FINALIZED

FINALIZED is terminal: re-entering ALL_SUBTASKS_DONE afterwards is a no-op.
The store rejects a second final check for the same parent, so two
completions racing on the last two subtasks still produce only one.

Finalization is bookkeeping behind the primary "complete task" action, so
check_and_finalize never raises. Failures are logged and reported in the
returned outcome.
"""

import math
import uuid
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

from studyloop.config import get_settings
from studyloop.exceptions import DuplicateFinalizationError, StoreError
from studyloop.logging_config import get_logger
from studyloop.models import Task
from studyloop.models.enums import (
    FINAL_CYCLE,
    OPEN_STATUSES,
    LearningStage,
    TaskType,
)
from studyloop.schemas.task import TaskCreate
from studyloop.store.base import TaskFilter, TaskStore

logger = get_logger(__name__)


class FinalizationState(str, Enum):
    NOT_APPLICABLE = "not_applicable"  # standalone task, no workload tree
    INCOMPLETE = "incomplete"
    ALL_SUBTASKS_DONE = "all_subtasks_done"
    FINALIZED = "finalized"
    FAILED = "failed"


@dataclass
class FinalizationOutcome:
    """Result of one watcher run."""
    state: FinalizationState
    parent_task_id: uuid.UUID | None = None
    final_task_id: uuid.UUID | None = None
    created: bool = False
    error: str | None = None


def final_check_spec(parent: Task) -> TaskCreate:
    """The cycle-3 final check for a fully completed parent."""
    settings = get_settings()
    due_date = parent.due_date + timedelta(days=settings.finalization_offset_days)
    return TaskCreate(
        title=f"{parent.title} [final check]",
        description="Final check of every problem, answer and past mistake",
        subject=parent.subject,
        priority=parent.priority,
        task_type=TaskType.SUBTASK,
        parent_task_id=parent.id,
        cycle_number=FINAL_CYCLE,
        learning_stage=LearningStage.PERFECT,
        unit_type=parent.unit_type,
        estimated_time=math.ceil(parent.estimated_time * settings.finalization_time_ratio),
        start_date=parent.due_date,
        due_date=due_date,
        assigned_to=parent.assigned_to,
        created_by=parent.created_by,
        test_period_id=parent.test_period_id,
        grade_id=parent.grade_id,
        is_shared=parent.is_shared,
    )


async def _existing_final_check(store: TaskStore, parent_id: uuid.UUID) -> Task | None:
    existing = await store.list_tasks(TaskFilter(
        parent_task_id=parent_id,
        cycle_number=FINAL_CYCLE,
        learning_stage=LearningStage.PERFECT,
    ))
    return existing[0] if existing else None


async def _finalize(store: TaskStore, completed_task_id: uuid.UUID) -> FinalizationOutcome:
    completed = await store.get_task(completed_task_id)
    if completed is None:
        return FinalizationOutcome(
            state=FinalizationState.FAILED,
            error=f"Task {completed_task_id} not found",
        )

    # Step 1: Resolve the workload parent
    if completed.task_type == TaskType.SUBTASK and completed.parent_task_id is not None:
        parent_id = completed.parent_task_id
    elif completed.task_type == TaskType.PARENT:
        parent_id = completed.id
    else:
        return FinalizationOutcome(state=FinalizationState.NOT_APPLICABLE)

    parent = await store.get_task(parent_id)
    if parent is None:
        return FinalizationOutcome(
            state=FinalizationState.FAILED,
            parent_task_id=parent_id,
            error=f"Parent task {parent_id} not found",
        )

    # Step 2: Already finalized? The final check itself stays open, so this
    # must run before the open-subtask query.
    existing = await _existing_final_check(store, parent_id)
    if existing is not None:
        return FinalizationOutcome(
            state=FinalizationState.FINALIZED,
            parent_task_id=parent_id,
            final_task_id=existing.id,
        )

    # Step 3: Any open subtask keeps the workload incomplete
    open_subtasks = await store.list_tasks(TaskFilter(
        parent_task_id=parent_id,
        status=OPEN_STATUSES,
    ))
    if open_subtasks:
        return FinalizationOutcome(state=FinalizationState.INCOMPLETE, parent_task_id=parent_id)

    # Step 4: Create the final check; losing a race is the same as step 2
    try:
        final_id = await store.create_task(final_check_spec(parent))
    except DuplicateFinalizationError:
        logger.info(f"Final check for {parent_id} was created concurrently")
        existing = await _existing_final_check(store, parent_id)
        return FinalizationOutcome(
            state=FinalizationState.FINALIZED,
            parent_task_id=parent_id,
            final_task_id=existing.id if existing else None,
        )
    except StoreError as e:
        # Still complete; the next completion event retries the insert
        return FinalizationOutcome(
            state=FinalizationState.ALL_SUBTASKS_DONE,
            parent_task_id=parent_id,
            error=str(e),
        )

    logger.info(f"Created final check {final_id} for parent {parent_id}")
    return FinalizationOutcome(
        state=FinalizationState.FINALIZED,
        parent_task_id=parent_id,
        final_task_id=final_id,
        created=True,
    )


async def check_and_finalize(store: TaskStore, completed_task_id: uuid.UUID) -> FinalizationOutcome:
    """
    Create the final check for the completed task's parent if it is due.

    Never raises. Failures are logged and carried in outcome.error: a failed
    final-check insert leaves the parent in ALL_SUBTASKS_DONE, anything else
    is FAILED.

    Args:
        store: Task store
        completed_task_id: The task that just transitioned to completed

    Returns:
        FinalizationOutcome describing what happened
    """
    try:
        outcome = await _finalize(store, completed_task_id)
    except Exception as e:
        logger.exception(f"Finalization check failed for task {completed_task_id}: {e}")
        return FinalizationOutcome(state=FinalizationState.FAILED, error=str(e))

    if outcome.error is not None:
        logger.error(f"Finalization check failed for task {completed_task_id}: {outcome.error}")
    return outcome
