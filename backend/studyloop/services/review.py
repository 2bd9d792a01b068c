"""
Mistake recording and cycle-2 review task generation.

After a learner finishes a slice they report the units (pages, problems)
they got wrong. Those are stored as Mistake rows, and each one becomes a
cycle-2 review subtask under the workload parent. A grouping pass then
re-paces every untouched review task of the learner so they form one daily
queue of at most daily_pages tasks per day.
"""

import math
import uuid
from datetime import date, timedelta

from studyloop.config import get_settings
from studyloop.exceptions import InvalidPlanError, NotFoundError
from studyloop.logging_config import get_logger
from studyloop.models import Task
from studyloop.models.enums import (
    REVIEW_CYCLE,
    LearningStage,
    TaskStatus,
    TaskType,
    UnitType,
)
from studyloop.schemas.task import TaskCreate
from studyloop.store.base import TaskFilter, TaskStore

logger = get_logger(__name__)


def unit_label(unit_type: UnitType | None, unit: int) -> str:
    """Short label for one unit: p.12 for pages, Q12 for problems, #12 otherwise."""
    if unit_type == UnitType.PAGES:
        return f"p.{unit}"
    if unit_type == UnitType.PROBLEMS:
        return f"Q{unit}"
    return f"#{unit}"


def review_due_date(index: int, daily_pages: int, today: date) -> date:
    """Due date of the review task at 0-based index: ceil((index+1)/daily_pages) days out."""
    return today + timedelta(days=math.ceil((index + 1) / daily_pages))


def _resolve_daily_pages(daily_pages: int | None) -> int:
    if daily_pages is None:
        daily_pages = get_settings().review_daily_pages
    if daily_pages < 1:
        raise InvalidPlanError("daily_pages must be at least 1", field="daily_pages")
    return daily_pages


async def record_mistakes(
    store: TaskStore,
    task_id: uuid.UUID,
    units: list[int],
    cycle_number: int,
) -> int:
    """
    Persist one Mistake per missed unit for (task_id, cycle_number).

    No de-duplication: call once per completion of a task.

    Returns:
        Number of records written
    """
    if not units:
        return 0
    task = await store.get_task(task_id)
    if task is None:
        raise NotFoundError("Task", str(task_id))

    await store.create_mistake_records(task_id, list(units), cycle_number)
    logger.info(f"Recorded {len(units)} mistakes on task {task_id} (cycle {cycle_number})")
    return len(units)


async def generate_review_tasks(
    store: TaskStore,
    parent_task_id: uuid.UUID,
    units: list[int],
    assignee_id: str,
    context_id: str | None,
    daily_pages: int | None = None,
    today: date | None = None,
) -> list[Task]:
    """
    Create one cycle-2 review subtask per missed unit.

    Each task is linked to the parent by parent_task_id and by a
    Relationship edge carrying the unit. Nothing is rolled back when an edge
    insert fails: the error propagates and the caller owns cleanup.

    Args:
        store: Task store
        parent_task_id: Workload the mistakes belong to
        units: Missed unit numbers, in the order they were reported
        assignee_id: Learner who gets the review tasks
        context_id: Test period the tasks belong to
        daily_pages: Review tasks per day (settings.review_daily_pages when None)
        today: Pacing anchor (date.today() when None)

    Returns:
        The created review tasks, in unit order
    """
    daily_pages = _resolve_daily_pages(daily_pages)
    today = today or date.today()
    if not units:
        return []

    parent = await store.get_task(parent_task_id)
    if parent is None:
        raise NotFoundError("Parent task", str(parent_task_id))

    estimated_time = math.ceil(parent.estimated_time / len(units))

    created_ids = []
    for index, unit in enumerate(units):
        label = unit_label(parent.unit_type, unit)
        child_id = await store.create_task(TaskCreate(
            title=f"{parent.title} {label} [review]",
            description=f"Review ({label})",
            subject=parent.subject,
            priority=parent.priority,
            task_type=TaskType.SUBTASK,
            parent_task_id=parent_task_id,
            cycle_number=REVIEW_CYCLE,
            learning_stage=LearningStage.REVIEW,
            total_units=1,
            unit_type=parent.unit_type,
            estimated_time=estimated_time,
            due_date=review_due_date(index, daily_pages, today),
            start_date=today,
            assigned_to=assignee_id,
            created_by=assignee_id,
            test_period_id=context_id,
        ))
        created_ids.append(child_id)

    for child_id, unit in zip(created_ids, units):
        await store.create_relationship(parent_task_id, child_id, REVIEW_CYCLE, unit)

    logger.info(f"Generated {len(created_ids)} review tasks under {parent_task_id}")

    created = []
    for child_id in created_ids:
        created.append(await store.get_task(child_id))
    return created


async def group_review_tasks(
    store: TaskStore,
    assignee_id: str,
    context_id: str | None,
    daily_pages: int | None = None,
    today: date | None = None,
) -> list[list[Task]]:
    """
    Re-pace all not-started review tasks of a learner into one daily queue.

    Tasks are ordered by current due date and cut into groups of daily_pages;
    group k becomes due today + k + 1 days. Review tasks produced by separate
    completions therefore share one queue instead of piling up on the same days.
    Each test period has its own queue; context_id=None selects the tasks that
    belong to no test period.

    Returns:
        The groups, each with its updated due dates applied
    """
    daily_pages = _resolve_daily_pages(daily_pages)
    today = today or date.today()

    pending = await store.list_tasks(TaskFilter(
        assigned_to=assignee_id,
        test_period_id=context_id,
        no_test_period=context_id is None,
        learning_stage=LearningStage.REVIEW,
        status=TaskStatus.NOT_STARTED,
    ))

    groups = []
    for group_index, offset in enumerate(range(0, len(pending), daily_pages)):
        group = pending[offset:offset + daily_pages]
        group_due = today + timedelta(days=group_index + 1)
        for task in group:
            if task.due_date != group_due:
                await store.update_task(task.id, {"due_date": group_due})
                task.due_date = group_due
        groups.append(group)

    logger.debug(
        f"Grouped {len(pending)} review tasks for {assignee_id} into {len(groups)} days"
    )
    return groups
