"""
Distribution of a template task tree to many students.

Every target gets an independent copy of the template (parent row plus all
subtasks). Targets run concurrently, bounded by a semaphore, and each one
succeeds or fails on its own: a failure is recorded in the report and never
stops or undoes another student's copy. Rows already written for a failing
student are left in place.
"""

import asyncio
import uuid
from dataclasses import dataclass, field

from studyloop.config import get_settings
from studyloop.exceptions import NotFoundError
from studyloop.logging_config import get_logger
from studyloop.models import Task
from studyloop.models.enums import TaskStatus
from studyloop.schemas.distribution import StudentRef
from studyloop.schemas.task import TaskCreate
from studyloop.store.base import TaskFilter, TaskStore

logger = get_logger(__name__)


@dataclass
class DistributionReport:
    """Aggregate result; failed_assignee_ids lets the caller re-drive only failures."""
    success_count: int = 0
    error_count: int = 0
    errors: list[str] = field(default_factory=list)
    created_parent_ids: dict[str, uuid.UUID] = field(default_factory=dict)
    failed_assignee_ids: list[str] = field(default_factory=list)


def clone_spec(
    source: Task,
    student: StudentRef,
    grade_id: str,
    parent_task_id: uuid.UUID | None = None,
) -> TaskCreate:
    """A fresh, unstarted copy of source owned by student."""
    return TaskCreate(
        title=source.title,
        description=source.description,
        subject=source.subject,
        priority=source.priority,
        status=TaskStatus.NOT_STARTED,
        task_type=source.task_type,
        parent_task_id=parent_task_id,
        cycle_number=source.cycle_number,
        learning_stage=source.learning_stage,
        total_units=source.total_units,
        completed_units=0,
        unit_type=source.unit_type,
        estimated_time=source.estimated_time,
        start_date=source.start_date,
        due_date=source.due_date,
        assigned_to=student.id,
        created_by=source.created_by,
        test_period_id=source.test_period_id,
        grade_id=grade_id,
        is_shared=True,
    )


async def clone_tree_for_student(
    store: TaskStore,
    template: Task,
    subtasks: list[Task],
    student: StudentRef,
    grade_id: str,
) -> uuid.UUID:
    """
    Copy the template and its subtasks for one student.

    Returns:
        Id of the student's new parent task
    """
    new_parent_id = await store.create_task(clone_spec(template, student, grade_id))
    for subtask in subtasks:
        await store.create_task(clone_spec(subtask, student, grade_id, new_parent_id))
    return new_parent_id


async def distribute_task(
    store: TaskStore,
    template_task_id: uuid.UUID,
    grade_id: str,
    targets: list[StudentRef] | None = None,
    concurrency: int | None = None,
) -> DistributionReport:
    """
    Distribute a template task tree to students.

    Args:
        store: Task store
        template_task_id: Already-materialized task to copy
        grade_id: Grade the copies belong to; also the roster used when
            targets is omitted
        targets: Explicit students (the whole grade when None or empty)
        concurrency: Max students copied at once (settings.distribution_concurrency)

    Returns:
        DistributionReport with per-student results in target order

    Raises:
        NotFoundError: Template task does not exist
        StoreError: Reading the template or the roster failed
    """
    template = await store.get_task(template_task_id)
    if template is None:
        raise NotFoundError("Template task", str(template_task_id))

    students = targets or await store.list_students_for_grade(grade_id)
    if not students:
        logger.warning(f"No students to distribute {template_task_id} to (grade {grade_id})")
        return DistributionReport(errors=[f"No students found for grade {grade_id}"])

    subtasks = await store.list_tasks(TaskFilter(parent_task_id=template_task_id))

    limit = concurrency or get_settings().distribution_concurrency
    semaphore = asyncio.Semaphore(limit)

    async def distribute_one(student: StudentRef) -> uuid.UUID | Exception:
        async with semaphore:
            try:
                return await clone_tree_for_student(store, template, subtasks, student, grade_id)
            except Exception as e:
                logger.warning(f"Distribution to {student.id} failed: {e}")
                return e

    logger.info(
        f"Distributing {template_task_id} ({len(subtasks)} subtasks) "
        f"to {len(students)} students, concurrency={limit}"
    )
    results = await asyncio.gather(*(distribute_one(s) for s in students))

    report = DistributionReport()
    for student, result in zip(students, results):
        if isinstance(result, Exception):
            report.error_count += 1
            report.errors.append(f"{student.display_name}: {result}")
            report.failed_assignee_ids.append(student.id)
        else:
            report.success_count += 1
            report.created_parent_ids[student.id] = result

    logger.info(
        f"Distribution of {template_task_id} finished: "
        f"{report.success_count} succeeded, {report.error_count} failed"
    )
    return report
