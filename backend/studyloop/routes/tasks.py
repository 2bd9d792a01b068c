"""
Task routes for the StudyLoop API.
"""

import uuid
from fastapi import APIRouter, Depends, status

from studyloop.database import get_task_store
from studyloop.exceptions import NotFoundError
from studyloop.logging_config import get_logger
from studyloop.models import Task
from studyloop.models.enums import LearningStage, TaskStatus, TaskType
from studyloop.schemas import (
    CompleteRequest,
    CompletionRead,
    FinalizationRead,
    MistakeSubmission,
    ProgressUpdate,
    TaskRead,
)
from studyloop.services.completion import (
    CompletionResult,
    complete_task,
    complete_task_with_mistakes,
    delete_task as delete_task_tree,
    record_mistakes_and_regenerate,
    update_progress,
)
from studyloop.store.base import TaskFilter, TaskStore

logger = get_logger(__name__)

router = APIRouter()


def completion_read(result: CompletionResult) -> CompletionRead:
    finalization = None
    if result.finalization is not None:
        outcome = result.finalization
        finalization = FinalizationRead(
            state=outcome.state.value,
            parent_task_id=outcome.parent_task_id,
            final_task_id=outcome.final_task_id,
            error=outcome.error,
        )
    return CompletionRead(
        task=TaskRead.model_validate(result.task),
        finalization=finalization,
    )


@router.get("/", response_model=list[TaskRead])
async def list_tasks(
    parent_task_id: uuid.UUID | None = None,
    assigned_to: str | None = None,
    test_period_id: str | None = None,
    task_status: TaskStatus | None = None,
    learning_stage: LearningStage | None = None,
    cycle_number: int | None = None,
    task_type: TaskType | None = None,
    store: TaskStore = Depends(get_task_store),
) -> list[Task]:
    """
    List tasks ordered by due date.

    All filters are optional and combined with AND.
    """
    tasks = await store.list_tasks(TaskFilter(
        parent_task_id=parent_task_id,
        assigned_to=assigned_to,
        test_period_id=test_period_id,
        status=task_status,
        learning_stage=learning_stage,
        cycle_number=cycle_number,
        task_type=task_type,
    ))
    logger.debug(f"Listed {len(tasks)} tasks")
    return tasks


@router.get("/{task_id}", response_model=TaskRead)
async def get_task(
    task_id: uuid.UUID,
    store: TaskStore = Depends(get_task_store),
) -> Task:
    """Get a task by ID."""
    task = await store.get_task(task_id)
    if not task:
        raise NotFoundError("Task", str(task_id))
    return task


@router.post("/{task_id}/complete", response_model=CompletionRead)
async def complete(
    task_id: uuid.UUID,
    body: CompleteRequest | None = None,
    store: TaskStore = Depends(get_task_store),
) -> CompletionRead:
    """
    Mark a task completed.

    When mistake_units are given, review tasks are generated before the
    final-check watcher runs. A failing final-check never fails this request.
    """
    body = body or CompleteRequest()
    if body.mistake_units:
        result, review_tasks = await complete_task_with_mistakes(
            store, task_id, body.mistake_units, actual_time=body.actual_time,
        )
        logger.info(f"Task {task_id} completed with {len(review_tasks)} review tasks")
    else:
        result = await complete_task(store, task_id, actual_time=body.actual_time)
    return completion_read(result)


@router.post("/{task_id}/progress", response_model=CompletionRead)
async def progress(
    task_id: uuid.UUID,
    body: ProgressUpdate,
    store: TaskStore = Depends(get_task_store),
) -> CompletionRead:
    """Record completed units; reaching the total completes the task."""
    result = await update_progress(store, task_id, body.completed_units)
    return completion_read(result)


@router.post(
    "/{task_id}/mistakes",
    response_model=list[TaskRead],
    status_code=status.HTTP_201_CREATED,
)
async def submit_mistakes(
    task_id: uuid.UUID,
    body: MistakeSubmission,
    store: TaskStore = Depends(get_task_store),
) -> list[Task]:
    """Record mistaken units on a task and generate cycle-2 review tasks."""
    task = await store.get_task(task_id)
    if not task:
        raise NotFoundError("Task", str(task_id))

    logger.info(f"Mistakes on task {task_id}: {body.units}")
    return await record_mistakes_and_regenerate(
        store,
        task_id,
        body.units,
        body.cycle_number or task.cycle_number,
        task.assigned_to,
        task.test_period_id,
    )


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: uuid.UUID,
    store: TaskStore = Depends(get_task_store),
) -> None:
    """Delete a task with its subtasks, mistakes and relationship edges."""
    await delete_task_tree(store, task_id)
