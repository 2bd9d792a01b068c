"""
Workload routes for the StudyLoop API.
"""

import uuid
from fastapi import APIRouter, Depends, status

from studyloop.database import get_task_store
from studyloop.logging_config import get_logger
from studyloop.schemas import (
    CycleProgressRead,
    PlannedWorkloadRead,
    SplitWorkloadRequest,
    TaskRead,
    WorkloadTreeRead,
)
from studyloop.services.planner import plan_split_workload
from studyloop.services.tree import (
    build_workload_graph,
    cycle_progress,
    is_finalized,
    review_unit_map,
)
from studyloop.store.base import TaskStore

logger = get_logger(__name__)

router = APIRouter()


@router.post("/split", response_model=PlannedWorkloadRead, status_code=status.HTTP_201_CREATED)
async def split_workload(
    request: SplitWorkloadRequest,
    store: TaskStore = Depends(get_task_store),
) -> PlannedWorkloadRead:
    """
    Plan a bulk workload as one parent task with daily subtasks.

    Returns 400 when the pacing or dates cannot produce a plan.
    """
    planned = await plan_split_workload(store, request)
    return PlannedWorkloadRead(
        parent=TaskRead.model_validate(planned.parent),
        subtasks=[TaskRead.model_validate(t) for t in planned.subtasks],
        daily_units=planned.daily_units,
        day_count=planned.day_count,
    )


@router.get("/{task_id}/tree", response_model=WorkloadTreeRead)
async def workload_tree(
    task_id: uuid.UUID,
    store: TaskStore = Depends(get_task_store),
) -> WorkloadTreeRead:
    """Per-cycle progress of a workload and the unit behind each review task."""
    graph = await build_workload_graph(store, task_id)
    return WorkloadTreeRead(
        parent_task_id=task_id,
        task_count=graph.number_of_nodes(),
        cycles=[
            CycleProgressRead(cycle_number=p.cycle_number, total=p.total, completed=p.completed)
            for p in cycle_progress(graph)
        ],
        review_units=review_unit_map(graph),
        finalized=is_finalized(graph),
    )
