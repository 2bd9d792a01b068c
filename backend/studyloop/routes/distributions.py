"""
Distribution routes for the StudyLoop API.
"""

from fastapi import APIRouter, Depends, Response, status

from studyloop.database import get_task_store
from studyloop.exceptions import NotFoundError
from studyloop.logging_config import get_logger
from studyloop.schemas import (
    DistributionQueued,
    DistributionReportRead,
    DistributionRequest,
)
from studyloop.services.distribution import distribute_task
from studyloop.store.base import TaskStore
from studyloop.worker import enqueue_distribution

logger = get_logger(__name__)

router = APIRouter()


@router.post("/", response_model=DistributionReportRead | DistributionQueued)
async def distribute(
    request: DistributionRequest,
    response: Response,
    background: bool = False,
    store: TaskStore = Depends(get_task_store),
):
    """
    Copy a template task tree to every target student.

    With background=true the run is handed to the arq worker and the
    response is 202 with the job id. Otherwise the report is returned inline;
    per-student failures are reported, not raised.
    """
    if background:
        template = await store.get_task(request.template_task_id)
        if template is None:
            raise NotFoundError("Template task", str(request.template_task_id))
        targets = [t.model_dump() for t in request.targets] if request.targets else None
        job_id = await enqueue_distribution(
            str(request.template_task_id), request.grade_id, targets,
        )
        response.status_code = status.HTTP_202_ACCEPTED
        logger.info(f"Queued distribution of {request.template_task_id} as job {job_id}")
        return DistributionQueued(job_id=job_id)

    report = await distribute_task(
        store,
        request.template_task_id,
        request.grade_id,
        targets=request.targets,
    )
    return DistributionReportRead.model_validate(report)
