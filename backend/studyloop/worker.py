"""
ARQ Worker for background task processing.

This worker handles:
- distribute_task_job: copies a template task tree to a whole grade, for
  rosters too large to distribute inside one HTTP request

Usage:
    arq studyloop.worker.WorkerSettings
"""

import uuid
from dataclasses import asdict

from arq import create_pool
from arq.connections import RedisSettings, ArqRedis

from studyloop.config import get_settings
from studyloop.database import get_task_store
from studyloop.logging_config import setup_logging, get_logger
from studyloop.schemas.distribution import StudentRef
from studyloop.services.distribution import distribute_task

# Initialize logging for the worker
setup_logging()
logger = get_logger(__name__)

settings = get_settings()


def parse_redis_url(url: str) -> RedisSettings:
    """Parse redis URL into RedisSettings."""
    # redis://localhost:6380/0 -> host=localhost, port=6380, database=0
    url = url.replace("redis://", "")
    database = 0
    if "/" in url:
        url, db_part = url.split("/", 1)
        if db_part:
            database = int(db_part)
    if ":" in url:
        host, port = url.split(":")
        return RedisSettings(host=host, port=int(port), database=database)
    return RedisSettings(host=url, database=database)


async def distribute_task_job(
    ctx: dict,
    template_task_id: str,
    grade_id: str,
    targets: list[dict] | None = None,
) -> dict:
    """
    ARQ job: distribute a template task to students.

    Args:
        ctx: ARQ context
        template_task_id: Task to copy
        grade_id: Grade of the targets
        targets: Optional [{"id", "display_name"}]; whole grade when omitted

    Returns:
        The distribution report as a dict
    """
    students = [StudentRef(**t) for t in targets] if targets else None
    report = await distribute_task(
        get_task_store(),
        uuid.UUID(template_task_id),
        grade_id,
        targets=students,
    )
    result = asdict(report)
    result["created_parent_ids"] = {k: str(v) for k, v in report.created_parent_ids.items()}
    return result


async def startup(ctx: dict) -> None:
    """Worker startup."""
    logger.info("ARQ Worker starting up...")
    logger.info(f"Redis: {settings.redis_url}")


async def shutdown(ctx: dict) -> None:
    """Worker shutdown - cleanup."""
    logger.info("ARQ Worker shutting down...")


class WorkerSettings:
    """ARQ Worker configuration."""

    functions = [distribute_task_job]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = parse_redis_url(settings.redis_url)
    max_jobs = 10
    job_timeout = 600  # Large grades take a while


# Redis pool for enqueuing jobs from the API
_arq_pool: ArqRedis | None = None


async def get_arq_pool() -> ArqRedis:
    """Get or create the ARQ Redis pool for enqueuing jobs."""
    global _arq_pool
    if _arq_pool is None:
        logger.debug("Creating ARQ Redis pool")
        _arq_pool = await create_pool(parse_redis_url(settings.redis_url))
    return _arq_pool


async def enqueue_distribution(
    template_task_id: str,
    grade_id: str,
    targets: list[dict] | None = None,
) -> str | None:
    """Enqueue a distribution job. Returns the job id (None if arq deduplicated it)."""
    pool = await get_arq_pool()
    logger.debug(f"Enqueuing distribution job: task={template_task_id[:8]}... grade={grade_id}")
    job = await pool.enqueue_job("distribute_task_job", template_task_id, grade_id, targets)
    return job.job_id if job else None
