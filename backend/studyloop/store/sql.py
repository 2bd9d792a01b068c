"""
SQL task store built on SQLModel and the SQLAlchemy async engine.

Each operation runs in its own short-lived session and commits on its own.
No transaction spans an engine operation, so concurrent callers (for example
the per-student branches of a distribution) never share a session.
"""

import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from studyloop.exceptions import (
    DuplicateFinalizationError,
    NotFoundError,
    StoreError,
    StudyLoopException,
)
from studyloop.logging_config import get_logger
from studyloop.models import Mistake, Student, Task, TaskRelationship
from studyloop.models.task import utcnow
from studyloop.schemas.distribution import StudentRef
from studyloop.schemas.task import TaskCreate
from studyloop.store.base import TaskFilter, check_update_fields, task_row

logger = get_logger(__name__)


def is_finalization_conflict(error: Exception) -> bool:
    """True when an insert broke the one-final-check-per-parent unique constraint."""
    if not isinstance(error, IntegrityError):
        return False
    return "finalizes_task_id" in str(error.orig)


class SqlTaskStore:
    """TaskStore implementation over an async session factory."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncGenerator[AsyncSession, None]:
        """Session scope that commits on success and wraps driver errors in StoreError."""
        async with self._session_maker() as session:
            try:
                yield session
                await session.commit()
            except StudyLoopException:
                await session.rollback()
                raise
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Store operation {operation} failed: {e}")
                raise StoreError(operation, e) from e

    # ---- tasks ----

    async def create_task(self, spec: TaskCreate) -> uuid.UUID:
        task = Task(**task_row(spec))
        try:
            async with self._session("create_task") as session:
                session.add(task)
        except StoreError as e:
            if spec.is_finalization and is_finalization_conflict(e.cause):
                raise DuplicateFinalizationError(str(spec.parent_task_id)) from e.cause
            raise
        return task.id

    async def get_task(self, task_id: uuid.UUID) -> Task | None:
        async with self._session("get_task") as session:
            return await session.get(Task, task_id)

    async def update_task(self, task_id: uuid.UUID, fields: dict[str, Any]) -> None:
        check_update_fields(fields)
        async with self._session("update_task") as session:
            result = await session.execute(
                update(Task)
                .where(Task.id == task_id)
                .values(**fields, updated_at=utcnow())
            )
            if result.rowcount == 0:
                raise NotFoundError("Task", str(task_id))

    async def delete_task(self, task_id: uuid.UUID) -> None:
        """Delete a task with every descendant, its mistakes and relationship edges."""
        async with self._session("delete_task") as session:
            if await session.get(Task, task_id) is None:
                raise NotFoundError("Task", str(task_id))

            doomed = [task_id]
            frontier = [task_id]
            while frontier:
                result = await session.execute(
                    select(Task.id).where(Task.parent_task_id.in_(frontier))
                )
                frontier = [row[0] for row in result.all()]
                doomed.extend(frontier)

            await session.execute(delete(Mistake).where(Mistake.task_id.in_(doomed)))
            await session.execute(
                delete(TaskRelationship).where(
                    TaskRelationship.parent_task_id.in_(doomed)
                    | TaskRelationship.child_task_id.in_(doomed)
                )
            )
            # Children first so the self-referencing FK never dangles
            for doomed_id in reversed(doomed):
                await session.execute(delete(Task).where(Task.id == doomed_id))

        logger.debug(f"Deleted {len(doomed)} tasks under {task_id}")

    async def list_tasks(self, task_filter: TaskFilter) -> list[Task]:
        query = select(Task)
        if task_filter.parent_task_id is not None:
            query = query.where(Task.parent_task_id == task_filter.parent_task_id)
        if task_filter.assigned_to is not None:
            query = query.where(Task.assigned_to == task_filter.assigned_to)
        if task_filter.test_period_id is not None:
            query = query.where(Task.test_period_id == task_filter.test_period_id)
        if task_filter.no_test_period:
            query = query.where(Task.test_period_id.is_(None))
        if task_filter.learning_stage is not None:
            query = query.where(Task.learning_stage == task_filter.learning_stage)
        if task_filter.cycle_number is not None:
            query = query.where(Task.cycle_number == task_filter.cycle_number)
        if task_filter.task_type is not None:
            query = query.where(Task.task_type == task_filter.task_type)
        statuses = task_filter.statuses()
        if statuses is not None:
            query = query.where(Task.status.in_(statuses))
        query = query.order_by(Task.due_date, Task.created_at)

        async with self._session("list_tasks") as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    # ---- mistakes & relationships ----

    async def create_mistake_records(
        self,
        task_id: uuid.UUID,
        units: list[int],
        cycle_number: int,
    ) -> None:
        async with self._session("create_mistake_records") as session:
            session.add_all([
                Mistake(task_id=task_id, unit_number=unit, cycle_number=cycle_number)
                for unit in units
            ])

    async def list_mistakes(
        self,
        task_id: uuid.UUID,
        cycle_number: int | None = None,
    ) -> list[Mistake]:
        query = select(Mistake).where(Mistake.task_id == task_id)
        if cycle_number is not None:
            query = query.where(Mistake.cycle_number == cycle_number)
        async with self._session("list_mistakes") as session:
            result = await session.execute(query.order_by(Mistake.created_at))
            return list(result.scalars().all())

    async def create_relationship(
        self,
        parent_task_id: uuid.UUID,
        child_task_id: uuid.UUID,
        cycle_number: int,
        unit_reference: int,
    ) -> None:
        async with self._session("create_relationship") as session:
            session.add(TaskRelationship(
                parent_task_id=parent_task_id,
                child_task_id=child_task_id,
                cycle_number=cycle_number,
                unit_reference=unit_reference,
            ))

    async def list_relationships(self, parent_task_id: uuid.UUID) -> list[TaskRelationship]:
        async with self._session("list_relationships") as session:
            result = await session.execute(
                select(TaskRelationship)
                .where(TaskRelationship.parent_task_id == parent_task_id)
                .order_by(TaskRelationship.created_at)
            )
            return list(result.scalars().all())

    # ---- roster ----

    async def list_students_for_grade(self, grade_id: str) -> list[StudentRef]:
        async with self._session("list_students_for_grade") as session:
            result = await session.execute(
                select(Student)
                .where(Student.grade_id == grade_id)
                .order_by(Student.display_name)
            )
            return [
                StudentRef(id=s.id, display_name=s.display_name)
                for s in result.scalars().all()
            ]
