"""
In-memory task store.

An arena of rows keyed by id, with the same ordering, filtering and
uniqueness rules as the SQL store. Used for what-if planning, local demos
and the engine test-suite. Rows are copied on the way in and out, so callers
never hold a live reference into the arena.
"""

import uuid
from typing import Any

from studyloop.exceptions import DuplicateFinalizationError, NotFoundError
from studyloop.logging_config import get_logger
from studyloop.models import Mistake, Task, TaskRelationship
from studyloop.models.task import utcnow
from studyloop.schemas.distribution import StudentRef
from studyloop.schemas.task import TaskCreate
from studyloop.store.base import TaskFilter, check_update_fields, sort_key, task_row

logger = get_logger(__name__)


class MemoryTaskStore:
    """TaskStore implementation backed by plain dictionaries."""

    def __init__(self) -> None:
        self.tasks: dict[uuid.UUID, dict[str, Any]] = {}
        self.mistakes: list[Mistake] = []
        self.relationships: list[TaskRelationship] = []
        self.students: dict[str, list[StudentRef]] = {}

    def add_student(self, grade_id: str, student_id: str, display_name: str) -> StudentRef:
        """Register a roster entry for list_students_for_grade."""
        student = StudentRef(id=student_id, display_name=display_name)
        self.students.setdefault(grade_id, []).append(student)
        return student

    # ---- tasks ----

    async def create_task(self, spec: TaskCreate) -> uuid.UUID:
        row = task_row(spec)
        finalizes = row["finalizes_task_id"]
        if finalizes is not None and any(
            r["finalizes_task_id"] == finalizes for r in self.tasks.values()
        ):
            raise DuplicateFinalizationError(str(finalizes))
        if spec.parent_task_id is not None and spec.parent_task_id not in self.tasks:
            raise NotFoundError("Parent task", str(spec.parent_task_id))

        task = Task(**row)
        self.tasks[task.id] = task.model_dump()
        return task.id

    async def get_task(self, task_id: uuid.UUID) -> Task | None:
        row = self.tasks.get(task_id)
        if row is None:
            return None
        return Task(**row)

    async def update_task(self, task_id: uuid.UUID, fields: dict[str, Any]) -> None:
        check_update_fields(fields)
        row = self.tasks.get(task_id)
        if row is None:
            raise NotFoundError("Task", str(task_id))
        row.update(fields)
        row["updated_at"] = utcnow()

    async def delete_task(self, task_id: uuid.UUID) -> None:
        if task_id not in self.tasks:
            raise NotFoundError("Task", str(task_id))

        doomed = {task_id}
        frontier = [task_id]
        while frontier:
            current = frontier.pop()
            for child_id, row in self.tasks.items():
                if row["parent_task_id"] == current and child_id not in doomed:
                    doomed.add(child_id)
                    frontier.append(child_id)

        for doomed_id in doomed:
            del self.tasks[doomed_id]
        self.mistakes = [m for m in self.mistakes if m.task_id not in doomed]
        self.relationships = [
            r for r in self.relationships
            if r.parent_task_id not in doomed and r.child_task_id not in doomed
        ]
        logger.debug(f"Deleted {len(doomed)} tasks under {task_id}")

    async def list_tasks(self, task_filter: TaskFilter) -> list[Task]:
        tasks = [Task(**row) for row in self.tasks.values()]
        return sorted((t for t in tasks if task_filter.matches(t)), key=sort_key)

    # ---- mistakes & relationships ----

    async def create_mistake_records(
        self,
        task_id: uuid.UUID,
        units: list[int],
        cycle_number: int,
    ) -> None:
        if task_id not in self.tasks:
            raise NotFoundError("Task", str(task_id))
        self.mistakes.extend(
            Mistake(task_id=task_id, unit_number=unit, cycle_number=cycle_number)
            for unit in units
        )

    async def list_mistakes(
        self,
        task_id: uuid.UUID,
        cycle_number: int | None = None,
    ) -> list[Mistake]:
        return [
            m for m in self.mistakes
            if m.task_id == task_id
            and (cycle_number is None or m.cycle_number == cycle_number)
        ]

    async def create_relationship(
        self,
        parent_task_id: uuid.UUID,
        child_task_id: uuid.UUID,
        cycle_number: int,
        unit_reference: int,
    ) -> None:
        for related_id in (parent_task_id, child_task_id):
            if related_id not in self.tasks:
                raise NotFoundError("Task", str(related_id))
        self.relationships.append(TaskRelationship(
            parent_task_id=parent_task_id,
            child_task_id=child_task_id,
            cycle_number=cycle_number,
            unit_reference=unit_reference,
        ))

    async def list_relationships(self, parent_task_id: uuid.UUID) -> list[TaskRelationship]:
        return [r for r in self.relationships if r.parent_task_id == parent_task_id]

    # ---- roster ----

    async def list_students_for_grade(self, grade_id: str) -> list[StudentRef]:
        return list(self.students.get(grade_id, []))
