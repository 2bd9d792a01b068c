"""
Task store contract consumed by the learning-cycle engine.

The engine never talks to a database directly: every service takes a
TaskStore and only uses the operations below. Two implementations ship:

- SqlTaskStore: SQLModel/SQLAlchemy async (PostgreSQL in production)
- MemoryTaskStore: an in-process arena keyed by task id
"""

import uuid
from collections.abc import Collection
from dataclasses import dataclass, fields
from typing import Any, Protocol

from studyloop.exceptions import ValidationError
from studyloop.models import Mistake, Task, TaskRelationship
from studyloop.models.enums import LearningStage, TaskStatus, TaskType
from studyloop.schemas.distribution import StudentRef
from studyloop.schemas.task import TaskCreate


@dataclass
class TaskFilter:
    """
    Equality filters for list_tasks. None means "any".

    no_test_period restricts the result to tasks outside every test period
    (test_period_id IS NULL), which test_period_id=None cannot express.
    """
    parent_task_id: uuid.UUID | None = None
    assigned_to: str | None = None
    test_period_id: str | None = None
    status: TaskStatus | Collection[TaskStatus] | None = None
    learning_stage: LearningStage | None = None
    cycle_number: int | None = None
    task_type: TaskType | None = None
    no_test_period: bool = False

    def statuses(self) -> tuple[TaskStatus, ...] | None:
        """The status filter as a tuple, or None when unset."""
        if self.status is None:
            return None
        if isinstance(self.status, TaskStatus):
            return (self.status,)
        return tuple(self.status)

    def matches(self, task: Task) -> bool:
        """In-memory evaluation of the filter against one task."""
        for f in fields(self):
            if f.name in ("status", "no_test_period"):
                continue
            wanted = getattr(self, f.name)
            if wanted is not None and getattr(task, f.name) != wanted:
                return False
        if self.no_test_period and task.test_period_id is not None:
            return False
        statuses = self.statuses()
        if statuses is not None and task.status not in statuses:
            return False
        return True


def sort_key(task: Task) -> tuple:
    """Canonical list order: due date, then creation time."""
    return (task.due_date, task.created_at)


class TaskStore(Protocol):
    async def create_task(self, spec: TaskCreate) -> uuid.UUID:
        ...

    async def get_task(self, task_id: uuid.UUID) -> Task | None:
        ...

    async def update_task(self, task_id: uuid.UUID, fields: dict[str, Any]) -> None:
        ...

    async def delete_task(self, task_id: uuid.UUID) -> None:
        ...

    async def list_tasks(self, task_filter: TaskFilter) -> list[Task]:
        ...

    async def create_mistake_records(
        self,
        task_id: uuid.UUID,
        units: list[int],
        cycle_number: int,
    ) -> None:
        ...

    async def list_mistakes(
        self,
        task_id: uuid.UUID,
        cycle_number: int | None = None,
    ) -> list[Mistake]:
        ...

    async def create_relationship(
        self,
        parent_task_id: uuid.UUID,
        child_task_id: uuid.UUID,
        cycle_number: int,
        unit_reference: int,
    ) -> None:
        ...

    async def list_relationships(self, parent_task_id: uuid.UUID) -> list[TaskRelationship]:
        ...

    async def list_students_for_grade(self, grade_id: str) -> list[StudentRef]:
        ...


def task_row(spec: TaskCreate) -> dict[str, Any]:
    """Column values for a new task row built from a create spec."""
    row = spec.model_dump()
    row["finalizes_task_id"] = spec.parent_task_id if spec.is_finalization else None
    return row


UPDATABLE_FIELDS = frozenset({
    "title",
    "description",
    "subject",
    "priority",
    "status",
    "total_units",
    "completed_units",
    "unit_type",
    "estimated_time",
    "actual_time",
    "start_date",
    "due_date",
    "completed_at",
    "assigned_to",
    "test_period_id",
})


def check_update_fields(fields_: dict[str, Any]) -> None:
    """Reject updates to identity or tree-shape columns."""
    unknown = set(fields_) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {sorted(unknown)}")
