import uuid
from datetime import datetime
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field

from studyloop.models.task import utcnow


class Mistake(SQLModel, table=True):
    """
    A unit (page, problem) answered incorrectly during one cycle of a task.

    Written once by the mistake recorder; removed only when the task is deleted.
    """

    __tablename__ = "task_mistakes"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    task_id: uuid.UUID = Field(foreign_key="tasks.id", index=True, ondelete="CASCADE")
    unit_number: int
    cycle_number: int = Field(default=1, ge=1)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class TaskRelationship(SQLModel, table=True):
    """
    Edge from a workload parent to a generated review task.

    parent_task_id -> child_task_id, annotated with the unit the child reviews.
    Append-only.
    """

    __tablename__ = "task_relationships"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    parent_task_id: uuid.UUID = Field(foreign_key="tasks.id", index=True, ondelete="CASCADE")
    child_task_id: uuid.UUID = Field(foreign_key="tasks.id", index=True, ondelete="CASCADE")
    cycle_number: int = Field(default=2, ge=1)
    unit_reference: int
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
