import uuid
from datetime import date, datetime, timezone
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field

from studyloop.models.enums import (
    LearningStage,
    Priority,
    TaskStatus,
    TaskType,
    UnitType,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Task(SQLModel, table=True):
    """
    A unit of study work.

    Key fields:
    - task_type: single (standalone), parent (bulk container) or subtask
    - parent_task_id: back-reference to the parent; children are found by query
    - cycle_number / learning_stage: which pass through the material this is
    - finalizes_task_id: set only on the cycle-3 final check, equal to the
      parent id. The unique index guarantees one final check per parent.
    """

    __tablename__ = "tasks"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    title: str = Field(index=True)
    description: str | None = Field(default=None)
    subject: str | None = Field(default=None, index=True)
    priority: Priority = Field(default=Priority.MEDIUM)
    status: TaskStatus = Field(default=TaskStatus.NOT_STARTED, index=True)

    # Tree shape
    task_type: TaskType = Field(default=TaskType.SINGLE)
    parent_task_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="tasks.id",
        index=True,
        ondelete="CASCADE",
    )
    finalizes_task_id: uuid.UUID | None = Field(default=None, unique=True)

    # Learning cycle
    cycle_number: int = Field(default=1, ge=1)
    learning_stage: LearningStage = Field(default=LearningStage.OVERVIEW, index=True)

    # Workload
    total_units: int | None = Field(default=None, ge=0)
    completed_units: int = Field(default=0, ge=0)
    unit_type: UnitType | None = Field(default=None)
    estimated_time: int = Field(default=30, ge=0)  # minutes
    actual_time: int | None = Field(default=None, ge=0)

    # Schedule
    start_date: date = Field(default_factory=date.today)
    due_date: date = Field(default_factory=date.today, index=True)
    completed_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))

    # Ownership (ids owned by the identity service)
    assigned_to: str = Field(index=True)
    created_by: str
    test_period_id: str | None = Field(default=None, index=True)
    grade_id: str | None = Field(default=None)
    is_shared: bool = Field(default=False)

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
