import uuid
from datetime import date
from pydantic import BaseModel, Field

from studyloop.models.enums import Priority, UnitType
from studyloop.schemas.task import TaskRead


class SplitWorkloadRequest(BaseModel):
    """
    Schema for planning a bulk workload as daily subtasks.

    When range_start/range_end are given (pages or problems), total_units may be
    omitted and is taken from the range. With use_auto_calculation, daily_units
    is derived from the window between start_date and end_date.
    """
    title: str = Field(min_length=1)
    description: str | None = None
    subject: str | None = None
    priority: Priority = Priority.MEDIUM

    total_units: int | None = None
    unit_type: UnitType = UnitType.PAGES
    daily_units: int | None = None
    start_date: date | None = None  # Defaults to today if not provided
    end_date: date | None = None
    cycle_repeats: int = 1
    use_auto_calculation: bool = False
    estimated_time: int | None = Field(default=None, ge=0)

    range_start: int | None = None
    range_end: int | None = None

    assigned_to: str
    created_by: str
    test_period_id: str | None = None
    is_shared: bool = False


class PlannedWorkloadRead(BaseModel):
    """A persisted parent task with its daily subtasks."""
    parent: TaskRead
    subtasks: list[TaskRead]
    daily_units: int
    day_count: int


class CycleProgressRead(BaseModel):
    cycle_number: int
    total: int
    completed: int


class WorkloadTreeRead(BaseModel):
    """Summary of a workload tree."""
    parent_task_id: uuid.UUID
    task_count: int
    cycles: list[CycleProgressRead]
    review_units: dict[uuid.UUID, int]
    finalized: bool
