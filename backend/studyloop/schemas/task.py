import uuid
from datetime import date, datetime
from pydantic import BaseModel, Field, model_validator

from studyloop.models.enums import (
    FINAL_CYCLE,
    STAGES_BY_CYCLE,
    LearningStage,
    Priority,
    TaskStatus,
    TaskType,
    UnitType,
)


class TaskCreate(BaseModel):
    """
    Schema for creating a new task.

    The task_type / cycle_number / learning_stage combination is checked here,
    so a badly shaped task never reaches the store:
    - subtask <=> parent_task_id is set
    - perfect <=> cycle 3, and only as a subtask
    - review only on cycle 2, overview only on cycle 1
    """
    title: str = Field(min_length=1)
    description: str | None = None
    subject: str | None = None
    priority: Priority = Priority.MEDIUM
    status: TaskStatus = TaskStatus.NOT_STARTED

    task_type: TaskType = TaskType.SINGLE
    parent_task_id: uuid.UUID | None = None

    cycle_number: int = Field(default=1, ge=1, le=FINAL_CYCLE)
    learning_stage: LearningStage = LearningStage.OVERVIEW

    total_units: int | None = Field(default=None, ge=0)
    completed_units: int = Field(default=0, ge=0)
    unit_type: UnitType | None = None
    estimated_time: int = Field(default=30, ge=0)
    actual_time: int | None = Field(default=None, ge=0)

    start_date: date | None = None  # Defaults to due_date if not provided
    due_date: date

    assigned_to: str
    created_by: str
    test_period_id: str | None = None
    grade_id: str | None = None
    is_shared: bool = False

    @model_validator(mode="after")
    def check_shape(self) -> "TaskCreate":
        if self.task_type == TaskType.SUBTASK and self.parent_task_id is None:
            raise ValueError("subtask requires parent_task_id")
        if self.task_type != TaskType.SUBTASK and self.parent_task_id is not None:
            raise ValueError(f"{self.task_type.value} task cannot have parent_task_id")

        allowed = STAGES_BY_CYCLE[self.cycle_number]
        if self.learning_stage not in allowed:
            raise ValueError(
                f"learning_stage '{self.learning_stage.value}' is not valid "
                f"for cycle {self.cycle_number}"
            )
        if self.learning_stage == LearningStage.PERFECT and self.task_type != TaskType.SUBTASK:
            raise ValueError("final-check task must be a subtask")

        if self.total_units is not None and self.completed_units > self.total_units:
            raise ValueError("completed_units cannot exceed total_units")
        if self.start_date is None:
            self.start_date = self.due_date
        return self

    @property
    def is_finalization(self) -> bool:
        """True for the cycle-3 final check of a parent."""
        return (
            self.cycle_number == FINAL_CYCLE
            and self.learning_stage == LearningStage.PERFECT
        )


class TaskRead(BaseModel):
    """Schema for reading a task."""
    id: uuid.UUID
    title: str
    description: str | None
    subject: str | None
    priority: Priority
    status: TaskStatus
    task_type: TaskType
    parent_task_id: uuid.UUID | None
    cycle_number: int
    learning_stage: LearningStage
    total_units: int | None
    completed_units: int
    unit_type: UnitType | None
    estimated_time: int
    actual_time: int | None
    start_date: date
    due_date: date
    completed_at: datetime | None
    assigned_to: str
    created_by: str
    test_period_id: str | None
    grade_id: str | None
    is_shared: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CompleteRequest(BaseModel):
    """Body for marking a task complete."""
    actual_time: int | None = Field(default=None, ge=0)
    mistake_units: list[int] = Field(default_factory=list)


class ProgressUpdate(BaseModel):
    """Body for reporting progress on a task."""
    completed_units: int = Field(ge=0)


class MistakeSubmission(BaseModel):
    """Units answered incorrectly on a completed task."""
    units: list[int] = Field(min_length=1)
    cycle_number: int | None = Field(default=None, ge=1)


class FinalizationRead(BaseModel):
    state: str
    parent_task_id: uuid.UUID | None = None
    final_task_id: uuid.UUID | None = None
    error: str | None = None


class CompletionRead(BaseModel):
    """A completed task and what the finalization check did afterwards."""
    task: TaskRead
    finalization: FinalizationRead | None = None
