import uuid
from pydantic import BaseModel, Field


class StudentRef(BaseModel):
    """A distribution target."""
    id: str
    display_name: str


class DistributionRequest(BaseModel):
    """Schema for distributing a template task tree to students."""
    template_task_id: uuid.UUID
    grade_id: str
    targets: list[StudentRef] | None = None  # Whole grade when omitted


class DistributionReportRead(BaseModel):
    """Aggregate result of a distribution run."""
    success_count: int
    error_count: int
    errors: list[str] = Field(default_factory=list)
    created_parent_ids: dict[str, uuid.UUID] = Field(default_factory=dict)
    failed_assignee_ids: list[str] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class DistributionQueued(BaseModel):
    job_id: str | None
    status: str = "queued"
