from studyloop.schemas.task import (
    TaskCreate,
    TaskRead,
    CompleteRequest,
    ProgressUpdate,
    MistakeSubmission,
    FinalizationRead,
    CompletionRead,
)
from studyloop.schemas.workload import (
    SplitWorkloadRequest,
    PlannedWorkloadRead,
    CycleProgressRead,
    WorkloadTreeRead,
)
from studyloop.schemas.distribution import (
    StudentRef,
    DistributionRequest,
    DistributionReportRead,
    DistributionQueued,
)

__all__ = [
    "TaskCreate",
    "TaskRead",
    "CompleteRequest",
    "ProgressUpdate",
    "MistakeSubmission",
    "FinalizationRead",
    "CompletionRead",
    "SplitWorkloadRequest",
    "PlannedWorkloadRead",
    "CycleProgressRead",
    "WorkloadTreeRead",
    "StudentRef",
    "DistributionRequest",
    "DistributionReportRead",
    "DistributionQueued",
]
