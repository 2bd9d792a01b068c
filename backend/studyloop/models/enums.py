"""
Enumeration types shared by models, schemas and services.
"""

from enum import Enum


class TaskType(str, Enum):
    """Position of a task in a workload tree."""
    SINGLE = "single"
    PARENT = "parent"
    SUBTASK = "subtask"


class TaskStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class LearningStage(str, Enum):
    """Semantic label of a pass through the material."""
    OVERVIEW = "overview"
    REVIEW = "review"
    MASTERY = "mastery"
    PERFECT = "perfect"


class UnitType(str, Enum):
    PAGES = "pages"
    PROBLEMS = "problems"
    HOURS = "hours"
    SECTIONS = "sections"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


OPEN_STATUSES = (TaskStatus.NOT_STARTED, TaskStatus.IN_PROGRESS)

INITIAL_CYCLE = 1
REVIEW_CYCLE = 2
FINAL_CYCLE = 3

# Stages allowed on each cycle number
STAGES_BY_CYCLE = {
    INITIAL_CYCLE: {LearningStage.OVERVIEW, LearningStage.MASTERY},
    REVIEW_CYCLE: {LearningStage.REVIEW, LearningStage.MASTERY},
    FINAL_CYCLE: {LearningStage.PERFECT},
}
