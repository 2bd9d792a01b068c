from studyloop.models.enums import (
    LearningStage,
    Priority,
    TaskStatus,
    TaskType,
    UnitType,
)
from studyloop.models.task import Task
from studyloop.models.mistake import Mistake, TaskRelationship
from studyloop.models.student import Student

__all__ = [
    "LearningStage",
    "Priority",
    "TaskStatus",
    "TaskType",
    "UnitType",
    "Task",
    "Mistake",
    "TaskRelationship",
    "Student",
]
