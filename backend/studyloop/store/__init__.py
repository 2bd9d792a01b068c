from studyloop.store.base import TaskFilter, TaskStore
from studyloop.store.memory import MemoryTaskStore
from studyloop.store.sql import SqlTaskStore

__all__ = [
    "TaskFilter",
    "TaskStore",
    "MemoryTaskStore",
    "SqlTaskStore",
]
