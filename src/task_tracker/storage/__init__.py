"""Storage backends and models."""

from task_tracker.storage.base import TaskStorage
from task_tracker.storage.memory import InMemoryTaskStorage
from task_tracker.storage.models import NewTask, Priority, TaskChanges, TaskRecord, UserRecord
from task_tracker.storage.postgres import PostgresTaskStorage

__all__ = [
    "InMemoryTaskStorage",
    "NewTask",
    "PostgresTaskStorage",
    "Priority",
    "TaskChanges",
    "TaskRecord",
    "TaskStorage",
    "UserRecord",
]
