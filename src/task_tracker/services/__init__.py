"""Service layer: ownership policies and the task service that applies them."""

from task_tracker.services.policies import PolicyViolation
from task_tracker.services.tasks import TaskNotAccessible, TaskService

__all__ = ["PolicyViolation", "TaskNotAccessible", "TaskService"]
