"""Domain layer definitions."""

from .agents import Agent
from .tasks import ACTIVE_TASK_STATUSES, Task, TaskStatus

__all__ = [
    "ACTIVE_TASK_STATUSES",
    "Agent",
    "Task",
    "TaskStatus",
]
