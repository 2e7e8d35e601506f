"""Domain entities for uploaded call records."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

TaskStatus = Literal["pending", "in-progress", "completed", "failed"]

ACTIVE_TASK_STATUSES: frozenset[str] = frozenset({"pending", "in-progress"})


@dataclass(slots=True)
class Task:
    """A single call record owned by a tenant and assigned to one agent."""

    task_id: str
    tenant_id: str
    name: str
    phone: str
    sequence: int
    notes: str = ""
    status: TaskStatus = "pending"
    assigned_agent_id: str | None = None
    completed_at: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_TASK_STATUSES
