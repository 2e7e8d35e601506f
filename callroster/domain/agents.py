"""Domain entities for the agent pool."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(slots=True)
class Agent:
    """A worker that receives call records from the tenant's uploads."""

    agent_id: str
    tenant_id: str
    name: str
    email: str
    mobile_number: str
    country_code: str = "+1"
    is_active: bool = True
    assigned_tasks: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def load(self) -> int:
        return len(self.assigned_tasks)
