from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, constr

from callroster.domain import TaskStatus


class SanitizedRecord(BaseModel):
    name: str
    phone: str
    notes: str = ""


class FieldValidationResult(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    sanitized: SanitizedRecord


class FailedRecord(BaseModel):
    row_number: int
    data: dict[str, Any]
    errors: list[str]


class BatchValidationResult(BaseModel):
    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    valid_records: list[SanitizedRecord] = Field(default_factory=list)
    failed_records: list[FailedRecord] = Field(default_factory=list)


class DistributionMetrics(BaseModel):
    total_tasks: int
    active_agents: int
    base_tasks_per_agent: int
    remaining_tasks: int
    average_tasks_per_agent: float
    workload_variance: float


class AgentAssignment(BaseModel):
    agent_id: str
    task_ids: list[str] = Field(default_factory=list)


class DistributionResult(BaseModel):
    assignments: list[AgentAssignment] = Field(default_factory=list)
    metrics: DistributionMetrics


class UploadResult(BaseModel):
    task_count: int
    distribution: DistributionResult
    warnings: list[str] = Field(default_factory=list)


AgentName = constr(strip_whitespace=True, min_length=1)
AgentEmail = constr(strip_whitespace=True, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
CountryCode = constr(strip_whitespace=True, pattern=r"^\+\d{1,4}$")


class AgentCreate(BaseModel):
    name: AgentName
    email: AgentEmail
    country_code: CountryCode = "+1"
    mobile_number: AgentName


class AgentUpdate(BaseModel):
    name: AgentName | None = None
    email: AgentEmail | None = None
    country_code: CountryCode | None = None
    mobile_number: AgentName | None = None
    is_active: bool | None = None


class TaskStatusUpdate(BaseModel):
    status: TaskStatus
