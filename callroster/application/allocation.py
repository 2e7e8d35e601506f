"""Application service layer for uploads and agent pool management."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from callroster.application.redistribution import RedistributionOrchestrator
from callroster.core.config import AllocationSettings, get_settings
from callroster.core.distribution import plan_distribution
from callroster.core.eligibility import filter_eligible_agents
from callroster.core.errors import ConflictError, EligibilityError, NotFoundError, ValidationError
from callroster.core.files import validate_upload
from callroster.core.schema import (
    AgentCreate,
    AgentUpdate,
    DistributionResult,
    UploadResult,
)
from callroster.core.validation import PhoneRegistry, validate_batch
from callroster.domain import Agent, Task
from callroster.infrastructure import (
    AllocationRepository,
    InMemoryAllocationRepository,
    RecordSource,
    SpreadsheetRecordSource,
    TenantLocks,
)

logger = logging.getLogger(__name__)


class AllocationService:
    """Coordinates upload, allocation and agent pool use cases."""

    def __init__(
        self,
        repository: AllocationRepository,
        locks: TenantLocks | None = None,
        settings: AllocationSettings | None = None,
    ) -> None:
        self._repository = repository
        self._locks = locks or TenantLocks()
        self._settings = settings
        self._orchestrator = RedistributionOrchestrator(repository, self._locks)

    @property
    def settings(self) -> AllocationSettings:
        return self._settings or get_settings()

    @property
    def repository(self) -> AllocationRepository:
        return self._repository

    # ------------------------------------------------------------------
    # agents
    # ------------------------------------------------------------------
    def list_agents(self, tenant_id: str) -> list[Agent]:
        return self._repository.list_agents(tenant_id)

    def get_agent(self, tenant_id: str, agent_id: str) -> Agent:
        agent = self._repository.get_agent(tenant_id, agent_id)
        if agent is None:
            raise NotFoundError("Agent not found")
        return agent

    def create_agent(self, tenant_id: str, payload: AgentCreate) -> Agent:
        with self._locks.hold(tenant_id):
            if self._repository.find_agent_by_email(tenant_id, payload.email):
                raise ConflictError("Agent already exists")

            agent = Agent(
                agent_id=self._repository.next_agent_id(),
                tenant_id=tenant_id,
                name=payload.name,
                email=payload.email,
                country_code=payload.country_code,
                mobile_number=payload.mobile_number,
            )
            self._repository.add_agent(agent)
            logger.info("Created agent %s for tenant %s", agent.agent_id, tenant_id)
            self._orchestrator.redistribute(tenant_id)
            return self.get_agent(tenant_id, agent.agent_id)

    def update_agent(self, tenant_id: str, agent_id: str, payload: AgentUpdate) -> Agent:
        with self._locks.hold(tenant_id):
            agent = self.get_agent(tenant_id, agent_id)
            changes = payload.model_dump(exclude_none=True)

            email = changes.get("email")
            if email and email.lower() != agent.email.lower():
                existing = self._repository.find_agent_by_email(tenant_id, email)
                if existing and existing.agent_id != agent_id:
                    raise ConflictError("Agent already exists")

            if not changes:
                return agent

            updated = self._repository.update_agent(tenant_id, agent_id, **changes)
            if "is_active" in changes and changes["is_active"] != agent.is_active:
                logger.info(
                    "Agent %s %s; rebalancing tenant %s",
                    agent_id,
                    "activated" if updated.is_active else "deactivated",
                    tenant_id,
                )
                self._orchestrator.redistribute(tenant_id)
                updated = self.get_agent(tenant_id, agent_id)
            return updated

    def delete_agent(self, tenant_id: str, agent_id: str) -> int:
        """Delete an agent, handing its tasks to the remaining active agents."""

        with self._locks.hold(tenant_id):
            reassigned = self._orchestrator.reassign_from(tenant_id, agent_id)
            self._repository.delete_agent(tenant_id, agent_id)
            logger.info("Deleted agent %s for tenant %s", agent_id, tenant_id)
            if reassigned:
                self._orchestrator.redistribute(tenant_id)
            return reassigned

    def redistribute(self, tenant_id: str) -> DistributionResult:
        return self._orchestrator.redistribute(tenant_id)

    # ------------------------------------------------------------------
    # uploads
    # ------------------------------------------------------------------
    def upload_file(
        self,
        tenant_id: str,
        *,
        filename: str | None,
        content: bytes,
        content_type: str | None = None,
    ) -> UploadResult:
        validate_upload(filename, len(content), content_type, self.settings)
        source = SpreadsheetRecordSource(content, filename or "")
        return self.upload_records(tenant_id, source)

    def upload_records(self, tenant_id: str, records: RecordSource) -> UploadResult:
        """Validate a batch and allocate it; nothing is stored unless every row is valid."""

        settings = self.settings
        with self._locks.hold(tenant_id):
            existing: list[str] = []
            if settings.enforce_tenant_phone_uniqueness:
                existing = [task.phone for task in self._repository.list_tasks(tenant_id) if task.is_active]

            batch = validate_batch(records, settings, PhoneRegistry(existing))
            if not batch.is_valid:
                logger.info(
                    "Rejected upload for tenant %s: %s (%d failed rows)",
                    tenant_id,
                    "; ".join(batch.errors),
                    len(batch.failed_records),
                )
                raise ValidationError(
                    batch.errors[0],
                    errors=batch.errors,
                    warnings=batch.warnings,
                    failed_records=[record.model_dump() for record in batch.failed_records],
                )

            try:
                eligibility = filter_eligible_agents(self._repository.list_agents(tenant_id), settings)
            except EligibilityError as exc:
                logger.info("Rejected upload for tenant %s: %s", tenant_id, "; ".join(exc.errors))
                raise
            if eligibility.reactivated:
                self._repository.set_agents_active(tenant_id, eligibility.reactivated)

            plan = plan_distribution(batch.valid_records, eligibility.eligible)
            if plan.is_empty:
                raise EligibilityError("At least 1 agent is required for task distribution")

            tasks = [
                Task(
                    task_id=self._repository.next_task_id(),
                    tenant_id=tenant_id,
                    name=record.name,
                    phone=record.phone,
                    notes=record.notes,
                    sequence=self._repository.next_sequence(),
                )
                for record in batch.valid_records
            ]
            assignments = plan.assign_round_robin(tasks)
            owners = {task.task_id: agent_id for agent_id, bucket in assignments for task in bucket}

            for task in tasks:
                task.assigned_agent_id = owners[task.task_id]
                self._repository.add_task(task)
                self._repository.push_assigned_task(tenant_id, task.assigned_agent_id, task.task_id)

            logger.info(
                "Uploaded %d tasks for tenant %s across %d agents",
                len(tasks),
                tenant_id,
                plan.metrics.active_agents,
            )
            distribution = plan.to_result(
                [(agent_id, [task.task_id for task in bucket]) for agent_id, bucket in assignments]
            )
            return UploadResult(
                task_count=len(tasks),
                distribution=distribution,
                warnings=[*batch.warnings, *eligibility.errors, *eligibility.warnings],
            )

    # ------------------------------------------------------------------
    # task lifecycle
    # ------------------------------------------------------------------
    def list_tasks(self, tenant_id: str) -> list[Task]:
        tasks = self._repository.list_tasks(tenant_id)
        tasks.reverse()
        return tasks

    def list_tasks_for_agent(self, tenant_id: str, agent_id: str) -> list[Task]:
        tasks = self._repository.list_tasks_for_agent(tenant_id, agent_id)
        tasks.reverse()
        return tasks

    def get_task(self, tenant_id: str, task_id: str) -> Task:
        task = self._repository.get_task(tenant_id, task_id)
        if task is None:
            raise NotFoundError("Task not found")
        return task

    def update_task_status(self, tenant_id: str, task_id: str, status: str) -> Task:
        task = self.get_task(tenant_id, task_id)
        if status == "completed":
            completed_at = task.completed_at if task.status == "completed" else datetime.now(timezone.utc)
        else:
            completed_at = None
        return self._repository.update_task(tenant_id, task_id, status=status, completed_at=completed_at)

    def delete_task(self, tenant_id: str, task_id: str) -> None:
        with self._locks.hold(tenant_id):
            task = self.get_task(tenant_id, task_id)
            if task.assigned_agent_id:
                self._repository.pull_assigned_task(tenant_id, task.assigned_agent_id, task_id)
            self._repository.delete_task(tenant_id, task_id)

    # ------------------------------------------------------------------
    # testing helpers
    # ------------------------------------------------------------------
    def reset(self) -> None:
        self._repository.reset()


_repository = InMemoryAllocationRepository()
_service = AllocationService(_repository)


def get_allocation_service() -> AllocationService:
    """Return the singleton allocation service for the process."""

    return _service


def reset_allocation_state() -> None:
    """Reset the in-memory store (used in tests)."""

    _service.reset()
