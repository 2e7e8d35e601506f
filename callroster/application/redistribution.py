"""Rebalancing of existing task assignments when the agent pool changes.

Redistribution is a full reset: every assignment of the tenant is cleared
and rebuilt from a fresh plan over all tasks and all active agents.  The
clear-then-reassign sequence runs under the tenant lock.  Store writes are
not rolled back on failure; a crash part-way can leave tasks unassigned until
``redistribute`` is run again, which is safe because the resulting per-agent
counts only depend on the number of tasks and active agents.
"""
from __future__ import annotations

import logging
from dataclasses import replace

from callroster.core.distribution import plan_distribution
from callroster.core.errors import NotFoundError, StateError
from callroster.core.schema import DistributionResult
from callroster.infrastructure import AllocationRepository, TenantLocks

logger = logging.getLogger(__name__)


class RedistributionOrchestrator:
    def __init__(self, repository: AllocationRepository, locks: TenantLocks) -> None:
        self._repository = repository
        self._locks = locks

    def assign(self, tenant_id: str, task_id: str, agent_id: str, *, previous: str | None = None) -> None:
        """Point ``task_id`` at ``agent_id`` and keep both sides in step."""

        if previous and previous != agent_id:
            self._repository.pull_assigned_task(tenant_id, previous, task_id)
        self._repository.update_task(tenant_id, task_id, assigned_agent_id=agent_id)
        self._repository.push_assigned_task(tenant_id, agent_id, task_id)

    def redistribute(self, tenant_id: str) -> DistributionResult:
        with self._locks.hold(tenant_id):
            tasks = self._repository.list_tasks(tenant_id)
            agents = self._repository.list_agents(tenant_id, active_only=True)

            if not tasks or not agents:
                logger.info(
                    "Skipping redistribution for tenant %s: %d tasks, %d active agents",
                    tenant_id,
                    len(tasks),
                    len(agents),
                )
                plan = plan_distribution(tasks, agents)
                return plan.to_result([(entry.agent_id, []) for entry in plan.entries])

            self._repository.clear_assignments(tenant_id)
            cleared = [replace(agent, assigned_tasks=[]) for agent in agents]
            plan = plan_distribution(tasks, cleared)
            assignments = plan.assign_in_blocks(tasks)

            try:
                for agent_id, bucket in assignments:
                    for task in bucket:
                        self.assign(tenant_id, task.task_id, agent_id)
            except Exception:
                logger.exception("Redistribution for tenant %s failed part-way; retry to reassign remaining tasks", tenant_id)
                raise

            logger.info(
                "Redistributed %d tasks among %d agents for tenant %s (variance %.4f)",
                len(tasks),
                len(agents),
                tenant_id,
                plan.metrics.workload_variance,
            )
            return plan.to_result(
                [(agent_id, [task.task_id for task in bucket]) for agent_id, bucket in assignments]
            )

    def reassign_from(self, tenant_id: str, agent_id: str) -> int:
        """Move every task of ``agent_id`` onto the other active agents.

        Tasks are dealt ``remaining[i % len(remaining)]`` in creation order.
        Returns the number of tasks moved.
        """

        with self._locks.hold(tenant_id):
            agent = self._repository.get_agent(tenant_id, agent_id)
            if agent is None:
                raise NotFoundError("Agent not found")

            tasks = self._repository.list_tasks_for_agent(tenant_id, agent_id)
            if not tasks:
                return 0

            remaining = [
                candidate
                for candidate in self._repository.list_agents(tenant_id, active_only=True)
                if candidate.agent_id != agent_id
            ]
            if not remaining:
                raise StateError(
                    "Cannot delete the last active agent. There must be at least one agent to handle tasks."
                )

            for index, task in enumerate(tasks):
                target = remaining[index % len(remaining)]
                self.assign(tenant_id, task.task_id, target.agent_id, previous=agent_id)

            self._repository.clear_assigned_tasks(tenant_id, agent_id)
            logger.info("Reassigned %d tasks away from agent %s", len(tasks), agent_id)
            return len(tasks)
