"""Infrastructure layer for agent and task persistence."""
from __future__ import annotations

import threading
from dataclasses import replace
from typing import Any, Protocol

from callroster.domain import Agent, Task


class AllocationRepository(Protocol):
    """Persistence contract for agents and tasks, scoped by tenant."""

    def next_agent_id(self) -> str: ...

    def next_task_id(self) -> str: ...

    def next_sequence(self) -> int: ...

    def add_agent(self, agent: Agent) -> Agent: ...

    def get_agent(self, tenant_id: str, agent_id: str) -> Agent | None: ...

    def find_agent_by_email(self, tenant_id: str, email: str) -> Agent | None: ...

    def list_agents(self, tenant_id: str, *, active_only: bool = False) -> list[Agent]: ...

    def update_agent(self, tenant_id: str, agent_id: str, **changes: Any) -> Agent: ...

    def set_agents_active(self, tenant_id: str, agent_ids: list[str], active: bool = True) -> None: ...

    def delete_agent(self, tenant_id: str, agent_id: str) -> None: ...

    def add_task(self, task: Task) -> Task: ...

    def get_task(self, tenant_id: str, task_id: str) -> Task | None: ...

    def list_tasks(self, tenant_id: str) -> list[Task]: ...

    def list_tasks_for_agent(self, tenant_id: str, agent_id: str) -> list[Task]: ...

    def update_task(self, tenant_id: str, task_id: str, **changes: Any) -> Task: ...

    def delete_task(self, tenant_id: str, task_id: str) -> None: ...

    def push_assigned_task(self, tenant_id: str, agent_id: str, task_id: str) -> None: ...

    def pull_assigned_task(self, tenant_id: str, agent_id: str, task_id: str) -> None: ...

    def clear_assigned_tasks(self, tenant_id: str, agent_id: str) -> None: ...

    def clear_assignments(self, tenant_id: str) -> None: ...

    def assignment_violations(self, tenant_id: str) -> list[str]: ...

    def reset(self) -> None: ...


def _copy_agent(agent: Agent) -> Agent:
    return replace(agent, assigned_tasks=list(agent.assigned_tasks))


def _copy_task(task: Task) -> Task:
    return replace(task)


class InMemoryAllocationRepository:
    """Simple in-memory repository for fast iteration and tests.

    Every method touches a single entity (or a single tenant-wide reset) under
    an internal lock, which gives the atomic per-entity updates the allocation
    service relies on.  Entities are copied on the way in and out.
    """

    def __init__(self) -> None:
        self._agents: dict[str, dict[str, Agent]] = {}
        self._tasks: dict[str, dict[str, Task]] = {}
        self._lock = threading.Lock()
        self._agent_counter = 0
        self._task_counter = 0
        self._sequence = 0

    # ------------------------------------------------------------------
    # internal helpers
    # ------------------------------------------------------------------
    def _tenant_agents(self, tenant_id: str) -> dict[str, Agent]:
        return self._agents.setdefault(tenant_id, {})

    def _tenant_tasks(self, tenant_id: str) -> dict[str, Task]:
        return self._tasks.setdefault(tenant_id, {})

    def _require_agent(self, tenant_id: str, agent_id: str) -> Agent:
        agent = self._tenant_agents(tenant_id).get(agent_id)
        if agent is None:
            raise KeyError(agent_id)
        return agent

    def _require_task(self, tenant_id: str, task_id: str) -> Task:
        task = self._tenant_tasks(tenant_id).get(task_id)
        if task is None:
            raise KeyError(task_id)
        return task

    # ------------------------------------------------------------------
    # identifiers
    # ------------------------------------------------------------------
    def next_agent_id(self) -> str:
        with self._lock:
            self._agent_counter += 1
            return f"agent-{self._agent_counter:05d}"

    def next_task_id(self) -> str:
        with self._lock:
            self._task_counter += 1
            return f"task-{self._task_counter:05d}"

    def next_sequence(self) -> int:
        with self._lock:
            self._sequence += 1
            return self._sequence

    # ------------------------------------------------------------------
    # agents
    # ------------------------------------------------------------------
    def add_agent(self, agent: Agent) -> Agent:
        with self._lock:
            self._tenant_agents(agent.tenant_id)[agent.agent_id] = _copy_agent(agent)
            return _copy_agent(agent)

    def get_agent(self, tenant_id: str, agent_id: str) -> Agent | None:
        with self._lock:
            agent = self._tenant_agents(tenant_id).get(agent_id)
            return _copy_agent(agent) if agent else None

    def find_agent_by_email(self, tenant_id: str, email: str) -> Agent | None:
        wanted = email.strip().lower()
        with self._lock:
            for agent in self._tenant_agents(tenant_id).values():
                if agent.email.lower() == wanted:
                    return _copy_agent(agent)
        return None

    def list_agents(self, tenant_id: str, *, active_only: bool = False) -> list[Agent]:
        with self._lock:
            return [
                _copy_agent(agent)
                for agent in self._tenant_agents(tenant_id).values()
                if agent.is_active or not active_only
            ]

    def update_agent(self, tenant_id: str, agent_id: str, **changes: Any) -> Agent:
        with self._lock:
            agent = self._require_agent(tenant_id, agent_id)
            for key, value in changes.items():
                setattr(agent, key, value)
            return _copy_agent(agent)

    def set_agents_active(self, tenant_id: str, agent_ids: list[str], active: bool = True) -> None:
        with self._lock:
            agents = self._tenant_agents(tenant_id)
            for agent_id in agent_ids:
                if agent_id in agents:
                    agents[agent_id].is_active = active

    def delete_agent(self, tenant_id: str, agent_id: str) -> None:
        with self._lock:
            self._tenant_agents(tenant_id).pop(agent_id, None)

    # ------------------------------------------------------------------
    # tasks
    # ------------------------------------------------------------------
    def add_task(self, task: Task) -> Task:
        with self._lock:
            self._tenant_tasks(task.tenant_id)[task.task_id] = _copy_task(task)
            return _copy_task(task)

    def get_task(self, tenant_id: str, task_id: str) -> Task | None:
        with self._lock:
            task = self._tenant_tasks(tenant_id).get(task_id)
            return _copy_task(task) if task else None

    def list_tasks(self, tenant_id: str) -> list[Task]:
        with self._lock:
            tasks = [_copy_task(task) for task in self._tenant_tasks(tenant_id).values()]
        tasks.sort(key=lambda task: task.sequence)
        return tasks

    def list_tasks_for_agent(self, tenant_id: str, agent_id: str) -> list[Task]:
        return [task for task in self.list_tasks(tenant_id) if task.assigned_agent_id == agent_id]

    def update_task(self, tenant_id: str, task_id: str, **changes: Any) -> Task:
        with self._lock:
            task = self._require_task(tenant_id, task_id)
            for key, value in changes.items():
                setattr(task, key, value)
            return _copy_task(task)

    def delete_task(self, tenant_id: str, task_id: str) -> None:
        with self._lock:
            self._tenant_tasks(tenant_id).pop(task_id, None)

    # ------------------------------------------------------------------
    # agent <-> task references
    # ------------------------------------------------------------------
    def push_assigned_task(self, tenant_id: str, agent_id: str, task_id: str) -> None:
        with self._lock:
            agent = self._require_agent(tenant_id, agent_id)
            if task_id not in agent.assigned_tasks:
                agent.assigned_tasks.append(task_id)

    def pull_assigned_task(self, tenant_id: str, agent_id: str, task_id: str) -> None:
        with self._lock:
            agent = self._tenant_agents(tenant_id).get(agent_id)
            if agent is not None and task_id in agent.assigned_tasks:
                agent.assigned_tasks.remove(task_id)

    def clear_assigned_tasks(self, tenant_id: str, agent_id: str) -> None:
        with self._lock:
            self._require_agent(tenant_id, agent_id).assigned_tasks.clear()

    def clear_assignments(self, tenant_id: str) -> None:
        with self._lock:
            for agent in self._tenant_agents(tenant_id).values():
                agent.assigned_tasks.clear()
            for task in self._tenant_tasks(tenant_id).values():
                task.assigned_agent_id = None

    def assignment_violations(self, tenant_id: str) -> list[str]:
        """Describe every mismatch between agent lists and task references."""

        with self._lock:
            agents = self._tenant_agents(tenant_id)
            tasks = self._tenant_tasks(tenant_id)
            violations: list[str] = []
            for agent in agents.values():
                expected = {task.task_id for task in tasks.values() if task.assigned_agent_id == agent.agent_id}
                listed = set(agent.assigned_tasks)
                if len(listed) != len(agent.assigned_tasks):
                    violations.append(f"{agent.agent_id}: duplicate task references")
                for task_id in sorted(listed - expected):
                    violations.append(f"{agent.agent_id}: lists {task_id} which points elsewhere")
                for task_id in sorted(expected - listed):
                    violations.append(f"{agent.agent_id}: missing {task_id}")
            for task in tasks.values():
                if task.assigned_agent_id is None:
                    violations.append(f"{task.task_id}: unassigned")
                elif task.assigned_agent_id not in agents:
                    violations.append(f"{task.task_id}: assigned to unknown agent {task.assigned_agent_id}")
            return violations

    def reset(self) -> None:
        with self._lock:
            self._agents.clear()
            self._tasks.clear()
            self._agent_counter = 0
            self._task_counter = 0
            self._sequence = 0
