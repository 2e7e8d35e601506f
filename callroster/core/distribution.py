"""Fair-share distribution of work items across eligible agents.

For ``N`` items and ``K`` agents every agent receives ``N // K`` items and
the ``N % K`` least-loaded agents receive one extra.  Agents are ordered by
their current load, ascending, with ties kept in enumeration order, so the
extra items always land on the agents carrying the least work.  Planned
counts therefore sum to ``N`` and differ by at most one.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence, TypeVar

from callroster.core.schema import AgentAssignment, DistributionMetrics, DistributionResult
from callroster.domain import Agent

T = TypeVar("T")


@dataclass(slots=True)
class PlanEntry:
    agent_id: str
    current_load: int
    planned_count: int

    @property
    def final_load(self) -> int:
        return self.current_load + self.planned_count


@dataclass
class DistributionPlan:
    entries: list[PlanEntry]
    metrics: DistributionMetrics
    unplaced: int = 0
    _counts: dict[str, int] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._counts = {entry.agent_id: entry.planned_count for entry in self.entries}

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def planned_counts(self) -> dict[str, int]:
        return dict(self._counts)

    def assign_round_robin(self, items: Sequence[T]) -> list[tuple[str, list[T]]]:
        """Deal ``items`` one per agent per pass, in plan order."""

        self._check_size(items)
        buckets: list[list[T]] = [[] for _ in self.entries]
        position = 0
        for item in items:
            while len(buckets[position]) >= self.entries[position].planned_count:
                position = (position + 1) % len(self.entries)
            buckets[position].append(item)
            position = (position + 1) % len(self.entries)
        return [(entry.agent_id, bucket) for entry, bucket in zip(self.entries, buckets)]

    def assign_in_blocks(self, items: Sequence[T]) -> list[tuple[str, list[T]]]:
        """Hand each agent a contiguous run of ``items``, in plan order."""

        self._check_size(items)
        assignments: list[tuple[str, list[T]]] = []
        start = 0
        for entry in self.entries:
            stop = start + entry.planned_count
            assignments.append((entry.agent_id, list(items[start:stop])))
            start = stop
        return assignments

    def _check_size(self, items: Sequence[object]) -> None:
        if self.is_empty:
            raise ValueError("cannot assign items with an empty plan")
        if len(items) != self.metrics.total_tasks:
            raise ValueError(f"plan covers {self.metrics.total_tasks} items, got {len(items)}")

    def to_result(self, assignments: Sequence[tuple[str, Sequence[str]]]) -> DistributionResult:
        return DistributionResult(
            assignments=[AgentAssignment(agent_id=agent_id, task_ids=list(task_ids)) for agent_id, task_ids in assignments],
            metrics=self.metrics,
        )


def workload_variance(totals: Sequence[int]) -> float:
    if not totals:
        return 0.0
    average = sum(totals) / len(totals)
    return sum((value - average) ** 2 for value in totals) / len(totals)


def plan_distribution(items: Sequence[object], agents: Sequence[Agent]) -> DistributionPlan:
    total = len(items)
    if not agents:
        return DistributionPlan(
            entries=[],
            metrics=DistributionMetrics(
                total_tasks=total,
                active_agents=0,
                base_tasks_per_agent=0,
                remaining_tasks=total,
                average_tasks_per_agent=0.0,
                workload_variance=0.0,
            ),
            unplaced=total,
        )

    count = len(agents)
    base, remainder = divmod(total, count)

    # sorted() is stable, so equal loads keep enumeration order
    ordered = sorted(agents, key=lambda agent: agent.load)
    entries = [
        PlanEntry(
            agent_id=agent.agent_id,
            current_load=agent.load,
            planned_count=base + (1 if index < remainder else 0),
        )
        for index, agent in enumerate(ordered)
    ]

    metrics = DistributionMetrics(
        total_tasks=total,
        active_agents=count,
        base_tasks_per_agent=base,
        remaining_tasks=remainder,
        average_tasks_per_agent=total / count,
        workload_variance=workload_variance([entry.final_load for entry in entries]),
    )
    return DistributionPlan(entries=entries, metrics=metrics)
