from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable

from callroster.core.config import AllocationSettings
from callroster.core.errors import EligibilityError
from callroster.domain import Agent

logger = logging.getLogger(__name__)


@dataclass
class EligibilityResult:
    eligible: list[Agent]
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    reactivated: list[str] = field(default_factory=list)


def filter_eligible_agents(agents: Iterable[Agent], settings: AllocationSettings) -> EligibilityResult:
    """Select the agents that may receive a new batch.

    When the tenant has agents but none of them is active, all of them are
    treated as reactivated; persisting that change is left to the caller.
    Raises :class:`EligibilityError` when nobody can take new work.
    """

    pool = list(agents)
    if not pool:
        raise EligibilityError("At least 1 agent is required for task distribution")

    candidates = [agent for agent in pool if agent.is_active]
    reactivated: list[str] = []
    if not candidates:
        candidates = [replace(agent, is_active=True) for agent in pool]
        reactivated = [agent.agent_id for agent in candidates]
        logger.info("No active agents found; reactivating %d agents", len(reactivated))

    eligible: list[Agent] = []
    errors: list[str] = []
    warnings: list[str] = []
    for agent in candidates:
        load = agent.load
        if load >= settings.max_tasks_per_agent:
            errors.append(f"Agent {agent.name} has reached maximum task capacity")
            continue
        if load >= settings.capacity_warning_threshold:
            warnings.append(f"Agent {agent.name} is approaching maximum task capacity")
        eligible.append(agent)

    for message in warnings:
        logger.warning(message)

    if not eligible:
        raise EligibilityError(
            "No agent has capacity for new tasks",
            errors=errors,
            warnings=warnings,
        )

    return EligibilityResult(eligible=eligible, warnings=warnings, errors=errors, reactivated=reactivated)
