"""Application services."""

from .allocation import AllocationService, get_allocation_service, reset_allocation_state
from .redistribution import RedistributionOrchestrator

__all__ = [
    "AllocationService",
    "RedistributionOrchestrator",
    "get_allocation_service",
    "reset_allocation_state",
]
