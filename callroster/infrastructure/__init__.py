"""Infrastructure layer exports."""

from .locks import TenantLocks
from .records import RecordSource, SpreadsheetRecordSource
from .store import AllocationRepository, InMemoryAllocationRepository

__all__ = [
    "AllocationRepository",
    "InMemoryAllocationRepository",
    "RecordSource",
    "SpreadsheetRecordSource",
    "TenantLocks",
]
