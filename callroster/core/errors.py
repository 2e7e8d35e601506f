from __future__ import annotations

from typing import Any


class AllocationError(Exception):
    """Base class for failures reported back to the caller."""

    def __init__(
        self,
        message: str,
        *,
        errors: list[str] | None = None,
        warnings: list[str] | None = None,
        failed_records: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.errors = list(errors) if errors else [message]
        self.warnings = list(warnings or [])
        self.failed_records = list(failed_records or [])

    def to_detail(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "errors": self.errors,
            "warnings": self.warnings,
            "failed_records": self.failed_records,
        }


class InputError(AllocationError):
    """Raised when an uploaded file is missing, empty or of the wrong type."""


class ValidationError(AllocationError):
    """Raised when one or more records of a batch fail validation."""


class EligibilityError(AllocationError):
    """Raised when no agent can receive new work."""


class StateError(AllocationError):
    """Raised when an operation would break the agent pool invariants."""


class NotFoundError(AllocationError):
    """Raised when a tenant-scoped entity does not exist."""


class ConflictError(AllocationError):
    """Raised when an entity with the same identity already exists."""
