"""Runtime configuration for the validation and allocation pipeline."""
from __future__ import annotations

import os

from pydantic import BaseModel, Field

ENV_PREFIX = "CALLROSTER_"


class AllocationSettings(BaseModel):
    max_file_size_bytes: int = 10 * 1024 * 1024
    allowed_extensions: frozenset[str] = frozenset({".csv", ".xlsx", ".xls"})
    allowed_content_types: frozenset[str] = frozenset(
        {
            "text/csv",
            "application/vnd.ms-excel",
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        }
    )
    name_length: tuple[int, int] = (2, 50)
    phone_length: tuple[int, int] = (10, 15)
    notes_max_length: int = 500
    max_tasks_per_agent: int = Field(default=200, gt=0)
    capacity_warning_ratio: float = Field(default=0.8, gt=0, le=1)
    max_records_per_upload: int = Field(default=1000, gt=0)
    enforce_tenant_phone_uniqueness: bool = True

    @property
    def capacity_warning_threshold(self) -> float:
        return self.max_tasks_per_agent * self.capacity_warning_ratio

    @classmethod
    def from_env(cls) -> "AllocationSettings":
        """Build settings from ``CALLROSTER_*`` environment variables."""

        overrides: dict[str, object] = {}

        for key in ("max_file_size_bytes", "notes_max_length", "max_tasks_per_agent", "max_records_per_upload"):
            value = os.getenv(f"{ENV_PREFIX}{key.upper()}")
            if value:
                overrides[key] = int(value)

        ratio = os.getenv(f"{ENV_PREFIX}CAPACITY_WARNING_RATIO")
        if ratio:
            overrides["capacity_warning_ratio"] = float(ratio)

        extensions = os.getenv(f"{ENV_PREFIX}ALLOWED_EXTENSIONS", "")
        parsed = {ext.strip().lower() for ext in extensions.split(",") if ext.strip()}
        if parsed:
            overrides["allowed_extensions"] = frozenset(ext if ext.startswith(".") else f".{ext}" for ext in parsed)

        for key in ("name_length", "phone_length"):
            value = os.getenv(f"{ENV_PREFIX}{key.upper()}")
            if value:
                low, _, high = value.partition(",")
                overrides[key] = (int(low), int(high))

        uniqueness = os.getenv(f"{ENV_PREFIX}ENFORCE_TENANT_PHONE_UNIQUENESS")
        if uniqueness:
            overrides["enforce_tenant_phone_uniqueness"] = uniqueness.strip().lower() in {"1", "true", "yes", "on"}

        return cls(**overrides)


_settings: AllocationSettings = AllocationSettings.from_env()


def configure_settings(settings: AllocationSettings) -> None:
    """Install the settings used by the allocation service."""

    global _settings
    _settings = settings


def get_settings() -> AllocationSettings:
    """Return the currently configured settings."""

    return _settings
