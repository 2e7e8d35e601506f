"""Row-level and batch-level validation for uploaded call records.

Each row is validated independently and every violation is reported, not
just the first one.  Phone numbers are de-duplicated through a
:class:`PhoneRegistry` that lives for exactly one batch: the first
occurrence of a number is accepted and every later occurrence is rejected.
A batch is usable only when every row is valid.
"""
from __future__ import annotations

import re
from typing import Any, Iterable, Mapping

from callroster.core.config import AllocationSettings
from callroster.core.schema import (
    BatchValidationResult,
    FailedRecord,
    FieldValidationResult,
    SanitizedRecord,
)

NAME_PATTERN = re.compile(r"^[A-Za-z\s\-']+$")
PHONE_PATTERN = re.compile(r"^\+?[\d\s\-()]+$")
WHITESPACE = re.compile(r"\s+")

FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("firstname", "name", "first_name", "first name"),
    "phone": ("phone", "phonenumber", "phone_number", "phone number"),
    "notes": ("notes", "note"),
}

# data row i (0-based) sits below the header row, which is row 1
HEADER_OFFSET = 2


class PhoneRegistry:
    """Phone numbers already claimed, scoped to a single upload."""

    def __init__(self, existing: Iterable[str] = ()) -> None:
        self._existing = frozenset(existing)
        self._seen: set[str] = set()

    def __contains__(self, phone: str) -> bool:
        return phone in self._seen

    def __len__(self) -> int:
        return len(self._seen)

    def claim(self, phone: str) -> bool:
        """Record ``phone`` and return ``False`` if it was already seen."""

        if phone in self._seen:
            return False
        self._seen.add(phone)
        return True

    def held_by_active_task(self, phone: str) -> bool:
        return phone in self._existing


def _lookup(record: Mapping[str, Any], field: str) -> str | None:
    keys = {str(key).strip().lower(): key for key in record.keys()}
    for alias in FIELD_ALIASES[field]:
        if alias in keys:
            value = record[keys[alias]]
            if value is None:
                return None
            return str(value)
    return None


def normalise_phone(value: str) -> str:
    return WHITESPACE.sub("", value.strip())


def validate_record(
    record: Mapping[str, Any],
    registry: PhoneRegistry,
    settings: AllocationSettings,
) -> FieldValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    raw_name = _lookup(record, "name")
    name = (raw_name or "").strip()
    if not name:
        errors.append("FirstName is required")
    else:
        min_length, max_length = settings.name_length
        if len(name) < min_length:
            errors.append(f"FirstName must be at least {min_length} characters")
        if len(name) > max_length:
            errors.append(f"FirstName must not exceed {max_length} characters")
        if not NAME_PATTERN.fullmatch(name):
            errors.append("FirstName contains invalid characters")

    raw_phone = _lookup(record, "phone")
    phone = normalise_phone(raw_phone or "")
    if not phone:
        errors.append("Phone is required")
    else:
        min_length, max_length = settings.phone_length
        if len(phone) < min_length:
            errors.append(f"Phone number must be at least {min_length} digits")
        if len(phone) > max_length:
            errors.append(f"Phone number must not exceed {max_length} digits")
        if not PHONE_PATTERN.fullmatch(phone):
            errors.append("Phone number contains invalid characters")
        if not registry.claim(phone):
            errors.append("Duplicate phone number found")
        elif registry.held_by_active_task(phone):
            errors.append("Phone number already assigned to an active task")

    raw_notes = _lookup(record, "notes") or ""
    notes = raw_notes.strip()
    if len(raw_notes) > settings.notes_max_length:
        errors.append(f"Notes must not exceed {settings.notes_max_length} characters")

    return FieldValidationResult(
        valid=not errors,
        errors=errors,
        warnings=warnings,
        sanitized=SanitizedRecord(name=name, phone=phone, notes=notes),
    )


def validate_batch(
    records: Iterable[Mapping[str, Any]],
    settings: AllocationSettings,
    registry: PhoneRegistry | None = None,
) -> BatchValidationResult:
    rows = list(records)
    if not rows:
        return BatchValidationResult(is_valid=False, errors=["No records found in file"])
    if len(rows) > settings.max_records_per_upload:
        return BatchValidationResult(
            is_valid=False,
            errors=[f"File contains {len(rows)} records; the maximum is {settings.max_records_per_upload}"],
        )

    registry = registry if registry is not None else PhoneRegistry()
    warnings: list[str] = []
    valid_records: list[SanitizedRecord] = []
    failed_records: list[FailedRecord] = []

    for index, row in enumerate(rows):
        result = validate_record(row, registry, settings)
        if result.valid:
            valid_records.append(result.sanitized)
        else:
            failed_records.append(
                FailedRecord(
                    row_number=index + HEADER_OFFSET,
                    data=dict(row),
                    errors=result.errors,
                )
            )
        warnings.extend(result.warnings)

    return BatchValidationResult(
        is_valid=not failed_records,
        errors=["Some records failed validation"] if failed_records else [],
        warnings=warnings,
        valid_records=valid_records,
        failed_records=failed_records,
    )
