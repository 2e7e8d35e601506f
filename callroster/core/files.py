"""Checks applied to an uploaded spreadsheet before it is parsed."""
from __future__ import annotations

from pathlib import Path

from callroster.core.config import AllocationSettings
from callroster.core.errors import InputError


def validate_upload(
    filename: str | None,
    size: int,
    content_type: str | None,
    settings: AllocationSettings,
) -> None:
    """Raise :class:`InputError` listing every problem with the upload."""

    if not filename:
        raise InputError("No file uploaded")

    errors: list[str] = []

    if size > settings.max_file_size_bytes:
        limit_mb = settings.max_file_size_bytes / 1024 / 1024
        errors.append(f"File size exceeds maximum limit of {limit_mb:g}MB")

    extension = Path(filename).suffix.lower()
    if extension not in settings.allowed_extensions:
        allowed = ", ".join(sorted(ext.lstrip(".").upper() for ext in settings.allowed_extensions))
        errors.append(f"Invalid file extension. Allowed types: {allowed}")

    if content_type and content_type.split(";")[0].strip() not in settings.allowed_content_types:
        errors.append(f"Invalid file type: {content_type}")

    if size == 0:
        errors.append("File is empty")

    if errors:
        raise InputError("Invalid upload", errors=errors)
