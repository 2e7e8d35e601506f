from __future__ import annotations

from dataclasses import asdict
from typing import Any, NoReturn

from fastapi import Header, HTTPException

from callroster.core.errors import AllocationError, ConflictError, NotFoundError


async def get_tenant_id(x_tenant_id: str = Header(..., alias="X-Tenant-ID")) -> str:
    """Resolve the owning account for the request."""
    tenant_id = x_tenant_id.strip()
    if not tenant_id:
        raise HTTPException(status_code=401, detail="tenant is required")
    return tenant_id


def raise_http(exc: AllocationError) -> NoReturn:
    if isinstance(exc, NotFoundError):
        status_code = 404
    elif isinstance(exc, ConflictError):
        status_code = 409
    else:
        status_code = 400
    raise HTTPException(status_code=status_code, detail=exc.to_detail()) from exc


def serialise(entity: Any) -> dict[str, Any]:
    data = asdict(entity)
    for key, value in data.items():
        if hasattr(value, "isoformat"):
            data[key] = value.isoformat()
    return data
