from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile

from callroster.application import get_allocation_service
from callroster.core.errors import AllocationError
from callroster.core.schema import TaskStatusUpdate
from callroster.routes.tenancy import get_tenant_id, raise_http, serialise

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.post("/upload")
async def upload_tasks(file: UploadFile = File(...), tenant_id: str = Depends(get_tenant_id)) -> dict:
    """Validate a spreadsheet of call records and allocate it across agents."""
    service = get_allocation_service()
    try:
        content = await file.read()
        result = service.upload_file(
            tenant_id,
            filename=file.filename,
            content=content,
            content_type=file.content_type,
        )
    except AllocationError as exc:
        raise_http(exc)
    finally:
        await file.close()

    return {
        "message": "Tasks uploaded successfully",
        "task_count": result.task_count,
        "distribution": result.distribution.model_dump(),
        "warnings": result.warnings,
    }


@router.get("")
async def list_tasks(tenant_id: str = Depends(get_tenant_id)) -> dict:
    service = get_allocation_service()
    return {"items": [serialise(task) for task in service.list_tasks(tenant_id)]}


@router.get("/agent/{agent_id}")
async def list_agent_tasks(agent_id: str, tenant_id: str = Depends(get_tenant_id)) -> dict:
    service = get_allocation_service()
    return {"items": [serialise(task) for task in service.list_tasks_for_agent(tenant_id, agent_id)]}


@router.put("/{task_id}/status")
async def update_task_status(
    task_id: str,
    payload: TaskStatusUpdate,
    tenant_id: str = Depends(get_tenant_id),
) -> dict:
    service = get_allocation_service()
    try:
        task = service.update_task_status(tenant_id, task_id, payload.status)
    except AllocationError as exc:
        raise_http(exc)
    return serialise(task)


@router.delete("/{task_id}")
async def delete_task(task_id: str, tenant_id: str = Depends(get_tenant_id)) -> dict:
    service = get_allocation_service()
    try:
        service.delete_task(tenant_id, task_id)
    except AllocationError as exc:
        raise_http(exc)
    return {"message": "Task deleted successfully"}
