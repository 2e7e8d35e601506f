from __future__ import annotations

from fastapi import APIRouter, Depends

from callroster.application import get_allocation_service
from callroster.core.errors import AllocationError
from callroster.core.schema import AgentCreate, AgentUpdate
from callroster.routes.tenancy import get_tenant_id, raise_http, serialise

router = APIRouter(prefix="/agents", tags=["agents"])


@router.post("", status_code=201)
async def create_agent(payload: AgentCreate, tenant_id: str = Depends(get_tenant_id)) -> dict:
    service = get_allocation_service()
    try:
        agent = service.create_agent(tenant_id, payload)
    except AllocationError as exc:
        raise_http(exc)
    return {"message": "Agent created successfully and tasks redistributed", "agent": serialise(agent)}


@router.get("")
async def list_agents(tenant_id: str = Depends(get_tenant_id)) -> dict:
    service = get_allocation_service()
    return {"items": [serialise(agent) for agent in service.list_agents(tenant_id)]}


@router.post("/redistribute")
async def redistribute_tasks(tenant_id: str = Depends(get_tenant_id)) -> dict:
    """Rebalance every task of the tenant across its active agents."""
    service = get_allocation_service()
    result = service.redistribute(tenant_id)
    return {"message": "Tasks redistributed successfully", "distribution": result.model_dump()}


@router.get("/{agent_id}")
async def get_agent(agent_id: str, tenant_id: str = Depends(get_tenant_id)) -> dict:
    service = get_allocation_service()
    try:
        agent = service.get_agent(tenant_id, agent_id)
    except AllocationError as exc:
        raise_http(exc)
    return serialise(agent)


@router.put("/{agent_id}")
async def update_agent(agent_id: str, payload: AgentUpdate, tenant_id: str = Depends(get_tenant_id)) -> dict:
    service = get_allocation_service()
    try:
        agent = service.update_agent(tenant_id, agent_id, payload)
    except AllocationError as exc:
        raise_http(exc)
    return serialise(agent)


@router.delete("/{agent_id}")
async def delete_agent(agent_id: str, tenant_id: str = Depends(get_tenant_id)) -> dict:
    service = get_allocation_service()
    try:
        reassigned = service.delete_agent(tenant_id, agent_id)
    except AllocationError as exc:
        raise_http(exc)
    return {
        "message": "Agent deleted successfully and tasks redistributed",
        "reassigned_tasks": reassigned,
    }
