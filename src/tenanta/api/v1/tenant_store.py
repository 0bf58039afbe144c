# src/tenanta/api/v1/tenant_store.py

from fastapi import APIRouter, HTTPException
from tenanta.core.context import AppContext
from tenanta.api.dependencies.context import ContextDep
from tenanta.schemas.common import JsonResponse, MsgResponse
from tenanta.schemas.tenant_store import TenantStoreRead, TenantStoreHealth
from tenanta.services.tenant_store_service import TenantStoreService
from tenanta.services.exceptions import NotFoundError, TenantConnectionError

router = APIRouter()

@router.post(
    "/tenants/{tenant_id}/store",
    response_model=JsonResponse[TenantStoreRead],
    summary="Provision the tenant's database and cache namespace"
)
async def provision_tenant_store(tenant_id: str, context: AppContext = ContextDep):
    try:
        store = await TenantStoreService(context).provision(tenant_id)
        return JsonResponse(data=store)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except TenantConnectionError as e:
        raise HTTPException(status_code=503, detail=str(e))

@router.delete(
    "/tenants/{tenant_id}/store",
    response_model=MsgResponse,
    summary="Drop the tenant's database and cache keys"
)
async def delete_tenant_store(tenant_id: str, context: AppContext = ContextDep):
    await TenantStoreService(context).teardown(tenant_id)
    return MsgResponse(msg="Tenant store deleted")

@router.get(
    "/tenants/{tenant_id}/store/health",
    response_model=JsonResponse[TenantStoreHealth],
    summary="Check tenant database and cache connectivity"
)
async def tenant_store_health(tenant_id: str, context: AppContext = ContextDep):
    try:
        health = await TenantStoreService(context).health(tenant_id)
        return JsonResponse(data=health)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
