# src/tenanta/api/v1/query.py

from datetime import datetime
from typing import Optional
from fastapi import APIRouter, HTTPException, Query
from tenanta.core.context import AppContext
from tenanta.api.dependencies.context import ContextDep, RequestMetadataDep
from tenanta.schemas.common import JsonResponse
from tenanta.schemas.query import QueryRequest, QueryResult, QueryRequestMetadata, QueryHistoryPage
from tenanta.services.query_service import QueryService
from tenanta.services.exceptions import QueryValidationError, TenantConnectionError

router = APIRouter()

@router.post(
    "/tenants/{tenant_id}/query",
    response_model=JsonResponse[QueryResult],
    summary="Execute a SQL statement against the tenant database"
)
async def execute_query(
    tenant_id: str,
    data: QueryRequest,
    context: AppContext = ContextDep,
    metadata: QueryRequestMetadata = RequestMetadataDep
):
    try:
        result = await QueryService(context).execute(tenant_id, data.query, metadata)
    except QueryValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TenantConnectionError as e:
        raise HTTPException(status_code=503, detail=str(e))
    # 语句执行失败不是异常: 返回结构化结果, 由控制台渲染
    return JsonResponse(data=result, msg="success" if result.success else "Query failed")

@router.get(
    "/tenants/{tenant_id}/query/history",
    response_model=JsonResponse[QueryHistoryPage],
    summary="Paginated query history, newest first"
)
async def get_query_history(
    tenant_id: str,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    success: Optional[bool] = Query(None, alias="successOnly"),
    from_date: Optional[datetime] = Query(None, alias="fromDate"),
    to_date: Optional[datetime] = Query(None, alias="toDate"),
    context: AppContext = ContextDep
):
    page = await QueryService(context).get_query_history(
        tenant_id, limit=limit, offset=offset, success=success, from_date=from_date, to_date=to_date
    )
    return JsonResponse(data=page)
