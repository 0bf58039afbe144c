# src/tenanta/api/v1/schema.py

from typing import List
from fastapi import APIRouter, HTTPException
from tenanta.core.context import AppContext
from tenanta.api.dependencies.context import ContextDep
from tenanta.schemas.common import JsonResponse
from tenanta.schemas.schema_definition import (
    SchemaUpdateRequest, SchemaDefinitionRead, SchemaOverview, CompileRequest, CompileResult
)
from tenanta.services.schema_service import SchemaService
from tenanta.services.exceptions import NotFoundError, DDLExecutionError

router = APIRouter()

@router.put(
    "/tenants/{tenant_id}/schema",
    response_model=JsonResponse[SchemaDefinitionRead],
    summary="Save a tenant's DSL document and rebuild its tables"
)
async def update_tenant_schema(
    tenant_id: str,
    data: SchemaUpdateRequest,
    context: AppContext = ContextDep
):
    try:
        schema = await SchemaService(context).update_tenant_schema(tenant_id, data)
        return JsonResponse(data=schema, msg=f"Schema updated (version {schema.version})")
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DDLExecutionError as e:
        raise HTTPException(status_code=422, detail=str(e))

@router.get(
    "/tenants/{tenant_id}/schema/overview",
    response_model=JsonResponse[SchemaOverview],
    summary="Tables and relationships of a tenant, from the saved DSL or live introspection"
)
async def get_schema_overview(tenant_id: str, context: AppContext = ContextDep):
    try:
        overview = await SchemaService(context).get_schema_overview(tenant_id)
        return JsonResponse(data=overview)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

@router.get(
    "/tenants/{tenant_id}/schemas",
    response_model=JsonResponse[List[SchemaDefinitionRead]],
    summary="List a tenant's schema definitions"
)
async def list_tenant_schemas(tenant_id: str, context: AppContext = ContextDep):
    try:
        schemas = await SchemaService(context).get_tenant_schemas(tenant_id)
        return JsonResponse(data=schemas)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

@router.get(
    "/schemas/{schema_id}",
    response_model=JsonResponse[SchemaDefinitionRead],
    summary="Get a schema definition"
)
async def get_schema(schema_id: str, context: AppContext = ContextDep):
    try:
        schema = await SchemaService(context).get_schema_by_id(schema_id)
        return JsonResponse(data=schema)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

@router.delete(
    "/schemas/{schema_id}",
    response_model=JsonResponse[SchemaDefinitionRead],
    summary="Deactivate a schema definition"
)
async def deactivate_schema(schema_id: str, context: AppContext = ContextDep):
    try:
        schema = await SchemaService(context).deactivate_schema(schema_id)
        return JsonResponse(data=schema, msg="Schema deactivated")
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

@router.post(
    "/schemas/compile",
    response_model=JsonResponse[CompileResult],
    summary="Compile DSL to a structural model and DDL without touching any database"
)
async def compile_schema(data: CompileRequest, context: AppContext = ContextDep):
    return JsonResponse(data=SchemaService(context).compile_preview(data.code, data.namespace))
