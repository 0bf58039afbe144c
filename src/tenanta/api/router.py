# src/tenanta/api/router.py

from fastapi import APIRouter
from tenanta.api.v1 import schema
from tenanta.api.v1 import query
from tenanta.api.v1 import tenant_store

# The main router for API v1
router = APIRouter(prefix="/api/v1")

router.include_router(
    tenant_store.router,
    tags=["Tenant Store"]
)
router.include_router(
    schema.router,
    tags=["Schema"]
)
router.include_router(
    query.router,
    tags=["SQL Console"]
)
