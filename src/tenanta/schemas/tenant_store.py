# src/tenanta/schemas/tenant_store.py

from tenanta.schemas.common import CamelModel

class TenantStoreRead(CamelModel):
    tenant_id: str
    database_name: str
    cache_namespace: int
    created: bool = False

class TenantStoreHealth(CamelModel):
    postgresql: bool
    redis: bool
