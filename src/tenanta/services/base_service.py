# src/tenanta/services/base_service.py

from tenanta.core.context import AppContext
from tenanta.dao.tenant_dao import TenantDao
from tenanta.models import Tenant
from tenanta.services.exceptions import NotFoundError

class BaseService:
    def __init__(self, context: AppContext):
        self.context = context
        self.db = context.db
        self.provisioner = context.provisioner
        self.cache_allocator = context.cache_allocator

    async def _get_tenant(self, tenant_id: str) -> Tenant:
        tenant = await TenantDao(self.db).get_by_pk(tenant_id)
        if not tenant:
            raise NotFoundError(f"Tenant '{tenant_id}' not found.")
        return tenant
