# src/tenanta/services/tenant_store_service.py

import logging
from redis.exceptions import RedisError
from tenanta.schemas.tenant_store import TenantStoreRead, TenantStoreHealth
from tenanta.services.base_service import BaseService
from tenanta.services.exceptions import TenantConnectionError

logger = logging.getLogger(__name__)

class TenantStoreService(BaseService):
    """Lifecycle of a tenant's physical resources: database plus cache namespace."""

    async def provision(self, tenant_id: str) -> TenantStoreRead:
        tenant = await self._get_tenant(tenant_id)
        created = await self.provisioner.create_tenant_store(tenant.id)
        await self.cache_allocator.seed_tenant(tenant.id, tenant.name)
        logger.info(f"Tenant '{tenant.name}' resources ready (new database: {created})", extra={"tenant_id": tenant.id})
        return TenantStoreRead(
            tenant_id=tenant.id,
            database_name=self.provisioner.database_name(tenant.id),
            cache_namespace=self.cache_allocator.allocate(tenant.id),
            created=created,
        )

    async def teardown(self, tenant_id: str) -> None:
        """
        Drops the tenant database and its cache keys. Safe for tenants that were
        never provisioned; the tenant row itself may already be gone.
        """
        await self.provisioner.delete_tenant_store(tenant_id)
        try:
            deleted = await self.cache_allocator.purge_tenant(tenant_id)
            logger.info(f"Cleaned up {deleted} cache keys", extra={"tenant_id": tenant_id})
        except (TenantConnectionError, RedisError, OSError) as e:
            logger.warning(f"Failed to clean up tenant cache keys: {e}", extra={"tenant_id": tenant_id})

    async def health(self, tenant_id: str) -> TenantStoreHealth:
        await self._get_tenant(tenant_id)
        return TenantStoreHealth(
            postgresql=await self.provisioner.test_connection(tenant_id),
            redis=await self.cache_allocator.test_connection(tenant_id),
        )
