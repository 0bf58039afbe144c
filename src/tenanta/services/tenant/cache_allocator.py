# src/tenanta/services/tenant/cache_allocator.py

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Optional
import redis.asyncio as aioredis
from redis.exceptions import RedisError
from tenanta.core.config import settings
from tenanta.services.redis_service import RedisService
from tenanta.services.exceptions import TenantConnectionError

logger = logging.getLogger(__name__)

# namespace 0 保留给系统级操作
SYSTEM_NAMESPACE = 0


def tenant_namespace(tenant_id: str, namespace_count: int) -> int:
    """
    32-bit signed polynomial hash (base 31 over UTF-16 code units) of the
    tenant id, reduced modulo ``namespace_count``; namespace 0 maps to 1.
    Pure: the same id gets the same namespace on every process.
    """
    h = 0
    encoded = tenant_id.encode("utf-16-le")
    for i in range(0, len(encoded), 2):
        code_unit = encoded[i] | (encoded[i + 1] << 8)
        h = ((h << 5) - h + code_unit) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 0x100000000

    namespace = abs(h) % namespace_count
    return namespace if namespace != SYSTEM_NAMESPACE else 1


def tenant_key_prefix(tenant_id: str) -> str:
    return f"tenant:{tenant_id}:"


class TenantCacheAllocator:
    """
    [核心管理器]
    把租户映射到固定数量的 Redis 逻辑库之一, 并按租户 id 缓存已验证的客户端。
    不同租户可能共享同一个逻辑库, 所以租户数据都以 ``tenant:<id>:`` 为前缀。
    """
    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        password: Optional[str] = None,
        namespace_count: Optional[int] = None,
    ):
        self._host = host or settings.REDIS_HOST
        self._port = port or settings.REDIS_PORT
        self._password = password if password is not None else settings.REDIS_PASSWORD
        self.namespace_count = namespace_count or settings.REDIS_NAMESPACE_COUNT
        self._clients: Dict[str, aioredis.Redis] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def allocate(self, tenant_id: str) -> int:
        return tenant_namespace(tenant_id, self.namespace_count)

    def _build_client(self, namespace: int) -> aioredis.Redis:
        return aioredis.Redis(
            host=self._host,
            port=self._port,
            password=self._password,
            db=namespace,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=10,
        )

    async def get_client(self, tenant_id: str) -> aioredis.Redis:
        client = self._clients.get(tenant_id)
        if client is not None:
            return client

        lock = self._locks.setdefault(tenant_id, asyncio.Lock())
        async with lock:
            client = self._clients.get(tenant_id)
            if client is not None:
                return client

            namespace = self.allocate(tenant_id)
            client = self._build_client(namespace)
            try:
                await client.ping()
            except (RedisError, OSError) as e:
                await client.aclose()
                logger.error(f"Failed to connect tenant cache namespace {namespace}: {e}", extra={"tenant_id": tenant_id})
                raise TenantConnectionError(
                    f"Cache namespace {namespace} is unavailable: {e}", tenant_id=tenant_id
                ) from e

            self._clients[tenant_id] = client
            logger.info(f"Connected tenant cache client on namespace {namespace}", extra={"tenant_id": tenant_id})
            return client

    async def get_service(self, tenant_id: str) -> RedisService:
        return RedisService(client=await self.get_client(tenant_id))

    async def test_connection(self, tenant_id: str) -> bool:
        try:
            client = await self.get_client(tenant_id)
            return bool(await client.ping())
        except (TenantConnectionError, RedisError, OSError) as e:
            logger.warning(f"Tenant cache health check failed: {e}", extra={"tenant_id": tenant_id})
            return False

    async def seed_tenant(self, tenant_id: str, tenant_name: str):
        """Writes the default keys of a freshly provisioned tenant."""
        service = await self.get_service(tenant_id)
        prefix = tenant_key_prefix(tenant_id)
        await service.set_json(f"{prefix}info", {
            "name": tenant_name,
            "createdAt": datetime.now(timezone.utc).isoformat(),
            "status": "active",
        })
        await service.client.set(f"{prefix}users:count", "0")
        await service.client.set(f"{prefix}cache:version", "1.0")
        logger.info(f"Cache namespace seeded for tenant {tenant_name}", extra={"tenant_id": tenant_id})

    async def purge_tenant(self, tenant_id: str) -> int:
        """
        Deletes every ``tenant:<id>:*`` key and releases the tenant's client.
        Never FLUSHDB: the namespace may be shared with other tenants.
        """
        service = await self.get_service(tenant_id)
        deleted = await service.delete_by_prefix(tenant_key_prefix(tenant_id))
        client = self._clients.pop(tenant_id, None)
        self._locks.pop(tenant_id, None)
        if client is not None:
            await client.aclose()
        return deleted

    async def release_all(self):
        """[生命周期] 安全关闭所有已建立的客户端连接。"""
        for tenant_id, client in list(self._clients.items()):
            try:
                await client.aclose()
            except Exception as e:
                logger.error(f"Error closing cache client for tenant {tenant_id}: {e}")
        self._clients.clear()
        self._locks.clear()
