# tests/services/test_tenant_store_service.py

import pytest
from unittest.mock import AsyncMock
from redis.exceptions import ConnectionError as RedisConnectionError
from tenanta.services.tenant_store_service import TenantStoreService
from tenanta.services.exceptions import NotFoundError

# 标记所有测试为异步
pytestmark = pytest.mark.asyncio


async def test_provision_creates_database_and_seeds_cache(mocker, app_context, provisioner_mock, cache_allocator_mock, tenant):
    # 1. 设置
    mocker.patch.object(TenantStoreService, "_get_tenant", new_callable=AsyncMock, return_value=tenant)
    provisioner_mock.create_tenant_store.return_value = True
    cache_allocator_mock.allocate.return_value = 5

    # 2. 执行
    store = await TenantStoreService(app_context).provision(tenant.id)

    # 3. 断言
    provisioner_mock.create_tenant_store.assert_awaited_once_with(tenant.id)
    cache_allocator_mock.seed_tenant.assert_awaited_once_with(tenant.id, "Acme")
    assert store.created is True
    assert store.cache_namespace == 5
    assert store.database_name == provisioner_mock.database_name.return_value


async def test_provision_unknown_tenant(mocker, app_context, provisioner_mock):
    mocker.patch.object(TenantStoreService, "_get_tenant", new_callable=AsyncMock, side_effect=NotFoundError("missing"))

    with pytest.raises(NotFoundError):
        await TenantStoreService(app_context).provision("missing")

    provisioner_mock.create_tenant_store.assert_not_awaited()


async def test_teardown_tolerates_cache_outage(app_context, provisioner_mock, cache_allocator_mock):
    """从未开通过的租户: 数据库删除是幂等的, 缓存清理失败只记录告警。"""
    cache_allocator_mock.purge_tenant.side_effect = RedisConnectionError("connection refused")

    await TenantStoreService(app_context).teardown("never-provisioned")

    provisioner_mock.delete_tenant_store.assert_awaited_once_with("never-provisioned")


async def test_health_reports_both_backends(mocker, app_context, provisioner_mock, cache_allocator_mock, tenant):
    mocker.patch.object(TenantStoreService, "_get_tenant", new_callable=AsyncMock, return_value=tenant)
    provisioner_mock.test_connection.return_value = True
    cache_allocator_mock.test_connection.return_value = False

    health = await TenantStoreService(app_context).health(tenant.id)

    assert health.postgresql is True
    assert health.redis is False
