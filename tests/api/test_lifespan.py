# tests/api/test_lifespan.py

import pytest
from unittest.mock import AsyncMock, MagicMock
from fastapi import FastAPI
from tenanta import main
from tenanta.services.tenant.provisioner import TenantResourceProvisioner
from tenanta.services.tenant.cache_allocator import TenantCacheAllocator

# 标记所有测试为异步
pytestmark = pytest.mark.asyncio


async def test_lifespan_builds_managers_lazily_and_releases_them(mocker):
    """启动不建立任何 Redis / 租户连接; 关闭时释放全部资源。"""
    # 1. 设置
    control_engine = MagicMock(dispose=AsyncMock())
    mocker.patch.object(main, "engine", control_engine)
    release_pools = mocker.patch.object(TenantResourceProvisioner, "release_all", new_callable=AsyncMock)
    release_clients = mocker.patch.object(TenantCacheAllocator, "release_all", new_callable=AsyncMock)
    app = FastAPI()

    # 2. 执行
    async with main.lifespan(app):
        assert isinstance(app.state.provisioner, TenantResourceProvisioner)
        assert isinstance(app.state.cache_allocator, TenantCacheAllocator)
        assert not hasattr(app.state, "arq_pool")

    # 3. 断言
    release_pools.assert_awaited_once()
    release_clients.assert_awaited_once()
    control_engine.dispose.assert_awaited_once()
