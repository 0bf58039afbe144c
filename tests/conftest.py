# tests/conftest.py

from typing import AsyncGenerator
import pytest
from httpx import AsyncClient, ASGITransport
from unittest.mock import MagicMock
from sqlalchemy.ext.asyncio import AsyncSession
from tenanta.main import app
from tenanta.core.context import AppContext
from tenanta.db.session import get_db
from tenanta.models import Tenant
from tenanta.services.tenant.provisioner import TenantResourceProvisioner
from tenanta.services.tenant.cache_allocator import TenantCacheAllocator

TENANT_ID = "6f1c2a9e-3b7d-4c11-9a55-0e2f8d4b1a70"

# ==============================================================================
# 1. 服务层上下文
# ==============================================================================

@pytest.fixture
def tenant() -> Tenant:
    return Tenant(id=TENANT_ID, name="Acme", slug="acme", is_active=True)


@pytest.fixture
def provisioner_mock() -> MagicMock:
    provisioner = MagicMock(spec=TenantResourceProvisioner)
    provisioner.database_name.return_value = f"tenant_{TENANT_ID.replace('-', '_')}"
    return provisioner


@pytest.fixture
def cache_allocator_mock() -> MagicMock:
    return MagicMock(spec=TenantCacheAllocator)


@pytest.fixture
def db_session_mock() -> MagicMock:
    return MagicMock(spec=AsyncSession)


@pytest.fixture
def app_context(db_session_mock, provisioner_mock, cache_allocator_mock) -> AppContext:
    return AppContext(
        db=db_session_mock,
        session_factory=MagicMock(),
        provisioner=provisioner_mock,
        cache_allocator=cache_allocator_mock,
    )

# ==============================================================================
# 2. API 客户端
# ==============================================================================

@pytest.fixture
async def client(
    db_session_mock: MagicMock,
    provisioner_mock: MagicMock,
    cache_allocator_mock: MagicMock,
) -> AsyncGenerator[AsyncClient, None]:
    """
    只覆盖最底层的依赖 (get_db) 并模拟 lifespan 设置的 app.state,
    让 FastAPI 的 DI 系统构建上层的 AppContext。
    """
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session_mock

    app.dependency_overrides[get_db] = override_get_db
    app.state.session_factory = MagicMock()
    app.state.provisioner = provisioner_mock
    app.state.cache_allocator = cache_allocator_mock

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
    for attr in ("session_factory", "provisioner", "cache_allocator"):
        if hasattr(app.state, attr):
            delattr(app.state, attr)
