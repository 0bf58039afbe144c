# tests/services/test_cache_allocator.py

import uuid
import pytest
from unittest.mock import AsyncMock, MagicMock
from redis.exceptions import ConnectionError as RedisConnectionError
from tenanta.services.exceptions import TenantConnectionError
from tenanta.services.tenant.cache_allocator import (
    TenantCacheAllocator, tenant_namespace, tenant_key_prefix
)


def test_namespace_matches_known_hashes():
    """与 Java/JS 的 String hashCode 一致: 'hello' -> 99162322。"""
    assert tenant_namespace("hello", 16) == 99162322 % 16
    assert tenant_namespace("c", 16) == 99 % 16


def test_namespace_zero_is_remapped_to_one():
    # 'p' = 112, 112 % 16 == 0
    assert tenant_namespace("p", 16) == 1
    assert tenant_namespace("", 16) == 1


def test_namespace_handles_min_int_hash():
    # 'polygenelubricants'.hashCode() == -2**31
    assert tenant_namespace("polygenelubricants", 16) == 1
    assert tenant_namespace("polygenelubricants", 10) == (2 ** 31) % 10


def test_namespace_is_stable_and_in_range():
    allocator = TenantCacheAllocator(host="localhost", port=6379, namespace_count=16)
    for _ in range(200):
        tenant_id = str(uuid.uuid4())
        namespace = allocator.allocate(tenant_id)
        assert 1 <= namespace < 16
        assert allocator.allocate(tenant_id) == namespace
        assert TenantCacheAllocator(namespace_count=16).allocate(tenant_id) == namespace


def test_key_prefix():
    assert tenant_key_prefix("abc") == "tenant:abc:"


async def test_get_client_caches_verified_client(mocker):
    # 1. 设置
    allocator = TenantCacheAllocator(namespace_count=16)
    fake_client = MagicMock()
    fake_client.ping = AsyncMock(return_value=True)
    build = mocker.patch.object(allocator, "_build_client", return_value=fake_client)

    # 2. 执行
    first = await allocator.get_client("tenant-a")
    second = await allocator.get_client("tenant-a")

    # 3. 断言
    assert first is second is fake_client
    build.assert_called_once_with(allocator.allocate("tenant-a"))
    fake_client.ping.assert_awaited_once()


async def test_get_client_failure_closes_and_raises(mocker):
    allocator = TenantCacheAllocator(namespace_count=16)
    fake_client = MagicMock()
    fake_client.ping = AsyncMock(side_effect=RedisConnectionError("connection refused"))
    fake_client.aclose = AsyncMock()
    mocker.patch.object(allocator, "_build_client", return_value=fake_client)

    with pytest.raises(TenantConnectionError) as exc_info:
        await allocator.get_client("tenant-a")

    assert exc_info.value.tenant_id == "tenant-a"
    fake_client.aclose.assert_awaited_once()
    assert "tenant-a" not in allocator._clients


async def test_test_connection_reports_false_on_failure(mocker):
    allocator = TenantCacheAllocator(namespace_count=16)
    mocker.patch.object(allocator, "get_client", new_callable=AsyncMock, side_effect=TenantConnectionError("down"))

    assert await allocator.test_connection("tenant-a") is False


async def test_purge_tenant_deletes_prefixed_keys_and_releases_client(mocker):
    # 1. 设置
    allocator = TenantCacheAllocator(namespace_count=16)
    fake_client = MagicMock()
    fake_client.aclose = AsyncMock()
    allocator._clients["tenant-a"] = fake_client
    fake_service = MagicMock()
    fake_service.delete_by_prefix = AsyncMock(return_value=3)
    mocker.patch.object(allocator, "get_service", new_callable=AsyncMock, return_value=fake_service)

    # 2. 执行
    deleted = await allocator.purge_tenant("tenant-a")

    # 3. 断言
    assert deleted == 3
    fake_service.delete_by_prefix.assert_awaited_once_with("tenant:tenant-a:")
    fake_client.aclose.assert_awaited_once()
    assert allocator._clients == {}


async def test_release_all_closes_every_client():
    allocator = TenantCacheAllocator(namespace_count=16)
    clients = [MagicMock(aclose=AsyncMock()) for _ in range(3)]
    for i, c in enumerate(clients):
        allocator._clients[f"t{i}"] = c

    await allocator.release_all()

    for c in clients:
        c.aclose.assert_awaited_once()
    assert allocator._clients == {}
