# tests/services/test_redis_service.py

import pytest
from unittest.mock import AsyncMock, MagicMock
from tenanta.services.redis_service import RedisService

# 标记所有测试为异步
pytestmark = pytest.mark.asyncio


def make_client() -> MagicMock:
    client = MagicMock()
    client.set = AsyncMock()
    client.get = AsyncMock()
    client.unlink = AsyncMock()
    client.scan = AsyncMock()
    return client


async def test_service_is_bound_to_the_given_client():
    """没有默认客户端: 调用方必须传入租户 namespace 上的客户端。"""
    with pytest.raises(TypeError):
        RedisService()


async def test_json_round_trip_uses_ttl():
    client = make_client()
    client.get.return_value = '{"tables": 2}'
    service = RedisService(client)

    await service.set_json("tenant:t1:schema:overview", {"tables": 2}, expire=60)

    client.set.assert_awaited_once_with("tenant:t1:schema:overview", '{"tables": 2}', ex=60)
    assert await service.get_json("tenant:t1:schema:overview") == {"tables": 2}


async def test_delete_by_prefix_scans_only_the_tenant_prefix(mocker):
    # 1. 设置
    mocker.patch("tenanta.services.redis_service.asyncio.sleep", new_callable=AsyncMock)
    client = make_client()
    client.scan.side_effect = [
        (7, ["tenant:t1:info"]),
        (0, ["tenant:t1:users:count"]),
        (0, []),
    ]

    # 2. 执行
    deleted = await RedisService(client).delete_by_prefix("tenant:t1:")

    # 3. 断言
    assert deleted == 2
    assert client.unlink.await_count == 2
    assert all(call.kwargs["match"] == "tenant:t1:*" for call in client.scan.await_args_list)
