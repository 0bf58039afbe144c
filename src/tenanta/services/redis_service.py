# src/tenanta/services/redis_service.py

import json
import asyncio
import logging
from typing import List, Any, Optional
from datetime import timedelta
import redis.asyncio as aioredis

logger = logging.getLogger(__name__)

class RedisService:
    """
    一个封装了 aioredis 客户端的通用服务，提供了应用层面的常用方法。
    租户缓存通过 TenantCacheAllocator.get_service() 获得绑定到租户 namespace 的实例。
    """
    def __init__(self, client: aioredis.Redis):
        self.client = client

    async def set_json(self, key: str, data: Any, expire: Optional[timedelta | int] = None):
        """
        将 Python 对象序列化为 JSON 并存入 Redis。

        :param key: Redis 键。
        :param data: 可被 json.dumps 序列化的对象 (datetime 等按 str 处理)。
        :param expire: 可选的过期时间 (timedelta 或秒)。
        """
        value = json.dumps(data, default=str)
        await self.client.set(key, value, ex=expire)

    async def get_json(self, key: str) -> Optional[Any]:
        value = await self.client.get(key)
        if value:
            return json.loads(value)
        return None

    async def delete_key(self, *keys: str) -> int:
        if not keys:
            return 0
        return await self.client.delete(*keys)

    async def delete_by_prefix(self, prefix: str, max_retries: int = 2, retry_delay: float = 0.2, batch_size: int = 500) -> int:
        """
        Deletes every key under ``prefix`` with SCAN + UNLINK, then re-scans to
        verify and retries when keys were written concurrently.
        """
        total_deleted = 0
        attempt = 0

        while attempt <= max_retries:
            batch_count = 0
            cursor = 0
            match_pattern = prefix if prefix.endswith('*') else f"{prefix}*"
            while True:
                cursor, keys = await self.client.scan(cursor, match=match_pattern, count=batch_size)
                if keys:
                    await self.client.unlink(*keys)
                    batch_count += len(keys)
                if cursor == 0:
                    break
            total_deleted += batch_count

            if batch_count == 0:
                return total_deleted

            await asyncio.sleep(retry_delay)
            remaining_keys = await self._scan_keys(prefix)
            if not remaining_keys:
                logger.info(f"Verified deletion of {total_deleted} keys for prefix '{prefix}'")
                return total_deleted

            logger.warning(
                f"Found {len(remaining_keys)} remaining keys after attempt {attempt + 1} "
                f"for prefix '{prefix}'. Sample: {remaining_keys[:3]}"
            )
            attempt += 1

        logger.error(f"Failed to delete all keys for prefix '{prefix}' after {max_retries} retries")
        return total_deleted

    async def _scan_keys(self, prefix: str, batch_size: int = 1000) -> List[str]:
        keys_found = []
        cursor = 0
        match_pattern = prefix if prefix.endswith('*') else f"{prefix}*"
        while True:
            cursor, keys = await self.client.scan(cursor, match=match_pattern, count=batch_size)
            keys_found.extend(keys)
            if cursor == 0:
                break
        return keys_found
