# src/tenanta/services/tenant/provisioner.py

import asyncio
import logging
from typing import Dict, Optional
from sqlalchemy import text
from sqlalchemy.engine import make_url, URL
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool
from tenanta.core.config import settings
from tenanta.engine.dsl import quote_identifier
from tenanta.services.exceptions import TenantConnectionError

logger = logging.getLogger(__name__)

# 新租户库的基线对象: 扩展、共享触发器函数、默认系统表
BOOTSTRAP_STATEMENTS = (
    'CREATE EXTENSION IF NOT EXISTS "uuid-ossp"',
    'CREATE EXTENSION IF NOT EXISTS "pgcrypto"',
    """
    CREATE OR REPLACE FUNCTION update_updated_at_column()
    RETURNS TRIGGER AS $$
    BEGIN
        NEW.updated_at = CURRENT_TIMESTAMP;
        RETURN NEW;
    END;
    $$ LANGUAGE plpgsql
    """,
    """
    CREATE TABLE IF NOT EXISTS public.system_info (
        id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
        key VARCHAR(100) UNIQUE NOT NULL,
        value TEXT,
        created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
        updated_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
    )
    """,
    "DROP TRIGGER IF EXISTS update_system_info_updated_at ON public.system_info",
    """
    CREATE TRIGGER update_system_info_updated_at BEFORE UPDATE ON public.system_info
    FOR EACH ROW EXECUTE FUNCTION update_updated_at_column()
    """,
)


class TenantResourceProvisioner:
    """
    [核心管理器]
    管理每个租户独立的 PostgreSQL 数据库及其连接池。
    - 租户库名由租户 id 确定性推导, 不需要额外存储。
    - 连接池懒加载并按租户 id 缓存, 构建时以一次往返查询验证存活。
    - 调用方只能通过 create/get/delete/release_all 访问连接池映射。
    """
    def __init__(self, base_url: Optional[str] = None):
        self._base_url: URL = make_url(base_url or settings.DATABASE_URL)
        self._engines: Dict[str, AsyncEngine] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._admin_engine: Optional[AsyncEngine] = None

    @staticmethod
    def database_name(tenant_id: str) -> str:
        return f"tenant_{tenant_id.replace('-', '_')}"

    def _get_admin_engine(self) -> AsyncEngine:
        """CREATE/DROP DATABASE 不能在事务块中执行, 因此使用 AUTOCOMMIT 且不池化。"""
        if self._admin_engine is None:
            self._admin_engine = create_async_engine(
                self._base_url.set(database=settings.TENANT_DB_MAINTENANCE_NAME),
                isolation_level="AUTOCOMMIT",
                poolclass=NullPool,
            )
        return self._admin_engine

    def _build_engine(self, tenant_id: str) -> AsyncEngine:
        return create_async_engine(
            self._base_url.set(database=self.database_name(tenant_id)),
            pool_size=settings.TENANT_DB_POOL_SIZE,
            max_overflow=settings.TENANT_DB_MAX_OVERFLOW,
            pool_recycle=settings.TENANT_DB_POOL_RECYCLE,
            pool_pre_ping=True,
            connect_args={"timeout": settings.TENANT_DB_CONNECT_TIMEOUT},
        )

    async def database_exists(self, tenant_id: str) -> bool:
        async with self._get_admin_engine().connect() as conn:
            result = await conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname = :name"),
                {"name": self.database_name(tenant_id)}
            )
            return result.scalar() is not None

    async def create_tenant_store(self, tenant_id: str) -> bool:
        """
        Creates the tenant database and its baseline objects.

        Returns False (and does nothing) when the database already exists.
        """
        db_name = self.database_name(tenant_id)
        if await self.database_exists(tenant_id):
            logger.warning(f"Database {db_name} already exists, skipping creation", extra={"tenant_id": tenant_id})
            return False

        async with self._get_admin_engine().connect() as conn:
            await conn.execute(text(f"CREATE DATABASE {quote_identifier(db_name)}"))
        logger.info(f"Created database {db_name}", extra={"tenant_id": tenant_id})

        await self._bootstrap(tenant_id)
        return True

    async def _bootstrap(self, tenant_id: str):
        engine = await self.get_engine(tenant_id)
        async with engine.begin() as conn:
            for statement in BOOTSTRAP_STATEMENTS:
                await conn.exec_driver_sql(statement)
        logger.info(
            f"Initialized tenant database {self.database_name(tenant_id)} with extensions and functions",
            extra={"tenant_id": tenant_id}
        )

    async def get_engine(self, tenant_id: str) -> AsyncEngine:
        """
        [懒加载核心] 返回租户的连接池, 不存在时构建并验证。
        构建失败时连接池会被立即释放, 并抛出 TenantConnectionError。
        """
        engine = self._engines.get(tenant_id)
        if engine is not None:
            return engine

        # 同一租户的并发首次访问只构建一个连接池
        lock = self._locks.setdefault(tenant_id, asyncio.Lock())
        async with lock:
            engine = self._engines.get(tenant_id)
            if engine is not None:
                return engine

            db_name = self.database_name(tenant_id)
            engine = self._build_engine(tenant_id)
            try:
                async with engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
            except Exception as e:
                await engine.dispose()
                logger.error(f"Failed to connect to tenant database {db_name}: {e}", extra={"tenant_id": tenant_id})
                raise TenantConnectionError(
                    f"Tenant database '{db_name}' is unavailable: {e}", tenant_id=tenant_id
                ) from e

            self._engines[tenant_id] = engine
            logger.info(f"Created connection pool for tenant database {db_name}", extra={"tenant_id": tenant_id})
            return engine

    async def test_connection(self, tenant_id: str) -> bool:
        try:
            engine = await self.get_engine(tenant_id)
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (TenantConnectionError, SQLAlchemyError, OSError) as e:
            logger.warning(f"Tenant database health check failed: {e}", extra={"tenant_id": tenant_id})
            return False

    async def delete_tenant_store(self, tenant_id: str):
        """
        Closes the cached pool, terminates remaining sessions and drops the database.
        Deleting a store that was never provisioned is not an error.
        """
        db_name = self.database_name(tenant_id)
        engine = self._engines.pop(tenant_id, None)
        self._locks.pop(tenant_id, None)
        if engine is not None:
            await engine.dispose()

        async with self._get_admin_engine().connect() as conn:
            await conn.execute(
                text(
                    "SELECT pg_terminate_backend(pid) FROM pg_stat_activity "
                    "WHERE datname = :name AND pid <> pg_backend_pid()"
                ),
                {"name": db_name}
            )
            await conn.execute(text(f"DROP DATABASE IF EXISTS {quote_identifier(db_name)}"))
        logger.info(f"Deleted database {db_name}", extra={"tenant_id": tenant_id})

    async def release_all(self):
        """[生命周期] 进程关闭时释放所有租户连接池。"""
        for tenant_id, engine in list(self._engines.items()):
            try:
                await engine.dispose()
            except Exception as e:
                logger.error(f"Error disposing pool for tenant {tenant_id}: {e}")
        self._engines.clear()
        self._locks.clear()
        if self._admin_engine is not None:
            await self._admin_engine.dispose()
            self._admin_engine = None
