# src/tenanta/worker/main.py

import logging
from arq.connections import RedisSettings
from tenanta.db.session import SessionLocal, engine
from tenanta.services.tenant.provisioner import TenantResourceProvisioner
from tenanta.services.tenant.cache_allocator import TenantCacheAllocator
from tenanta.core.config import settings

logger = logging.getLogger(__name__)

TASK_FUNCTIONS = []
CRON_JOBS = []

def get_redis_settings():
    """统一的 Redis 配置获取函数"""
    return RedisSettings(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        password=settings.REDIS_PASSWORD,
        database=settings.REDIS_DB
    )

async def startup(ctx):
    """Worker 进程启动时，创建依赖工厂。"""
    ctx['db_session_factory'] = SessionLocal
    ctx['provisioner'] = TenantResourceProvisioner()
    ctx['cache_allocator'] = TenantCacheAllocator()
    logger.info("ARQ Worker started up, database session factory is ready.")

async def shutdown(ctx):
    """Worker 进程关闭时，清理资源。"""
    await ctx['provisioner'].release_all()
    await ctx['cache_allocator'].release_all()
    await engine.dispose()
    logger.info("ARQ Worker shut down, database engine disposed.")

class WorkerSettings:
    """ARQ Worker 的主配置。"""
    functions = TASK_FUNCTIONS
    cron_jobs = CRON_JOBS
    on_startup = startup
    on_shutdown = shutdown
    # 从 settings.py 中读取 Redis 配置
    redis_settings = get_redis_settings()
