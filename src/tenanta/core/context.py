# src/tenanta/core/context.py

from pydantic import BaseModel, ConfigDict
from typing import Callable
from sqlalchemy.ext.asyncio import AsyncSession

from tenanta.services.tenant.provisioner import TenantResourceProvisioner
from tenanta.services.tenant.cache_allocator import TenantCacheAllocator

class AppContext(BaseModel):
    """
    Defines the complete, typed context for service layer operations.
    This acts as a "contract" for what dependencies are available and is
    the single source of truth for service dependencies.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    # 请求作用域的控制面会话
    db: AsyncSession

    # 独立事务 (saga 步骤、后台写历史) 使用的会话工厂
    session_factory: Callable[[], AsyncSession]

    # 全局应用级资源管理器
    provisioner: TenantResourceProvisioner
    cache_allocator: TenantCacheAllocator
