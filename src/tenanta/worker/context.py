# src/tenanta/worker/context.py

from sqlalchemy.ext.asyncio import AsyncSession
from tenanta.core.context import AppContext

def rebuild_context_for_worker(ctx: dict, db_session: AsyncSession) -> AppContext:
    """
    为后台任务重建 AppContext。
    注意：返回的 AppContext 包含了一个活动的、由 `async with` 管理的 db_session
    """
    return AppContext(
        db=db_session,
        session_factory=ctx['db_session_factory'],
        provisioner=ctx['provisioner'],
        cache_allocator=ctx['cache_allocator']
    )
