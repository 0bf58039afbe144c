import logging
from typing import Optional
from tenanta.worker.context import rebuild_context_for_worker
from tenanta.services.query_service import QueryService

logger = logging.getLogger(__name__)

async def purge_query_history_task(ctx: dict, days_to_keep: Optional[int] = None) -> int:
    """
    ARQ Worker 任务：删除超过保留期限的 SQL 控制台历史。
    """
    try:
        db_session_factory = ctx['db_session_factory']
        async with db_session_factory() as session:
            async with session.begin():
                app_context = rebuild_context_for_worker(ctx, session)
                return await QueryService(app_context).purge_expired_history(days_to_keep)
    except Exception:
        logger.exception("FATAL in task purge_query_history_task")
        raise # 仍然重新抛出，让 ARQ 知道任务失败了
