# src/tenanta/worker/tasks/__init__.py

from arq import cron
# 1. 导入并导出这个子域的所有公开任务
from .query_history import purge_query_history_task
# 2. 导入注册中心
from ..main import TASK_FUNCTIONS, CRON_JOBS

# 3. 将自己注册进去
TASK_FUNCTIONS.extend([
    purge_query_history_task
])

CRON_JOBS.extend([
    # 每天凌晨3点清理过期的查询历史
    cron(purge_query_history_task, hour=3, minute=0)
])
