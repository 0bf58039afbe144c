# src/tenanta/services/query_service.py

import re
import time
import asyncio
import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Set
from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError
from tenanta.core.config import settings
from tenanta.core.context import AppContext
from tenanta.dao.query_history_dao import QueryHistoryDao
from tenanta.models import QueryHistoryRecord
from tenanta.schemas.query import QueryResult, QueryRequestMetadata, QueryHistoryRead, QueryHistoryPage
from tenanta.services.base_service import BaseService
from tenanta.services.exceptions import QueryValidationError, TenantConnectionError

logger = logging.getLogger(__name__)

# 语法层面的拦截, 不是授权模型
DANGEROUS_PATTERNS = [
    re.compile(pattern, re.IGNORECASE) for pattern in (
        r'\bDROP\s+DATABASE\b',
        r'\bDROP\s+SCHEMA\b',
        r'\bCREATE\s+SCHEMA\b',
        r'\bALTER\s+SCHEMA\b',
        r'\bCREATE\s+DATABASE\b',
        r'\bALTER\s+DATABASE\b',
        r'\bSHUTDOWN\b',
        r'\bRESTART\b',
    )
]

_QUERY_TYPES = {"SELECT", "INSERT", "UPDATE", "DELETE", "CREATE", "ALTER", "DROP", "TRUNCATE"}

# bytea 按 PostgreSQL 的 hex 输出格式返回, 不做 UTF-8 解码
ROW_VALUE_ENCODERS = {
    bytes: lambda value: "\\x" + value.hex(),
    memoryview: lambda value: "\\x" + value.hex(),
}


def unique_column_names(names: List[str]) -> List[str]:
    """JOIN 结果中的重名列依次改名为 name_1, name_2 ..."""
    seen: Set[str] = set()
    unique: List[str] = []
    for name in names:
        candidate, suffix = name, 0
        while candidate in seen:
            suffix += 1
            candidate = f"{name}_{suffix}"
        seen.add(candidate)
        unique.append(candidate)
    return unique


def validate_query(query: Optional[str]) -> str:
    """Returns the trimmed statement or raises QueryValidationError."""
    statement = (query or "").strip()
    if not statement:
        raise QueryValidationError("Query cannot be empty")
    for pattern in DANGEROUS_PATTERNS:
        if pattern.search(statement):
            raise QueryValidationError("Query contains potentially dangerous operations that are not allowed")
    return statement


def classify_query(statement: str) -> str:
    match = re.match(r'\s*(\w+)', statement)
    keyword = match.group(1).upper() if match else ""
    if keyword == "WITH":
        return "CTE"
    return keyword if keyword in _QUERY_TYPES else "OTHER"


def query_hash(statement: str) -> str:
    return hashlib.sha256(statement.encode("utf-8")).hexdigest()


class QueryService(BaseService):
    """
    SQL 控制台: 校验、执行、计时并记录针对租户自有数据库的临时语句。
    """
    # 持有后台任务的强引用, 防止被 GC 提前回收
    _background_tasks: Set[asyncio.Task] = set()

    def __init__(self, context: AppContext):
        super().__init__(context)
        self.dao = QueryHistoryDao(context.db)

    async def execute(
        self,
        tenant_id: str,
        query: str,
        metadata: Optional[QueryRequestMetadata] = None,
    ) -> QueryResult:
        # 校验先于任何连接获取
        statement = validate_query(query)

        engine = await self.provisioner.get_engine(tenant_id)
        try:
            conn = await engine.connect()
        except (SQLAlchemyError, OSError) as e:
            raise TenantConnectionError(f"Tenant database is unavailable: {e}", tenant_id=tenant_id) from e

        started = time.perf_counter()
        try:
            async with conn.begin():
                result = await conn.exec_driver_sql(statement)
                if result.returns_rows:
                    columns = unique_column_names(list(result.keys()))
                    rows = [dict(zip(columns, row)) for row in result.all()]
                    rows_affected = len(rows)
                else:
                    columns, rows = [], []
                    rows_affected = max(result.rowcount or 0, 0)
            outcome = QueryResult(
                success=True,
                data=jsonable_encoder(rows, custom_encoder=ROW_VALUE_ENCODERS),
                columns=columns,
                rows_affected=rows_affected,
                execution_time=self._elapsed_ms(started),
            )
        except SQLAlchemyError as e:
            outcome = QueryResult(
                success=False,
                rows_affected=0,
                execution_time=self._elapsed_ms(started),
                error=str(getattr(e, "orig", None) or e),
            )
        finally:
            await conn.close()

        logger.info(
            f"Executed {classify_query(statement)} query in {outcome.execution_time}ms "
            f"(success={outcome.success}, rows={outcome.rows_affected})",
            extra={"tenant_id": tenant_id}
        )
        self._record_history(tenant_id, statement, outcome, metadata or QueryRequestMetadata())
        return outcome

    async def get_query_history(
        self,
        tenant_id: str,
        limit: int = 50,
        offset: int = 0,
        success: Optional[bool] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
    ) -> QueryHistoryPage:
        records, total = await self.dao.search(
            tenant_id, limit=limit, offset=offset, success=success, from_date=from_date, to_date=to_date
        )
        return QueryHistoryPage(
            history=[QueryHistoryRead.model_validate(r) for r in records],
            total=total
        )

    async def purge_expired_history(self, days_to_keep: Optional[int] = None) -> int:
        """Retention sweep: deletes history older than the horizon, across all tenants."""
        days = days_to_keep if days_to_keep is not None else settings.QUERY_HISTORY_RETENTION_DAYS
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        deleted = await self.dao.delete_older_than(cutoff)
        logger.info(f"Purged {deleted} query history records older than {days} days")
        return deleted

    # --- History capture (fire-and-forget) ---

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int(round((time.perf_counter() - started) * 1000))

    def _record_history(
        self,
        tenant_id: str,
        statement: str,
        outcome: QueryResult,
        metadata: QueryRequestMetadata,
    ):
        values: Dict[str, Any] = {
            "tenant_id": tenant_id,
            "query_text": statement,
            "query_hash": query_hash(statement),
            "execution_time_ms": outcome.execution_time,
            "rows_affected": outcome.rows_affected,
            "success": outcome.success,
            "error_message": outcome.error,
            "result_columns": outcome.columns,
            "result_preview": (outcome.data or [])[:settings.QUERY_PREVIEW_ROWS] if outcome.success else None,
            "user_agent": metadata.user_agent,
            "ip_address": metadata.ip_address,
            "session_id": metadata.session_id,
            "execution_timestamp": datetime.now(timezone.utc),
        }
        task = asyncio.create_task(self._persist_history(values))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _persist_history(self, values: Dict[str, Any]):
        # 历史写入失败只记日志, 绝不影响调用方拿到的结果
        try:
            async with self.context.session_factory() as session:
                async with session.begin():
                    await QueryHistoryDao(session).add(QueryHistoryRecord(**values), auto_flush=False)
        except Exception as e:
            logger.error(f"Failed to persist query history: {e}", extra={"tenant_id": values.get("tenant_id")})

    @classmethod
    async def drain_background_tasks(cls):
        """Waits for pending history writes; used at shutdown."""
        if cls._background_tasks:
            await asyncio.gather(*list(cls._background_tasks), return_exceptions=True)
