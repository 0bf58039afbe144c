# src/tenanta/dao/query_history_dao.py

from datetime import datetime
from typing import Optional, List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from tenanta.dao.base_dao import BaseDao
from tenanta.models import QueryHistoryRecord

class QueryHistoryDao(BaseDao[QueryHistoryRecord]):
    def __init__(self, db_session: AsyncSession):
        super().__init__(QueryHistoryRecord, db_session)

    async def search(
        self,
        tenant_id: str,
        limit: int = 50,
        offset: int = 0,
        success: Optional[bool] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
    ) -> Tuple[List[QueryHistoryRecord], int]:
        conditions = [QueryHistoryRecord.tenant_id == tenant_id]
        if success is not None:
            conditions.append(QueryHistoryRecord.success == success)
        if from_date is not None:
            conditions.append(QueryHistoryRecord.execution_timestamp >= from_date)
        if to_date is not None:
            conditions.append(QueryHistoryRecord.execution_timestamp <= to_date)

        records = await self.get_list(
            where=conditions,
            order=[QueryHistoryRecord.execution_timestamp.desc()],
            limit=limit,
            offset=offset
        )
        total = await self.count(where=conditions)
        return records, total

    async def delete_older_than(self, cutoff: datetime) -> int:
        return await self.delete_where([QueryHistoryRecord.execution_timestamp < cutoff])
