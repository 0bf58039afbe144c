# src/tenanta/dao/schema_definition_dao.py

from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from tenanta.dao.base_dao import BaseDao
from tenanta.models import SchemaDefinition

class SchemaDefinitionDao(BaseDao[SchemaDefinition]):
    def __init__(self, db_session: AsyncSession):
        super().__init__(SchemaDefinition, db_session)

    async def get_active_for_tenant(self, tenant_id: str) -> Optional[SchemaDefinition]:
        """The tenant's current schema-of-record, latest first in case of legacy duplicates."""
        return await self.get_one(
            where={"tenant_id": tenant_id, "is_active": True},
            order=[SchemaDefinition.updated_at.desc()]
        )

    async def list_for_tenant(self, tenant_id: str) -> List[SchemaDefinition]:
        return await self.get_list(
            where={"tenant_id": tenant_id},
            order=[SchemaDefinition.created_at.desc()]
        )
