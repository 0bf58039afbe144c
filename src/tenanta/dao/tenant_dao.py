# src/tenanta/dao/tenant_dao.py

from sqlalchemy.ext.asyncio import AsyncSession
from tenanta.dao.base_dao import BaseDao
from tenanta.models import Tenant

class TenantDao(BaseDao[Tenant]):
    def __init__(self, db_session: AsyncSession):
        super().__init__(Tenant, db_session)
