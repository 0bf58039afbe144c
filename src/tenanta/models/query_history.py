# src/tenanta/models/query_history.py

from sqlalchemy import (
    Column, String, Text, Integer, Boolean, DateTime, ForeignKey, Index, func
)
from sqlalchemy.dialects.postgresql import JSONB
from tenanta.db.base import Base
from tenanta.utils.id_generator import generate_uuid

class QueryHistoryRecord(Base):
    """
    SQL 控制台的执行记录。只追加, 仅由保留期清理任务删除。
    """
    __tablename__ = 'sql_query_history'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    tenant_id = Column(String(36), ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)

    query_text = Column(Text, nullable=False)
    query_hash = Column(String(64), nullable=False, index=True, comment="sha256 of the trimmed query text")

    execution_time_ms = Column(Integer, nullable=False, default=0)
    rows_affected = Column(Integer, nullable=False, default=0)
    success = Column(Boolean, nullable=False)
    error_message = Column(Text, nullable=True)

    result_columns = Column(JSONB, nullable=True)
    result_preview = Column(JSONB, nullable=True)

    # requester metadata
    user_agent = Column(Text, nullable=True)
    ip_address = Column(String(64), nullable=True)
    session_id = Column(String(255), nullable=True)

    execution_timestamp = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index('ix_sql_query_history_tenant_executed', 'tenant_id', 'execution_timestamp'),
    )
