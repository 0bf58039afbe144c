# src/tenanta/models/schema_definition.py

import enum
from sqlalchemy import (
    Column, String, Text, Integer, Boolean, DateTime, ForeignKey, Index,
    Enum as PgEnum, func, text
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from tenanta.db.base import Base
from tenanta.utils.id_generator import generate_uuid

class SchemaStatus(str, enum.Enum):
    PENDING = "pending"     # 元数据已落库, 物理重建尚未完成
    APPLIED = "applied"
    FAILED = "failed"       # 补偿状态: 物理重建失败并已回滚

class SchemaDefinition(Base):
    """租户的 schema-of-record: 带版本号的 DSL 文档。"""
    __tablename__ = 'schemas'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    tenant_id = Column(String(36), ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    # 单调递增, 从 1 开始, 每次成功的重建 +1
    version = Column(Integer, nullable=False, default=1, server_default="1")

    # {"code": "<DSL text>"}
    definition = Column(JSONB, nullable=False, default=dict)
    # 由 DSL 派生的结构模型快照, 仅供展示, 非权威数据
    structural_model = Column(JSONB, nullable=True)

    status = Column(
        PgEnum(SchemaStatus, name="schemastatus", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=SchemaStatus.PENDING
    )
    constraint_failures = Column(Integer, nullable=False, default=0, server_default="0")
    last_error = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    tenant = relationship("Tenant", back_populates="schemas", lazy="noload")

    __table_args__ = (
        # 每个租户最多一个激活的 schema
        Index(
            'uq_schemas_tenant_active',
            'tenant_id',
            unique=True,
            postgresql_where=text('is_active')
        ),
    )

    @property
    def code(self) -> str:
        return (self.definition or {}).get("code") or ""
