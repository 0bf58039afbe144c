# src/tenanta/models/tenant.py

from sqlalchemy import Column, String, Boolean, DateTime, func
from sqlalchemy.orm import relationship
from tenanta.db.base import Base
from tenanta.utils.id_generator import generate_uuid

class Tenant(Base):
    """
    租户元数据。由外部的租户 CRUD 创建, 本服务只按 id 读取,
    用来推导租户专属的物理数据库与缓存命名空间。
    """
    __tablename__ = 'tenants'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), nullable=False, unique=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    schemas = relationship(
        "SchemaDefinition",
        back_populates="tenant",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="noload"
    )
