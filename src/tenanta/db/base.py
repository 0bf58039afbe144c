# tenanta/db/base.py

from sqlalchemy import MetaData
from sqlalchemy.orm import declarative_base

# 控制面表的约束命名约定, alembic autogenerate 与 downgrade 依赖稳定的约束名
naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}

metadata_obj = MetaData(naming_convention=naming_convention)

# tenants / schemas / sql_query_history 的声明基类; 租户库中的表不走 ORM
Base = declarative_base(metadata=metadata_obj)
