# src/tenanta/engine/dsl/ddl.py

import re
import logging
from typing import Dict, List, Optional
from sqlalchemy.dialects.postgresql.base import PGDialect
from .types import ParsedColumn, ParsedTable, ParsedRelationship, SchemaModel, DDLPlan
from .parser import parse_to_model

logger = logging.getLogger(__name__)

# DSL 类型 -> PostgreSQL 列类型
TYPE_MAPPING: Dict[str, str] = {
    'int': 'INTEGER',
    'integer': 'INTEGER',
    'bigint': 'BIGINT',
    'smallint': 'SMALLINT',
    'varchar': 'VARCHAR(255)',
    'char': 'CHAR',
    'text': 'TEXT',
    'longtext': 'TEXT',
    'timestamp': 'TIMESTAMP WITH TIME ZONE',
    'datetime': 'TIMESTAMP WITH TIME ZONE',
    'date': 'DATE',
    'time': 'TIME',
    'boolean': 'BOOLEAN',
    'bool': 'BOOLEAN',
    'decimal': 'DECIMAL',
    'numeric': 'NUMERIC',
    'float': 'REAL',
    'double': 'DOUBLE PRECISION',
    'json': 'JSONB',
    'jsonb': 'JSONB',
    'uuid': 'UUID',
    'serial': 'SERIAL',
    'bigserial': 'BIGSERIAL',
}

# 允许带 (n) / (p,s) 长度修饰的类型
LENGTH_QUALIFIED_TYPES: Dict[str, str] = {
    'varchar': 'VARCHAR',
    'char': 'CHAR',
    'decimal': 'DECIMAL',
    'numeric': 'NUMERIC',
}

INCREMENT_TYPES: Dict[str, str] = {
    'INTEGER': 'SERIAL',
    'BIGINT': 'BIGSERIAL',
    'SMALLINT': 'SMALLSERIAL',
}

# 由平台自己管理的表, 不允许用户 DSL 对其建立外键
RESERVED_SYSTEM_TABLES = frozenset({'sessions', 'system_info'})

TIMESTAMP_DEFAULT_COLUMNS = ('created_at', 'updated_at')

_NOW_FUNCTIONS = {'now()', 'current_timestamp', 'current_timestamp()'}
_UUID_FUNCTIONS = {'uuid_generate_v4()', 'gen_random_uuid()'}
_NUMERIC_RE = re.compile(r'^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$')

# PostgreSQL 标识符最长 63 字节
MAX_IDENTIFIER_LENGTH = 63

_preparer = PGDialect().identifier_preparer


def quote_identifier(name: str) -> str:
    """Quote a PostgreSQL identifier only when it needs it (reserved word, case, symbols)."""
    return _preparer.quote(name)


def qualified_name(namespace: str, name: str) -> str:
    return f"{quote_identifier(namespace)}.{quote_identifier(name)}"


def resolve_column_type(column: ParsedColumn) -> str:
    token = column.type.lower()
    sql_type = TYPE_MAPPING.get(token, column.type.upper())

    if column.length:
        if token in LENGTH_QUALIFIED_TYPES:
            sql_type = f"{LENGTH_QUALIFIED_TYPES[token]}({column.length})"
        elif token not in TYPE_MAPPING:
            sql_type = f"{sql_type}({column.length})"

    if column.is_increment and sql_type in INCREMENT_TYPES:
        sql_type = INCREMENT_TYPES[sql_type]
    return sql_type


def render_default(raw: str) -> str:
    """Translate a DSL default token into a PostgreSQL default expression."""
    value = raw.strip()
    unwrapped = value
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"`":
        unwrapped = value[1:-1]

    lowered = unwrapped.strip().lower()
    if lowered in _NOW_FUNCTIONS:
        return 'NOW()'
    if lowered in _UUID_FUNCTIONS:
        return lowered
    if len(value) >= 2 and value[0] == "'" and value[-1] == "'":
        return value
    if _NUMERIC_RE.match(value):
        return value
    if value.lower() in ('true', 'false', 'null'):
        return value.upper()
    return "'" + unwrapped.replace("'", "''") + "'"


def automatic_default(column: ParsedColumn, sql_type: str) -> Optional[str]:
    if column.name == 'id' and column.is_primary_key and sql_type == 'UUID':
        return 'uuid_generate_v4()'
    if column.name in TIMESTAMP_DEFAULT_COLUMNS and 'TIMESTAMP' in sql_type:
        return 'NOW()'
    return None


def render_column(column: ParsedColumn, inline_primary_key: bool = True) -> str:
    sql_type = resolve_column_type(column)
    parts = [quote_identifier(column.name), sql_type]

    if column.is_primary_key and inline_primary_key:
        parts.append('PRIMARY KEY')
    elif not column.nullable:
        parts.append('NOT NULL')

    if column.is_unique and not column.is_primary_key:
        parts.append('UNIQUE')

    default = render_default(column.default) if column.default is not None else automatic_default(column, sql_type)
    if default is not None:
        parts.append(f"DEFAULT {default}")

    return ' '.join(parts)


def render_create_table(table: ParsedTable, namespace: str) -> Optional[str]:
    if not table.columns:
        logger.debug("Table without columns produces no DDL", extra={"table": table.name})
        return None

    pk_columns = [c for c in table.columns if c.is_primary_key]
    composite_pk = len(pk_columns) > 1
    lines = [render_column(c, inline_primary_key=not composite_pk) for c in table.columns]
    if composite_pk:
        lines.append(f"PRIMARY KEY ({', '.join(quote_identifier(c.name) for c in pk_columns)})")

    body = ',\n    '.join(lines)
    return f"CREATE TABLE IF NOT EXISTS {qualified_name(namespace, table.name)} (\n    {body}\n)"


def render_updated_at_trigger(table: ParsedTable, namespace: str) -> List[str]:
    trigger = quote_identifier(f"update_{table.name}_updated_at"[:MAX_IDENTIFIER_LENGTH])
    target = qualified_name(namespace, table.name)
    return [
        f"DROP TRIGGER IF EXISTS {trigger} ON {target}",
        f"CREATE TRIGGER {trigger} BEFORE UPDATE ON {target} "
        f"FOR EACH ROW EXECUTE FUNCTION update_updated_at_column()",
    ]


def render_foreign_key(relationship: ParsedRelationship, index: int, namespace: str) -> Optional[str]:
    if relationship.from_table in RESERVED_SYSTEM_TABLES or relationship.to_table in RESERVED_SYSTEM_TABLES:
        logger.debug(
            "Relationship touching a reserved system table skipped",
            extra={"from_table": relationship.from_table, "to_table": relationship.to_table}
        )
        return None

    constraint = f"fk_{relationship.from_table}_{relationship.from_column}_{index}"[:MAX_IDENTIFIER_LENGTH]
    return (
        f"ALTER TABLE {qualified_name(namespace, relationship.from_table)} "
        f"ADD CONSTRAINT {quote_identifier(constraint)} "
        f"FOREIGN KEY ({quote_identifier(relationship.from_column)}) "
        f"REFERENCES {qualified_name(namespace, relationship.to_table)} ({quote_identifier(relationship.to_column)}) "
        f"ON DELETE CASCADE ON UPDATE CASCADE"
    )


def render_ddl(model: SchemaModel, namespace: str = 'public') -> DDLPlan:
    """Render a parsed model into create statements and best-effort constraint statements."""
    plan = DDLPlan()

    for table in model.tables:
        statement = render_create_table(table, namespace)
        if statement is None:
            continue
        plan.create_statements.append(statement)
        if table.has_column('updated_at'):
            plan.constraint_statements.extend(render_updated_at_trigger(table, namespace))

    for index, relationship in enumerate(model.relationships):
        statement = render_foreign_key(relationship, index, namespace)
        if statement is not None:
            plan.constraint_statements.append(statement)

    logger.info(
        f"Compiled DSL to DDL: {len(plan.create_statements)} tables, "
        f"{len(plan.constraint_statements)} constraints"
    )
    return plan


def compile_to_ddl(dsl_text: Optional[str], namespace: str = 'public') -> DDLPlan:
    return render_ddl(parse_to_model(dsl_text), namespace)
