# src/tenanta/engine/dsl/__init__.py

from .types import ParsedColumn, ParsedTable, ParsedRelationship, SchemaModel, DDLPlan
from .parser import parse_to_model
from .ddl import (
    compile_to_ddl,
    render_ddl,
    quote_identifier,
    qualified_name,
    RESERVED_SYSTEM_TABLES,
    TYPE_MAPPING
)
